from __future__ import annotations

from datetime import date

from reservation_engine.domain.models import BillingMode, DateWindow
from reservation_engine.domain.pricing import effective_price, quote_rent


MARCH = DateWindow(date(2024, 3, 1), date(2024, 3, 31))


def test_sales_price_wins_when_positive() -> None:
    assert effective_price(45000.0, 90000.0) == 45000.0
    assert effective_price(0.0, 90000.0) == 90000.0
    assert effective_price(None, None) == 0.0


def test_prorata_rent_uses_thirty_day_month() -> None:
    quote = quote_rent(
        sales_price=90000.0,
        card_rate=120000.0,
        window=MARCH,
        billing_mode=BillingMode.PRORATA_30,
    )

    assert quote.negotiated_rate == 90000.0
    assert quote.booked_days == 31
    assert quote.daily_rate == 3000.0
    assert quote.rent_amount == 93000.0


def test_full_month_rent_rounds_up_started_months() -> None:
    quote = quote_rent(
        sales_price=0.0,
        card_rate=60000.0,
        window=MARCH,
        billing_mode=BillingMode.FULL_MONTH,
    )

    assert quote.rent_amount == 120000.0


def test_daily_rent_uses_explicit_daily_rate() -> None:
    quote = quote_rent(
        sales_price=30000.0,
        card_rate=30000.0,
        window=DateWindow(date(2024, 3, 1), date(2024, 3, 10)),
        billing_mode=BillingMode.DAILY,
        daily_rate=1500.0,
    )

    assert quote.daily_rate == 1500.0
    assert quote.rent_amount == 15000.0
