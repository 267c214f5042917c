"""Price snapshot rules applied when a plan line item becomes a campaign asset."""

from __future__ import annotations

import math
from dataclasses import dataclass

from reservation_engine.domain.models import BillingMode, DateWindow


@dataclass(frozen=True)
class RentQuote:
    negotiated_rate: float
    booked_days: int
    daily_rate: float
    rent_amount: float


def effective_price(sales_price: float | None, card_rate: float | None) -> float:
    """Negotiated price wins when positive; otherwise the card rate applies."""
    if sales_price is not None and sales_price > 0:
        return float(sales_price)
    return float(card_rate or 0.0)


def prorated_daily_rate(monthly_rate: float, prorata_days: int = 30) -> float:
    return monthly_rate / prorata_days


def quote_rent(
    *,
    sales_price: float | None,
    card_rate: float | None,
    window: DateWindow,
    billing_mode: BillingMode,
    daily_rate: float | None = None,
    prorata_days: int = 30,
) -> RentQuote:
    price = effective_price(sales_price, card_rate)
    days = max(1, window.days)

    if billing_mode is BillingMode.FULL_MONTH:
        rent = price * math.ceil(days / prorata_days)
        per_day = round(price / prorata_days, 2)
    elif billing_mode is BillingMode.DAILY and daily_rate and daily_rate > 0:
        rent = daily_rate * days
        per_day = float(daily_rate)
    else:
        raw = prorated_daily_rate(price, prorata_days)
        rent = round(raw * days, 2)
        per_day = round(raw, 2)

    return RentQuote(
        negotiated_rate=price,
        booked_days=days,
        daily_rate=per_day,
        rent_amount=float(rent),
    )
