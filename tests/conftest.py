from __future__ import annotations

from dataclasses import replace
from datetime import date

import pytest

from reservation_engine.domain.models import (
    AuthContext,
    BillingMode,
    Campaign,
    CampaignAsset,
    CampaignStatus,
    ConversionStep,
    DateWindow,
    Resource,
    ResourceStatus,
    Role,
)
from reservation_engine.repository.campaign_store import CampaignStore
from reservation_engine.repository.data_repository import DataRepository
from reservation_engine.repository.resource_store import ResourceStore
from reservation_engine.utils.config import get_settings


TENANT = "tenant-a"
OTHER_TENANT = "tenant-b"


@pytest.fixture
def settings(tmp_path):
    get_settings.cache_clear()
    return replace(
        get_settings(),
        database_path=tmp_path / "reservations.db",
        api_token=None,
        seed_demo_data=False,
        lock_timeout_seconds=2.0,
        conversion_timeout_seconds=10.0,
    )


@pytest.fixture
def repository(settings) -> DataRepository:
    repository = DataRepository(settings)
    repository.initialize_database()
    return repository


@pytest.fixture
def resource_store(repository) -> ResourceStore:
    return ResourceStore(repository)


@pytest.fixture
def campaign_store(repository) -> CampaignStore:
    return CampaignStore(repository)


@pytest.fixture
def admin() -> AuthContext:
    return AuthContext(tenant_id=TENANT, role=Role.ADMIN, user_id="user-1")


@pytest.fixture
def make_resource(resource_store):
    def _make(
        resource_id: str,
        *,
        tenant_id: str = TENANT,
        city: str = "Hyderabad",
        media_type: str = "Hoarding",
        card_rate: float = 30000.0,
        total_sqft: float = 100.0,
        status: ResourceStatus = ResourceStatus.AVAILABLE,
        window: DateWindow | None = None,
        campaign_ref: str | None = None,
    ) -> Resource:
        return resource_store.create(
            Resource(
                resource_id=resource_id,
                tenant_id=tenant_id,
                code=resource_id,
                city=city,
                media_type=media_type,
                card_rate=card_rate,
                total_sqft=total_sqft,
                status=status,
                location=f"{resource_id} junction",
                reservation_window=window,
                active_campaign_ref=campaign_ref,
            )
        )

    return _make


@pytest.fixture
def make_booking(campaign_store):
    """Persist a campaign holding one resource for a window, bypassing the workflow."""

    def _make(
        campaign_id: str,
        resource_id: str,
        start: date,
        end: date,
        *,
        tenant_id: str = TENANT,
        status: CampaignStatus = CampaignStatus.PLANNED,
        rent_amount: float = 1000.0,
    ) -> Campaign:
        campaign, _ = campaign_store.create_campaign(
            Campaign(
                campaign_id=campaign_id,
                tenant_id=tenant_id,
                source_plan_id=f"plan-for-{campaign_id}",
                campaign_name=f"Campaign {campaign_id}",
                client_name="Acme",
                status=status,
                start_date=start,
                end_date=end,
                total_assets=1,
                total_amount=rent_amount,
                workflow_step=ConversionStep.FINALIZE_PLAN,
            )
        )
        window = DateWindow(start, end)
        campaign_store.create_campaign_assets(
            [
                CampaignAsset(
                    campaign_id=campaign_id,
                    tenant_id=tenant_id,
                    resource_id=resource_id,
                    resource_code=resource_id,
                    city="Hyderabad",
                    area="",
                    location="",
                    media_type="Hoarding",
                    dimensions="",
                    total_sqft=100.0,
                    card_rate=30000.0,
                    negotiated_rate=30000.0,
                    booking_start=start,
                    booking_end=end,
                    booked_days=window.days,
                    billing_mode=BillingMode.PRORATA_30,
                    daily_rate=1000.0,
                    rent_amount=rent_amount,
                    reservation_applied=True,
                )
            ]
        )
        return campaign

    return _make
