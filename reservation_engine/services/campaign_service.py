"""Campaign reads and operational status progression."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from reservation_engine.domain.constraints import (
    validate_campaign_asset_transition,
    validate_campaign_transition,
)
from reservation_engine.domain.models import (
    AuthContext,
    Campaign,
    CampaignAsset,
    CampaignAssetStatus,
    CampaignStatus,
)
from reservation_engine.repository.campaign_store import CampaignStore
from reservation_engine.repository.data_repository import DataRepository
from reservation_engine.services.auth_service import require_role
from reservation_engine.services.errors import (
    CampaignNotFoundError,
    InvalidTransitionError,
    ReservationValidationError,
    ResourceNotFoundError,
)
from reservation_engine.utils.config import Settings, get_settings
from reservation_engine.utils.logger import get_logger


logger = get_logger(__name__)


def _asset_to_dict(asset: CampaignAsset) -> dict[str, Any]:
    return {
        "resource_id": asset.resource_id,
        "resource_code": asset.resource_code,
        "city": asset.city,
        "area": asset.area,
        "location": asset.location,
        "media_type": asset.media_type,
        "dimensions": asset.dimensions,
        "total_sqft": asset.total_sqft,
        "card_rate": asset.card_rate,
        "negotiated_rate": asset.negotiated_rate,
        "booking_start": asset.booking_start.isoformat(),
        "booking_end": asset.booking_end.isoformat(),
        "booked_days": asset.booked_days,
        "billing_mode": asset.billing_mode.value,
        "daily_rate": asset.daily_rate,
        "rent_amount": asset.rent_amount,
        "status": asset.status.value,
        "reservation_applied": asset.reservation_applied,
    }


@dataclass(frozen=True)
class CampaignView:
    campaign: Campaign
    assets: list[CampaignAsset]

    def to_dict(self) -> dict[str, Any]:
        campaign = self.campaign
        return {
            "id": campaign.campaign_id,
            "source_plan_id": campaign.source_plan_id,
            "campaign_name": campaign.campaign_name,
            "client_name": campaign.client_name,
            "status": campaign.status.value,
            "start_date": campaign.start_date.isoformat(),
            "end_date": campaign.end_date.isoformat(),
            "total_assets": campaign.total_assets,
            "total_amount": campaign.total_amount,
            "notes": campaign.notes,
            "workflow_step": campaign.workflow_step.value,
            "created_at": campaign.created_at,
            "assets": [_asset_to_dict(asset) for asset in self.assets],
        }


class CampaignService:
    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._campaigns = CampaignStore(self._repository)

    def _load(self, tenant_id: str, campaign_id: str) -> Campaign:
        campaign = self._campaigns.get_campaign(tenant_id, campaign_id)
        if campaign is None:
            raise CampaignNotFoundError(f"Campaign not found: {campaign_id}")
        return campaign

    def get_campaign(self, context: AuthContext, campaign_id: str) -> CampaignView:
        require_role(context, self._settings.campaign_reader_roles)
        campaign = self._load(context.tenant_id, campaign_id)
        return CampaignView(
            campaign=campaign,
            assets=self._campaigns.list_campaign_assets(context.tenant_id, campaign_id),
        )

    def advance_status(self, context: AuthContext, campaign_id: str, target: str) -> CampaignView:
        require_role(context, self._settings.operations_roles)
        try:
            target_status = CampaignStatus(target)
        except ValueError as exc:
            raise ReservationValidationError(f"Unknown campaign status: {target}") from exc

        campaign = self._load(context.tenant_id, campaign_id)
        try:
            validate_campaign_transition(campaign.status, target_status)
        except ValueError as exc:
            raise InvalidTransitionError(str(exc)) from exc
        if not self._campaigns.update_status(
            context.tenant_id,
            campaign_id,
            expected=campaign.status,
            target=target_status,
        ):
            raise InvalidTransitionError(f"Campaign {campaign_id} changed concurrently; retry")
        logger.info(
            "Campaign status advanced | tenant_id=%s | campaign_id=%s | from=%s | to=%s",
            context.tenant_id,
            campaign_id,
            campaign.status.value,
            target_status.value,
        )
        return self.get_campaign(context, campaign_id)

    def advance_asset_status(
        self,
        context: AuthContext,
        campaign_id: str,
        resource_id: str,
        target: str,
    ) -> CampaignView:
        """Move one operational record forward; the resource's booking is untouched."""
        require_role(context, self._settings.operations_roles)
        try:
            target_status = CampaignAssetStatus(target)
        except ValueError as exc:
            raise ReservationValidationError(f"Unknown campaign asset status: {target}") from exc

        self._load(context.tenant_id, campaign_id)
        assets = {
            asset.resource_id: asset
            for asset in self._campaigns.list_campaign_assets(context.tenant_id, campaign_id)
        }
        asset = assets.get(resource_id)
        if asset is None:
            raise ResourceNotFoundError(
                f"Resource {resource_id} is not part of campaign {campaign_id}"
            )
        try:
            validate_campaign_asset_transition(asset.status, target_status)
        except ValueError as exc:
            raise InvalidTransitionError(str(exc)) from exc
        if not self._campaigns.update_asset_status(
            context.tenant_id,
            campaign_id,
            resource_id,
            expected=asset.status,
            target=target_status,
        ):
            raise InvalidTransitionError(
                f"Campaign asset {campaign_id}/{resource_id} changed concurrently; retry"
            )
        return self.get_campaign(context, campaign_id)
