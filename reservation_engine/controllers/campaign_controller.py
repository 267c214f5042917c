"""HTTP controller layer for campaigns and conversion reconciliation."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from reservation_engine.controllers.dependencies import (
    get_auth_context,
    get_campaign_service,
    get_conversion_service,
    http_error_from,
)
from reservation_engine.domain.models import AuthContext, CampaignAssetStatus, CampaignStatus
from reservation_engine.services.campaign_service import CampaignService
from reservation_engine.services.conversion_service import ConversionService
from reservation_engine.services.errors import ReservationError
from reservation_engine.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/campaigns", tags=["campaigns"])


class CampaignStatusRequest(BaseModel):
    status: CampaignStatus


class CampaignAssetStatusRequest(BaseModel):
    status: CampaignAssetStatus


class CampaignResponse(BaseModel):
    id: str
    source_plan_id: str
    campaign_name: str
    client_name: str
    status: CampaignStatus
    start_date: str
    end_date: str
    total_assets: int
    total_amount: float
    notes: str
    workflow_step: str
    created_at: str | None
    assets: list[dict[str, Any]]


class ReconcileResponse(BaseModel):
    campaign_id: str
    campaign: CampaignResponse
    already_converted: bool
    warnings: list[str]
    completed_steps: list[str]


@router.get("/{campaign_id}", response_model=CampaignResponse, status_code=status.HTTP_200_OK)
async def get_campaign(
    campaign_id: str,
    context: AuthContext = Depends(get_auth_context),
    service: CampaignService = Depends(get_campaign_service),
) -> CampaignResponse:
    try:
        return CampaignResponse(**service.get_campaign(context, campaign_id).to_dict())
    except ReservationError as exc:
        raise http_error_from(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected campaign read failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load campaign",
        ) from exc


@router.post(
    "/{campaign_id}/reconcile",
    response_model=ReconcileResponse,
    status_code=status.HTTP_200_OK,
)
def reconcile_campaign(
    campaign_id: str,
    context: AuthContext = Depends(get_auth_context),
    service: ConversionService = Depends(get_conversion_service),
) -> ReconcileResponse:
    """Retry the outstanding reservations of an interrupted conversion."""
    try:
        return ReconcileResponse(**service.reconcile(context, campaign_id).to_dict())
    except ReservationError as exc:
        raise http_error_from(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected reconciliation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to reconcile campaign",
        ) from exc


@router.post(
    "/{campaign_id}/status",
    response_model=CampaignResponse,
    status_code=status.HTTP_200_OK,
)
async def advance_campaign_status(
    campaign_id: str,
    payload: CampaignStatusRequest,
    context: AuthContext = Depends(get_auth_context),
    service: CampaignService = Depends(get_campaign_service),
) -> CampaignResponse:
    try:
        view = service.advance_status(context, campaign_id, payload.status.value)
        return CampaignResponse(**view.to_dict())
    except ReservationError as exc:
        raise http_error_from(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected campaign status failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update campaign status",
        ) from exc


@router.post(
    "/{campaign_id}/assets/{resource_id}/status",
    response_model=CampaignResponse,
    status_code=status.HTTP_200_OK,
)
async def advance_campaign_asset_status(
    campaign_id: str,
    resource_id: str,
    payload: CampaignAssetStatusRequest,
    context: AuthContext = Depends(get_auth_context),
    service: CampaignService = Depends(get_campaign_service),
) -> CampaignResponse:
    try:
        view = service.advance_asset_status(
            context,
            campaign_id,
            resource_id,
            payload.status.value,
        )
        return CampaignResponse(**view.to_dict())
    except ReservationError as exc:
        raise http_error_from(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected campaign asset status failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update campaign asset status",
        ) from exc
