"""HTTP controller layer for availability search and utilisation reporting."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator

from reservation_engine.controllers.dependencies import (
    get_auth_context,
    get_availability_service,
    get_utilization_service,
    http_error_from,
)
from reservation_engine.domain.models import AuthContext
from reservation_engine.services.availability_service import AvailabilityQueryService
from reservation_engine.services.errors import ReservationError
from reservation_engine.services.utilization_service import UtilizationService
from reservation_engine.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["availability"])


class AvailabilityRequest(BaseModel):
    """Dates stay strings so format errors surface as 400 from the service."""

    tenant_id: str | None = None
    start_date: str = Field(min_length=1)
    end_date: str = Field(min_length=1)
    city: str | None = None
    media_type: str | None = None

    @field_validator("start_date", "end_date")
    @classmethod
    def strip_dates(cls, value: str) -> str:
        return value.strip()


class AvailabilitySummaryResponse(BaseModel):
    total_assets: int = Field(ge=0)
    available_count: int = Field(ge=0)
    available_soon_count: int = Field(ge=0)
    booked_count: int = Field(ge=0)
    conflict_count: int = Field(ge=0)
    total_sqft_available: float = Field(ge=0.0)
    potential_revenue: float = Field(ge=0.0)


class AvailabilityResponse(BaseModel):
    available: list[dict[str, Any]]
    available_soon: list[dict[str, Any]]
    booked: list[dict[str, Any]]
    conflicts: list[dict[str, Any]]
    summary: AvailabilitySummaryResponse
    search_params: dict[str, str]


class UtilizationResponse(BaseModel):
    assets: list[dict[str, Any]]
    by_city: list[dict[str, Any]]
    by_media_type: list[dict[str, Any]]
    summary: dict[str, Any]


@router.post(
    "/availability",
    response_model=AvailabilityResponse,
    status_code=status.HTTP_200_OK,
)
async def get_media_availability(
    payload: AvailabilityRequest,
    context: AuthContext = Depends(get_auth_context),
    service: AvailabilityQueryService = Depends(get_availability_service),
) -> AvailabilityResponse:
    """Classify every asset of the caller's tenant for the requested window."""
    if payload.tenant_id and payload.tenant_id != context.tenant_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied to this company's data",
        )
    try:
        report = service.query(
            context,
            payload.start_date,
            payload.end_date,
            city=payload.city,
            media_type=payload.media_type,
        )
        return AvailabilityResponse(**report.to_dict())
    except ReservationError as exc:
        raise http_error_from(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected availability failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to check media availability",
        ) from exc


@router.get(
    "/utilization",
    response_model=UtilizationResponse,
    status_code=status.HTTP_200_OK,
)
async def get_inventory_utilization(
    start_date: str = Query(min_length=1),
    end_date: str = Query(min_length=1),
    context: AuthContext = Depends(get_auth_context),
    service: UtilizationService = Depends(get_utilization_service),
) -> UtilizationResponse:
    try:
        return UtilizationResponse(**service.utilization(context, start_date, end_date))
    except ReservationError as exc:
        raise http_error_from(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected utilization failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute inventory utilization",
        ) from exc
