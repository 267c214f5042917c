"""HTTP controller layer for plans and their conversion into campaigns."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator

from reservation_engine.controllers.dependencies import (
    get_auth_context,
    get_conversion_service,
    get_plan_service,
    http_error_from,
)
from reservation_engine.domain.models import AuthContext, BillingMode, PlanStatus
from reservation_engine.services.conversion_service import ConversionService
from reservation_engine.services.errors import ReservationError
from reservation_engine.services.plan_service import PlanService, PlanView
from reservation_engine.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/plans", tags=["plans"])


class CreatePlanRequest(BaseModel):
    plan_name: str = Field(min_length=1)
    client_name: str = ""
    start_date: str = Field(min_length=1)
    end_date: str = Field(min_length=1)
    notes: str = ""


class PlanItemRequest(BaseModel):
    resource_id: str = Field(min_length=1)
    sales_price: float = Field(default=0.0, ge=0.0)
    billing_mode: BillingMode | None = None
    start_date: str | None = None
    end_date: str | None = None
    daily_rate: float | None = Field(default=None, ge=0.0)


class PlanStatusRequest(BaseModel):
    status: PlanStatus

    @field_validator("status")
    @classmethod
    def reject_converted(cls, value: PlanStatus) -> PlanStatus:
        if value is PlanStatus.CONVERTED:
            raise ValueError("use the convert endpoint to convert a plan")
        return value


class ConvertPlanRequest(BaseModel):
    campaign_name: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    notes: str | None = None


class PlanResponse(BaseModel):
    id: str
    plan_name: str
    client_name: str
    status: PlanStatus
    start_date: str
    end_date: str
    notes: str
    converted_campaign_id: str | None
    converted_at: str | None
    items: list[dict[str, Any]]


class ConvertPlanResponse(BaseModel):
    campaign_id: str
    campaign: dict[str, Any]
    already_converted: bool
    warnings: list[str]
    completed_steps: list[str]


def _plan_response(view: PlanView) -> PlanResponse:
    return PlanResponse(**view.to_dict())


def _unexpected(action: str, exc: Exception) -> HTTPException:
    logger.exception("Unexpected failure while trying to %s", action)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    )


@router.post("", response_model=PlanResponse, status_code=status.HTTP_201_CREATED)
def create_plan(
    payload: CreatePlanRequest,
    context: AuthContext = Depends(get_auth_context),
    service: PlanService = Depends(get_plan_service),
) -> PlanResponse:
    try:
        return _plan_response(
            service.create_plan(
                context,
                plan_name=payload.plan_name,
                client_name=payload.client_name,
                start_date=payload.start_date,
                end_date=payload.end_date,
                notes=payload.notes,
            )
        )
    except ReservationError as exc:
        raise http_error_from(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _unexpected("create plan", exc) from exc


@router.get("/{plan_id}", response_model=PlanResponse, status_code=status.HTTP_200_OK)
async def get_plan(
    plan_id: str,
    context: AuthContext = Depends(get_auth_context),
    service: PlanService = Depends(get_plan_service),
) -> PlanResponse:
    try:
        return _plan_response(service.get_plan(context, plan_id))
    except ReservationError as exc:
        raise http_error_from(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _unexpected("load plan", exc) from exc


@router.post("/{plan_id}/items", response_model=PlanResponse, status_code=status.HTTP_200_OK)
def add_plan_item(
    plan_id: str,
    payload: PlanItemRequest,
    context: AuthContext = Depends(get_auth_context),
    service: PlanService = Depends(get_plan_service),
) -> PlanResponse:
    try:
        return _plan_response(
            service.add_item(
                context,
                plan_id,
                resource_id=payload.resource_id,
                sales_price=payload.sales_price,
                billing_mode=payload.billing_mode.value if payload.billing_mode else None,
                start_date=payload.start_date,
                end_date=payload.end_date,
                daily_rate=payload.daily_rate,
            )
        )
    except ReservationError as exc:
        raise http_error_from(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _unexpected("add plan item", exc) from exc


@router.delete(
    "/{plan_id}/items/{resource_id}",
    response_model=PlanResponse,
    status_code=status.HTTP_200_OK,
)
def remove_plan_item(
    plan_id: str,
    resource_id: str,
    context: AuthContext = Depends(get_auth_context),
    service: PlanService = Depends(get_plan_service),
) -> PlanResponse:
    try:
        return _plan_response(service.remove_item(context, plan_id, resource_id))
    except ReservationError as exc:
        raise http_error_from(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _unexpected("remove plan item", exc) from exc


@router.post("/{plan_id}/status", response_model=PlanResponse, status_code=status.HTTP_200_OK)
def change_plan_status(
    plan_id: str,
    payload: PlanStatusRequest,
    context: AuthContext = Depends(get_auth_context),
    service: PlanService = Depends(get_plan_service),
) -> PlanResponse:
    try:
        return _plan_response(service.change_status(context, plan_id, payload.status.value))
    except ReservationError as exc:
        raise http_error_from(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _unexpected("change plan status", exc) from exc


@router.post(
    "/{plan_id}/convert",
    response_model=ConvertPlanResponse,
    status_code=status.HTTP_200_OK,
)
def convert_plan_to_campaign(
    plan_id: str,
    payload: ConvertPlanRequest | None = None,
    context: AuthContext = Depends(get_auth_context),
    service: ConversionService = Depends(get_conversion_service),
) -> ConvertPlanResponse:
    """Run the conversion workflow; repeating the call returns the same campaign."""
    payload = payload or ConvertPlanRequest()
    try:
        outcome = service.convert(
            context,
            plan_id,
            campaign_name=payload.campaign_name,
            start_date=payload.start_date,
            end_date=payload.end_date,
            notes=payload.notes,
        )
        return ConvertPlanResponse(**outcome.to_dict())
    except ReservationError as exc:
        raise http_error_from(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        raise _unexpected("convert plan to campaign", exc) from exc
