"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from typing import Any

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from reservation_engine.domain.models import AuthContext
from reservation_engine.services.auth_service import AuthService, InvalidTokenError
from reservation_engine.services.availability_service import AvailabilityQueryService
from reservation_engine.services.campaign_service import CampaignService
from reservation_engine.services.conversion_service import ConversionService
from reservation_engine.services.errors import (
    ConflictError,
    ConversionTimeoutError,
    ForbiddenError,
    NotFoundError,
    PartialFailureError,
    ReservationError,
    ReservationRaceError,
    ReservationValidationError,
)
from reservation_engine.services.plan_service import PlanService
from reservation_engine.services.utilization_service import UtilizationService
from reservation_engine.utils.config import get_settings


bearer_scheme = HTTPBearer(auto_error=False)


def _service_from_state(request: Request, name: str, label: str) -> Any:
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} service is not initialized",
        )
    return service


def get_auth_service(request: Request) -> AuthService:
    service = getattr(request.app.state, "auth_service", None)
    if service is None:
        service = AuthService(settings=get_settings())
        request.app.state.auth_service = service
    return service


def get_availability_service(request: Request) -> AvailabilityQueryService:
    return _service_from_state(request, "availability_service", "Availability")


def get_plan_service(request: Request) -> PlanService:
    return _service_from_state(request, "plan_service", "Plan")


def get_conversion_service(request: Request) -> ConversionService:
    return _service_from_state(request, "conversion_service", "Conversion")


def get_campaign_service(request: Request) -> CampaignService:
    return _service_from_state(request, "campaign_service", "Campaign")


def get_utilization_service(request: Request) -> UtilizationService:
    return _service_from_state(request, "utilization_service", "Utilization")


async def get_auth_context(
    x_tenant_id: str | None = Header(default=None),
    x_role: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthContext:
    """Resolve the caller from headers forwarded by the upstream auth layer."""
    try:
        auth_service.validate_bearer_token(credentials.credentials if credentials else None)
    except InvalidTokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
    try:
        return auth_service.resolve_context(x_tenant_id, x_role, x_user_id)
    except ForbiddenError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(exc),
        ) from exc


def http_error_from(exc: ReservationError) -> HTTPException:
    """Map the service exception hierarchy onto HTTP status codes."""
    if isinstance(exc, ReservationValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ForbiddenError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if isinstance(exc, ReservationRaceError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": str(exc),
                "campaign_id": exc.campaign_id,
                "outstanding_resources": exc.outstanding_resource_ids,
                "conflicting_resources": exc.conflicting_resources,
            },
        )
    if isinstance(exc, ConflictError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(exc), "conflicting_resources": exc.conflicting_resources},
        )
    if isinstance(exc, ConversionTimeoutError):
        return HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(exc))
    if isinstance(exc, PartialFailureError):
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=exc.to_dict(),
        )
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
