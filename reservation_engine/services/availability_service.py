"""Read-only availability classification over a tenant's inventory."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Sequence

from reservation_engine.domain.constraints import build_window
from reservation_engine.domain.intervals import Classification, classify_resource
from reservation_engine.domain.models import (
    AuthContext,
    AvailabilityStatus,
    DateWindow,
    Resource,
)
from reservation_engine.domain.pricing import prorated_daily_rate
from reservation_engine.repository.campaign_store import CampaignStore
from reservation_engine.repository.data_repository import DataRepository
from reservation_engine.repository.resource_store import ResourceStore
from reservation_engine.services.auth_service import require_role
from reservation_engine.services.errors import ReservationValidationError
from reservation_engine.utils.config import Settings, get_settings
from reservation_engine.utils.logger import get_logger


logger = get_logger(__name__)

_NO_FILTER = "all"


@dataclass(frozen=True)
class AvailabilityEntry:
    resource: Resource
    classification: Classification

    def to_dict(self) -> dict[str, Any]:
        overlapping = self.classification.overlapping
        payload = self.resource.to_dict()
        payload.update(
            {
                "availability_status": self.classification.status.value,
                "available_from": (
                    self.classification.available_from.isoformat()
                    if self.classification.available_from
                    else None
                ),
                "current_booking": overlapping[0].to_dict() if overlapping else None,
                "all_bookings": [booking.to_dict() for booking in overlapping],
                "conflicting_bookings": [
                    booking.to_dict() for booking in self.classification.conflicting
                ],
            }
        )
        return payload


@dataclass(frozen=True)
class AvailabilitySummary:
    total_assets: int
    available_count: int
    available_soon_count: int
    booked_count: int
    conflict_count: int
    total_sqft_available: float
    potential_revenue: float

    def to_dict(self) -> dict[str, float | int]:
        return {
            "total_assets": self.total_assets,
            "available_count": self.available_count,
            "available_soon_count": self.available_soon_count,
            "booked_count": self.booked_count,
            "conflict_count": self.conflict_count,
            "total_sqft_available": self.total_sqft_available,
            "potential_revenue": self.potential_revenue,
        }


@dataclass(frozen=True)
class AvailabilityReport:
    available: list[AvailabilityEntry] = field(default_factory=list)
    available_soon: list[AvailabilityEntry] = field(default_factory=list)
    booked: list[AvailabilityEntry] = field(default_factory=list)
    conflicts: list[AvailabilityEntry] = field(default_factory=list)
    summary: AvailabilitySummary = field(
        default_factory=lambda: AvailabilitySummary(0, 0, 0, 0, 0, 0.0, 0.0)
    )
    search_params: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "available": [entry.to_dict() for entry in self.available],
            "available_soon": [entry.to_dict() for entry in self.available_soon],
            "booked": [entry.to_dict() for entry in self.booked],
            "conflicts": [entry.to_dict() for entry in self.conflicts],
            "summary": self.summary.to_dict(),
            "search_params": dict(self.search_params),
        }


def _normalize_filter(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.strip()
    if not cleaned or cleaned.lower() == _NO_FILTER:
        return None
    return cleaned


class AvailabilityQueryService:
    """Classifies every resource in scope; never writes and never locks."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        resource_store: Optional[ResourceStore] = None,
        campaign_store: Optional[CampaignStore] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._resources = resource_store or ResourceStore(self._repository)
        self._campaigns = campaign_store or CampaignStore(self._repository)

    def evaluate(
        self,
        tenant_id: str,
        resources: Sequence[Resource],
        windows: dict[str, DateWindow],
        *,
        ignore_campaign_ids: Iterable[str] = (),
    ) -> dict[str, Classification]:
        """Classify each resource against its own window using persisted bookings."""
        ignored = tuple(ignore_campaign_ids)
        bookings = self._campaigns.list_active_bookings(
            tenant_id,
            [resource.resource_id for resource in resources],
            self._settings.active_campaign_statuses,
        )
        return {
            resource.resource_id: classify_resource(
                resource,
                bookings.get(resource.resource_id, []),
                windows[resource.resource_id],
                ignore_campaign_ids=ignored,
            )
            for resource in resources
        }

    def query(
        self,
        context: AuthContext,
        start_date: str,
        end_date: str,
        city: Optional[str] = None,
        media_type: Optional[str] = None,
    ) -> AvailabilityReport:
        require_role(context, self._settings.availability_roles)
        try:
            window = build_window(start_date, end_date)
        except ValueError as exc:
            raise ReservationValidationError(str(exc)) from exc

        city_filter = _normalize_filter(city)
        media_type_filter = _normalize_filter(media_type)
        search_params = {
            "start_date": window.start.isoformat(),
            "end_date": window.end.isoformat(),
            "city": city_filter or _NO_FILTER,
            "media_type": media_type_filter or _NO_FILTER,
        }

        resources = self._resources.list_by_tenant(
            context.tenant_id,
            city=city_filter,
            media_type=media_type_filter,
        )
        classifications = self.evaluate(
            context.tenant_id,
            resources,
            {resource.resource_id: window for resource in resources},
        )

        buckets: dict[AvailabilityStatus, list[AvailabilityEntry]] = {
            status: [] for status in AvailabilityStatus
        }
        for resource in resources:
            classification = classifications[resource.resource_id]
            buckets[classification.status].append(AvailabilityEntry(resource, classification))

        available = buckets[AvailabilityStatus.AVAILABLE]
        potential_revenue = sum(
            prorated_daily_rate(entry.resource.card_rate, self._settings.prorata_days)
            * window.days
            for entry in available
        )
        summary = AvailabilitySummary(
            total_assets=len(resources),
            available_count=len(available),
            available_soon_count=len(buckets[AvailabilityStatus.AVAILABLE_SOON]),
            booked_count=len(buckets[AvailabilityStatus.BOOKED]),
            conflict_count=len(buckets[AvailabilityStatus.CONFLICT]),
            total_sqft_available=round(sum(entry.resource.total_sqft for entry in available), 2),
            potential_revenue=round(potential_revenue, 2),
        )
        logger.info(
            "Availability evaluated | tenant_id=%s | window=%s..%s | total=%s | available=%s | conflicts=%s",
            context.tenant_id,
            window.start,
            window.end,
            summary.total_assets,
            summary.available_count,
            summary.conflict_count,
        )
        return AvailabilityReport(
            available=available,
            available_soon=buckets[AvailabilityStatus.AVAILABLE_SOON],
            booked=buckets[AvailabilityStatus.BOOKED],
            conflicts=buckets[AvailabilityStatus.CONFLICT],
            summary=summary,
            search_params=search_params,
        )
