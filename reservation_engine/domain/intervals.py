"""Pure interval overlap evaluation for exclusive resource bookings."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Sequence

from reservation_engine.domain.models import (
    AvailabilityStatus,
    Booking,
    DateWindow,
    Resource,
    ResourceStatus,
)


_UNBOOKABLE_STATUSES = frozenset({ResourceStatus.BLOCKED, ResourceStatus.MAINTENANCE})


@dataclass(frozen=True)
class Classification:
    """Outcome of evaluating one resource against a query window."""

    status: AvailabilityStatus
    available_from: date | None = None
    overlapping: tuple[Booking, ...] = field(default_factory=tuple)
    conflicting: tuple[Booking, ...] = field(default_factory=tuple)

    @property
    def is_available(self) -> bool:
        return self.status is AvailabilityStatus.AVAILABLE


def windows_overlap(first: DateWindow, second: DateWindow) -> bool:
    """Closed-interval intersection; a shared boundary day counts as overlap."""
    return first.start <= second.end and second.start <= first.end


def collect_bookings(
    resource: Resource,
    campaign_bookings: Iterable[Booking],
    *,
    ignore_campaign_ids: Iterable[str] = (),
) -> list[Booking]:
    """Merge campaign-asset bookings with the resource's own window.

    Rows are keyed by campaign id, so the resource's current window and the
    campaign-asset row of the same campaign count once.
    """
    ignored = set(ignore_campaign_ids)
    by_campaign: dict[str, Booking] = {}
    for booking in campaign_bookings:
        if booking.campaign_id in ignored:
            continue
        by_campaign.setdefault(booking.campaign_id, booking)

    if (
        resource.reservation_window is not None
        and resource.active_campaign_ref is not None
        and resource.active_campaign_ref not in ignored
        and resource.active_campaign_ref not in by_campaign
    ):
        by_campaign[resource.active_campaign_ref] = Booking(
            campaign_id=resource.active_campaign_ref,
            window=resource.reservation_window,
        )

    return sorted(
        by_campaign.values(),
        key=lambda booking: (booking.window.start, booking.window.end, booking.campaign_id),
    )


def find_conflicting(bookings: Sequence[Booking]) -> tuple[Booking, ...]:
    """Return every booking that intersects at least one other booking."""
    conflicting: list[Booking] = []
    for index, booking in enumerate(bookings):
        for other_index, other in enumerate(bookings):
            if index == other_index:
                continue
            if windows_overlap(booking.window, other.window):
                conflicting.append(booking)
                break
    return tuple(conflicting)


def classify(
    status: ResourceStatus,
    bookings: Sequence[Booking],
    query_window: DateWindow,
) -> Classification:
    """Classify a resource into exactly one availability category.

    Conflict is reported whenever two intersecting bookings also intersect
    each other; the evaluator never picks a winner between them.
    """
    overlapping = tuple(
        booking for booking in bookings if windows_overlap(booking.window, query_window)
    )

    conflicting = find_conflicting(overlapping)
    if conflicting:
        return Classification(
            status=AvailabilityStatus.CONFLICT,
            overlapping=overlapping,
            conflicting=conflicting,
        )

    if status in _UNBOOKABLE_STATUSES:
        return Classification(status=AvailabilityStatus.BOOKED, overlapping=overlapping)

    if not overlapping:
        return Classification(status=AvailabilityStatus.AVAILABLE)

    latest_end = max(booking.window.end for booking in overlapping)
    if latest_end < query_window.end:
        return Classification(
            status=AvailabilityStatus.AVAILABLE_SOON,
            available_from=latest_end + timedelta(days=1),
            overlapping=overlapping,
        )
    return Classification(status=AvailabilityStatus.BOOKED, overlapping=overlapping)


def classify_resource(
    resource: Resource,
    campaign_bookings: Iterable[Booking],
    query_window: DateWindow,
    *,
    ignore_campaign_ids: Iterable[str] = (),
) -> Classification:
    bookings = collect_bookings(
        resource,
        campaign_bookings,
        ignore_campaign_ids=ignore_campaign_ids,
    )
    return classify(resource.status, bookings, query_window)
