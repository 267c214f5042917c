"""Tests for the pure interval overlap evaluator."""

from __future__ import annotations

from datetime import date, timedelta
from itertools import product

import pytest

from reservation_engine.domain.intervals import (
    classify,
    classify_resource,
    collect_bookings,
    windows_overlap,
)
from reservation_engine.domain.models import (
    AvailabilityStatus,
    Booking,
    DateWindow,
    Resource,
    ResourceStatus,
)


def window(start: str, end: str) -> DateWindow:
    return DateWindow(date.fromisoformat(start), date.fromisoformat(end))


def booking(campaign_id: str, start: str, end: str) -> Booking:
    return Booking(campaign_id=campaign_id, window=window(start, end))


def test_shared_boundary_day_counts_as_overlap() -> None:
    assert windows_overlap(window("2024-01-01", "2024-01-10"), window("2024-01-10", "2024-01-20"))
    assert not windows_overlap(
        window("2024-01-01", "2024-01-09"), window("2024-01-10", "2024-01-20")
    )


def test_bookings_sharing_a_day_inside_query_window_are_a_conflict() -> None:
    result = classify(
        ResourceStatus.BOOKED,
        [
            booking("CAM-1", "2024-01-01", "2024-01-10"),
            booking("CAM-2", "2024-01-10", "2024-01-20"),
        ],
        window("2024-01-05", "2024-01-15"),
    )

    assert result.status is AvailabilityStatus.CONFLICT
    assert {item.campaign_id for item in result.conflicting} == {"CAM-1", "CAM-2"}
    assert result.available_from is None


def test_booking_ending_inside_window_is_available_soon() -> None:
    result = classify(
        ResourceStatus.BOOKED,
        [booking("CAM-1", "2024-03-01", "2024-03-31")],
        window("2024-03-15", "2024-04-15"),
    )

    assert result.status is AvailabilityStatus.AVAILABLE_SOON
    assert result.available_from == date(2024, 4, 1)


def test_booking_reaching_window_end_is_booked() -> None:
    result = classify(
        ResourceStatus.BOOKED,
        [booking("CAM-1", "2024-03-01", "2024-04-15")],
        window("2024-03-15", "2024-04-15"),
    )

    assert result.status is AvailabilityStatus.BOOKED
    assert result.available_from is None


def test_booking_before_window_leaves_resource_available() -> None:
    result = classify(
        ResourceStatus.BOOKED,
        [booking("CAM-1", "2024-02-01", "2024-02-29")],
        window("2024-03-01", "2024-03-31"),
    )

    assert result.status is AvailabilityStatus.AVAILABLE
    assert result.overlapping == ()


def test_disjoint_bookings_merge_to_latest_end() -> None:
    result = classify(
        ResourceStatus.AVAILABLE,
        [
            booking("CAM-1", "2024-03-01", "2024-03-05"),
            booking("CAM-2", "2024-03-07", "2024-03-10"),
        ],
        window("2024-03-01", "2024-03-20"),
    )

    assert result.status is AvailabilityStatus.AVAILABLE_SOON
    assert result.available_from == date(2024, 3, 11)
    assert [item.campaign_id for item in result.overlapping] == ["CAM-1", "CAM-2"]


@pytest.mark.parametrize("status", [ResourceStatus.BLOCKED, ResourceStatus.MAINTENANCE])
def test_unbookable_resources_are_reported_booked(status: ResourceStatus) -> None:
    result = classify(status, [], window("2024-03-01", "2024-03-31"))

    assert result.status is AvailabilityStatus.BOOKED
    assert result.available_from is None


def test_collect_bookings_deduplicates_resource_window_by_campaign() -> None:
    held = window("2024-03-01", "2024-03-31")
    resource = Resource(
        resource_id="R1",
        tenant_id="t",
        code="R1",
        city="Hyderabad",
        media_type="Hoarding",
        card_rate=1000.0,
        status=ResourceStatus.BOOKED,
        reservation_window=held,
        active_campaign_ref="CAM-1",
    )

    collected = collect_bookings(resource, [Booking(campaign_id="CAM-1", window=held)])

    assert [item.campaign_id for item in collected] == ["CAM-1"]


def test_own_campaign_can_be_ignored() -> None:
    held = window("2024-03-01", "2024-03-31")
    resource = Resource(
        resource_id="R1",
        tenant_id="t",
        code="R1",
        city="Hyderabad",
        media_type="Hoarding",
        card_rate=1000.0,
        status=ResourceStatus.BOOKED,
        reservation_window=held,
        active_campaign_ref="CAM-1",
    )

    result = classify_resource(
        resource,
        [Booking(campaign_id="CAM-1", window=held)],
        held,
        ignore_campaign_ids=["CAM-1"],
    )

    assert result.status is AvailabilityStatus.AVAILABLE


def test_resource_rejects_booked_status_without_window() -> None:
    with pytest.raises(ValueError):
        Resource(
            resource_id="R1",
            tenant_id="t",
            code="R1",
            city="Hyderabad",
            media_type="Hoarding",
            card_rate=1000.0,
            status=ResourceStatus.BOOKED,
        )


def test_window_rejects_inverted_dates() -> None:
    with pytest.raises(ValueError):
        window("2024-03-02", "2024-03-01")


def test_classification_is_total_and_consistent() -> None:
    base = date(2024, 1, 1)
    spans = [(0, 2), (1, 5), (3, 3), (6, 9)]
    query = DateWindow(base + timedelta(days=2), base + timedelta(days=6))

    candidates = [
        Booking(f"CAM-{index}", DateWindow(base + timedelta(days=s), base + timedelta(days=e)))
        for index, (s, e) in enumerate(spans)
    ]
    for mask in product([False, True], repeat=len(candidates)):
        chosen = [item for item, keep in zip(candidates, mask) if keep]
        result = classify(ResourceStatus.AVAILABLE, chosen, query)

        assert result.status in set(AvailabilityStatus)
        if result.status is AvailabilityStatus.AVAILABLE_SOON:
            assert result.available_from is not None
            assert query.start < result.available_from <= query.end
        else:
            assert result.available_from is None
        if result.status is AvailabilityStatus.AVAILABLE:
            assert not any(windows_overlap(item.window, query) for item in chosen)
        if result.status is AvailabilityStatus.CONFLICT:
            assert len(result.conflicting) >= 2
