"""Conversion workflow tests: happy path, idempotency, conflicts, partial failure and reconcile."""

from __future__ import annotations

import itertools
import re
import threading
from datetime import date

import pytest

from reservation_engine.domain.models import (
    AuthContext,
    ConversionStep,
    DateWindow,
    PlanStatus,
    ResourceStatus,
    Role,
)
from reservation_engine.repository.campaign_store import CampaignStore
from reservation_engine.repository.data_repository import RepositoryError
from reservation_engine.repository.plan_store import PlanStore
from reservation_engine.repository.resource_store import ResourceStore
from reservation_engine.services.availability_service import AvailabilityQueryService
from reservation_engine.services.conversion_service import ConversionService
from reservation_engine.services.errors import (
    BookingConflictError,
    ConflictError,
    ConversionTimeoutError,
    ForbiddenError,
    InvalidTransitionError,
    PartialFailureError,
    PlanNotFoundError,
    ReservationRaceError,
    ReservationValidationError,
)
from reservation_engine.services.id_allocator import IdAllocator
from reservation_engine.services.lock_service import ResourceLockService
from reservation_engine.services.plan_service import PlanService
from conftest import OTHER_TENANT, TENANT


@pytest.fixture
def lock_service(settings) -> ResourceLockService:
    return ResourceLockService(settings)


@pytest.fixture
def id_allocator(repository, settings) -> IdAllocator:
    return IdAllocator(repository, settings)


@pytest.fixture
def plans(repository, settings, id_allocator, lock_service) -> PlanService:
    return PlanService(repository, settings, id_allocator=id_allocator, lock_service=lock_service)


@pytest.fixture
def build_conversion(repository, settings, id_allocator, lock_service):
    def _build(clock=None) -> ConversionService:
        kwargs = {} if clock is None else {"clock": clock}
        return ConversionService(
            repository,
            settings,
            lock_service=lock_service,
            id_allocator=id_allocator,
            availability_service=AvailabilityQueryService(repository, settings),
            **kwargs,
        )

    return _build


@pytest.fixture
def conversion(build_conversion) -> ConversionService:
    return build_conversion()


@pytest.fixture
def make_plan(plans, admin):
    def _make(
        resource_ids,
        start: str = "2024-03-01",
        end: str = "2024-03-31",
        *,
        approve: bool = True,
        sales_price: float = 0.0,
    ) -> str:
        plan_id = plans.create_plan(
            admin,
            plan_name="Summer launch",
            client_name="Acme",
            start_date=start,
            end_date=end,
        ).plan.plan_id
        for resource_id in resource_ids:
            plans.add_item(admin, plan_id, resource_id=resource_id, sales_price=sales_price)
        if approve:
            plans.change_status(admin, plan_id, PlanStatus.APPROVED.value)
        return plan_id

    return _make


def test_conversion_books_resources_and_finalizes_plan(
    conversion, make_plan, make_resource, resource_store, repository, admin
) -> None:
    for resource_id in ("R1", "R2"):
        make_resource(resource_id, card_rate=30000.0)
    plan_id = make_plan(["R1", "R2"])

    outcome = conversion.convert(admin, plan_id)

    assert re.match(r"^CAM-\d{6}-0001$", outcome.campaign_id)
    assert outcome.already_converted is False
    assert outcome.warnings == []
    assert outcome.completed_steps == list(ConversionStep)
    assert outcome.campaign.total_assets == 2
    assert outcome.campaign.total_amount == 62000.0
    assert outcome.campaign.workflow_step is ConversionStep.FINALIZE_PLAN
    assert all(asset.reservation_applied for asset in outcome.assets)

    for resource_id in ("R1", "R2"):
        resource = resource_store.get(TENANT, resource_id)
        assert resource.status is ResourceStatus.BOOKED
        assert resource.active_campaign_ref == outcome.campaign_id
        assert resource.reservation_window == DateWindow(date(2024, 3, 1), date(2024, 3, 31))

    plan = PlanStore(repository).get_plan(TENANT, plan_id)
    assert plan.status is PlanStatus.CONVERTED
    assert plan.converted_campaign_id == outcome.campaign_id

    audit = repository.list_audit_events(TENANT)
    assert audit[-1]["action"] == "convert_plan"
    assert audit[-1]["status"] == "success"
    assert outcome.campaign_id in audit[-1]["record_ids"]


def test_repeated_conversion_returns_existing_campaign(
    conversion, make_plan, make_resource, campaign_store, admin
) -> None:
    make_resource("R1")
    plan_id = make_plan(["R1"])

    first = conversion.convert(admin, plan_id)
    second = conversion.convert(admin, plan_id)

    assert second.already_converted is True
    assert second.campaign_id == first.campaign_id
    assert campaign_store.count_campaigns(TENANT) == 1


def test_conflicting_booking_aborts_without_writes(
    conversion, make_plan, make_resource, make_booking, campaign_store, resource_store, admin
) -> None:
    make_resource("R1")
    make_resource("R2")
    make_booking("CAM-OLD", "R2", date(2024, 3, 10), date(2024, 4, 10))
    plan_id = make_plan(["R1", "R2"])

    with pytest.raises(BookingConflictError) as caught:
        conversion.convert(admin, plan_id)

    assert [item["resource_id"] for item in caught.value.conflicting_resources] == ["R2"]
    assert campaign_store.get_campaign_by_plan(TENANT, plan_id) is None
    assert resource_store.get(TENANT, "R1").status is ResourceStatus.AVAILABLE


def test_resource_freed_mid_window_still_blocks_conversion(
    conversion, make_plan, make_resource, make_booking, admin
) -> None:
    make_resource("R1")
    make_booking("CAM-OLD", "R1", date(2024, 2, 15), date(2024, 3, 5))
    plan_id = make_plan(["R1"])

    with pytest.raises(BookingConflictError) as caught:
        conversion.convert(admin, plan_id)

    assert caught.value.conflicting_resources[0]["availability_status"] == "available_soon"
    assert caught.value.conflicting_resources[0]["available_from"] == "2024-03-06"


def test_back_to_back_plans_both_convert(
    conversion, make_plan, make_resource, resource_store, admin
) -> None:
    make_resource("R1")
    march = make_plan(["R1"], "2024-03-01", "2024-03-31")
    april = make_plan(["R1"], "2024-04-01", "2024-04-30")

    conversion.convert(admin, march)
    second = conversion.convert(admin, april)

    resource = resource_store.get(TENANT, "R1")
    assert resource.active_campaign_ref == second.campaign_id
    assert resource.reservation_window.start == date(2024, 4, 1)


def test_concurrent_conversions_of_overlapping_plans_book_once(
    conversion, make_plan, make_resource, resource_store, campaign_store, admin
) -> None:
    make_resource("R1")
    first = make_plan(["R1"], "2024-03-01", "2024-03-31")
    second = make_plan(["R1"], "2024-03-15", "2024-04-15")
    barrier = threading.Barrier(2)
    results: dict[str, object] = {}

    def run(plan_id: str) -> None:
        barrier.wait()
        try:
            results[plan_id] = conversion.convert(admin, plan_id)
        except ConflictError as exc:
            results[plan_id] = exc

    threads = [threading.Thread(target=run, args=(plan_id,)) for plan_id in (first, second)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    failures = [value for value in results.values() if isinstance(value, ConflictError)]
    assert len(results) == 2
    assert len(failures) == 1
    assert campaign_store.count_campaigns(TENANT) == 1

    winner = next(value for value in results.values() if not isinstance(value, ConflictError))
    resource = resource_store.get(TENANT, "R1")
    assert resource.status is ResourceStatus.BOOKED
    assert resource.active_campaign_ref == winner.campaign_id


def test_resource_taken_after_assets_created_raises_race(
    conversion, make_plan, make_resource, resource_store, campaign_store, plans, repository, admin, monkeypatch
) -> None:
    for resource_id in ("R1", "R2"):
        make_resource(resource_id)
    plan_id = make_plan(["R1", "R2"])
    original_create_assets = CampaignStore.create_campaign_assets

    def create_assets_then_book_elsewhere(self, assets):
        created = original_create_assets(self, assets)
        resource_store.update(
            TENANT,
            "R1",
            {
                "status": ResourceStatus.BOOKED,
                "booked_from": date(2024, 3, 1),
                "booked_to": date(2024, 3, 31),
                "active_campaign_ref": "CAM-OUTSIDE",
            },
        )
        return created

    monkeypatch.setattr(CampaignStore, "create_campaign_assets", create_assets_then_book_elsewhere)

    with pytest.raises(ReservationRaceError) as excinfo:
        conversion.convert(admin, plan_id)

    error = excinfo.value
    assert error.campaign_id.startswith("CAM-")
    assert error.outstanding_resource_ids == ["R1", "R2"]
    assert [item["resource_id"] for item in error.conflicting_resources] == ["R1"]
    assert resource_store.get(TENANT, "R1").active_campaign_ref == "CAM-OUTSIDE"
    assert resource_store.get(TENANT, "R2").status is ResourceStatus.AVAILABLE
    assert plans.get_plan(admin, plan_id).plan.status is not PlanStatus.CONVERTED
    assert campaign_store.get_campaign(TENANT, error.campaign_id) is not None
    assert repository.list_audit_events(TENANT)[-1]["status"] == "failed"


def test_rejected_plan_cannot_be_converted(
    conversion, make_plan, make_resource, resource_store, campaign_store, plans, admin
) -> None:
    make_resource("R1")
    plan_id = make_plan(["R1"], approve=False)
    plans.change_status(admin, plan_id, PlanStatus.REJECTED.value)

    with pytest.raises(InvalidTransitionError):
        conversion.convert(admin, plan_id)

    assert campaign_store.count_campaigns(TENANT) == 0
    assert resource_store.get(TENANT, "R1").status is ResourceStatus.AVAILABLE
    assert plans.get_plan(admin, plan_id).plan.status is PlanStatus.REJECTED


def test_reservation_failure_is_partial_and_reconcilable(
    conversion, make_plan, make_resource, resource_store, campaign_store, repository, admin, monkeypatch
) -> None:
    for resource_id in ("R1", "R2", "R3"):
        make_resource(resource_id)
    plan_id = make_plan(["R1", "R2", "R3"])

    original_reserve = ResourceStore.reserve
    calls = itertools.count(1)

    def flaky_reserve(self, **kwargs):
        if next(calls) == 2:
            raise RepositoryError("disk I/O error")
        return original_reserve(self, **kwargs)

    monkeypatch.setattr(ResourceStore, "reserve", flaky_reserve)

    with pytest.raises(PartialFailureError) as caught:
        conversion.convert(admin, plan_id)

    failure = caught.value
    assert failure.last_completed_step == "create_campaign_assets"
    assert failure.outstanding_resource_ids == ["R2", "R3"]
    assert resource_store.get(TENANT, "R1").status is ResourceStatus.BOOKED
    assert resource_store.get(TENANT, "R2").status is ResourceStatus.AVAILABLE
    assert PlanStore(repository).get_plan(TENANT, plan_id).status is PlanStatus.APPROVED
    assert repository.list_audit_events(TENANT)[-1]["status"] == "failed"

    monkeypatch.setattr(ResourceStore, "reserve", original_reserve)
    outcome = conversion.reconcile(admin, failure.campaign_id)

    assert outcome.campaign_id == failure.campaign_id
    assert outcome.campaign.workflow_step is ConversionStep.FINALIZE_PLAN
    assert len(outcome.assets) == 3
    assert all(asset.reservation_applied for asset in outcome.assets)
    for resource_id in ("R1", "R2", "R3"):
        assert resource_store.get(TENANT, resource_id).active_campaign_ref == failure.campaign_id
    assert PlanStore(repository).get_plan(TENANT, plan_id).status is PlanStatus.CONVERTED
    assert campaign_store.count_campaigns(TENANT) == 1


def test_reconvert_after_partial_failure_resumes_same_campaign(
    conversion, make_plan, make_resource, campaign_store, admin, monkeypatch
) -> None:
    make_resource("R1")
    plan_id = make_plan(["R1"])

    def broken_reserve(self, **kwargs):
        raise RepositoryError("database is locked")

    original_reserve = ResourceStore.reserve
    monkeypatch.setattr(ResourceStore, "reserve", broken_reserve)
    with pytest.raises(PartialFailureError) as caught:
        conversion.convert(admin, plan_id)
    monkeypatch.setattr(ResourceStore, "reserve", original_reserve)

    outcome = conversion.convert(admin, plan_id)

    assert outcome.campaign_id == caught.value.campaign_id
    assert any(warning.startswith("Resumed conversion") for warning in outcome.warnings)
    assert campaign_store.count_campaigns(TENANT) == 1


def test_campaign_asset_prices_are_snapshots(
    conversion, make_plan, make_resource, resource_store, campaign_store, admin
) -> None:
    make_resource("R1", card_rate=60000.0)
    plan_id = make_plan(["R1"], "2024-03-01", "2024-03-30", sales_price=45000.0)

    outcome = conversion.convert(admin, plan_id)
    resource_store.update(TENANT, "R1", {"card_rate": 99000.0, "location": "Moved"})

    asset = campaign_store.list_campaign_assets(TENANT, outcome.campaign_id)[0]
    assert asset.card_rate == 60000.0
    assert asset.negotiated_rate == 45000.0
    assert asset.rent_amount == 45000.0
    assert asset.location == "R1 junction"


def test_plan_of_another_tenant_is_not_found(
    conversion, make_plan, make_resource
) -> None:
    make_resource("R1")
    plan_id = make_plan(["R1"])

    with pytest.raises(PlanNotFoundError):
        conversion.convert(AuthContext(tenant_id=OTHER_TENANT, role=Role.ADMIN), plan_id)


def test_draft_plan_converts_with_warning(conversion, make_plan, make_resource, admin) -> None:
    make_resource("R1")
    plan_id = make_plan(["R1"], approve=False)

    outcome = conversion.convert(admin, plan_id)

    assert outcome.warnings == [f"Plan {plan_id} is Draft, not Approved"]


def test_plan_without_items_is_rejected(conversion, make_plan, admin) -> None:
    plan_id = make_plan([], approve=False)

    with pytest.raises(ReservationValidationError):
        conversion.convert(admin, plan_id)


def test_finance_cannot_convert_and_attempt_is_audited(
    conversion, make_plan, make_resource, repository
) -> None:
    make_resource("R1")
    plan_id = make_plan(["R1"])

    with pytest.raises(ForbiddenError):
        conversion.convert(AuthContext(tenant_id=TENANT, role=Role.FINANCE, user_id="fin-1"), plan_id)

    event = repository.list_audit_events(TENANT)[-1]
    assert event["status"] == "failed"
    assert event["user_id"] == "fin-1"
    assert event["metadata"]["error_type"] == "ForbiddenError"


def test_deadline_before_any_write_times_out_cleanly(
    build_conversion, make_plan, make_resource, campaign_store, resource_store, admin
) -> None:
    make_resource("R1")
    plan_id = make_plan(["R1"])
    ticks = itertools.chain([0.0, 0.0], itertools.repeat(1000.0))
    service = build_conversion(clock=lambda: next(ticks))

    with pytest.raises(ConversionTimeoutError):
        service.convert(admin, plan_id)

    assert campaign_store.count_campaigns(TENANT) == 0
    assert resource_store.get(TENANT, "R1").status is ResourceStatus.AVAILABLE


def test_deadline_after_campaign_creation_is_partial_and_reconcilable(
    build_conversion, make_plan, make_resource, resource_store, admin
) -> None:
    make_resource("R1")
    make_resource("R2")
    plan_id = make_plan(["R1", "R2"])
    ticks = itertools.chain([0.0] * 6, itertools.repeat(1000.0))
    service = build_conversion(clock=lambda: next(ticks))

    with pytest.raises(PartialFailureError) as caught:
        service.convert(admin, plan_id)

    assert caught.value.last_completed_step == "create_campaign"
    assert caught.value.outstanding_resource_ids == ["R1", "R2"]

    outcome = build_conversion().reconcile(admin, caught.value.campaign_id)

    assert len(outcome.assets) == 2
    assert resource_store.get(TENANT, "R2").active_campaign_ref == caught.value.campaign_id
