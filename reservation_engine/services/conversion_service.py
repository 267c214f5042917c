"""Plan-to-campaign conversion workflow.

The conversion is a saga of ordered, individually idempotent steps rather than
one transaction. Nothing is written until revalidation has passed under the
resource locks. From id allocation onward every step records its progress on
the campaign (`workflow_step`) or on each campaign asset
(`reservation_applied`), so an interrupted run surfaces as a
`PartialFailureError` that `reconcile` can finish without duplicating rows.
"""

from __future__ import annotations

import sqlite3
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from reservation_engine.domain.constraints import (
    WorkflowLimits,
    parse_iso_date,
    validate_workflow_limits,
)
from reservation_engine.domain.intervals import Classification
from reservation_engine.domain.models import (
    AuthContext,
    Campaign,
    CampaignAsset,
    CampaignStatus,
    ConversionStep,
    DateWindow,
    Plan,
    PlanLineItem,
    PlanStatus,
    Resource,
    ResourceStatus,
)
from reservation_engine.domain.pricing import RentQuote, quote_rent
from reservation_engine.repository.campaign_store import CampaignStore
from reservation_engine.repository.data_repository import DataRepository, RepositoryError
from reservation_engine.repository.plan_store import PlanStore
from reservation_engine.repository.resource_store import ResourceStore
from reservation_engine.services.auth_service import require_role
from reservation_engine.services.availability_service import AvailabilityQueryService
from reservation_engine.services.campaign_service import CampaignView
from reservation_engine.services.errors import (
    BookingConflictError,
    CampaignNotFoundError,
    ConversionTimeoutError,
    InvalidTransitionError,
    PartialFailureError,
    PlanNotFoundError,
    ReservationError,
    ReservationRaceError,
    ReservationValidationError,
    ResourceNotFoundError,
)
from reservation_engine.services.id_allocator import IdAllocator
from reservation_engine.services.lock_service import (
    ResourceLockService,
    plan_lock_key,
    resource_lock_key,
)
from reservation_engine.utils.config import Settings, get_settings
from reservation_engine.utils.logger import get_logger, log_fields


logger = get_logger(__name__)

_AUDIT_FUNCTION = "convert-plan-to-campaign"


@dataclass(frozen=True)
class ConversionOutcome:
    campaign: Campaign
    assets: list[CampaignAsset]
    already_converted: bool = False
    warnings: list[str] = field(default_factory=list)
    completed_steps: list[ConversionStep] = field(default_factory=list)

    @property
    def campaign_id(self) -> str:
        return self.campaign.campaign_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "campaign_id": self.campaign.campaign_id,
            "campaign": CampaignView(self.campaign, self.assets).to_dict(),
            "already_converted": self.already_converted,
            "warnings": list(self.warnings),
            "completed_steps": [step.value for step in self.completed_steps],
        }


@dataclass(frozen=True)
class _ConversionDraft:
    """Everything loaded in step 2, keyed by resource id."""

    items: list[PlanLineItem]
    resources: dict[str, Resource]
    windows: dict[str, DateWindow]
    quotes: dict[str, RentQuote]

    @property
    def resource_ids(self) -> list[str]:
        return [item.resource_id for item in self.items]

    @property
    def total_amount(self) -> float:
        return round(sum(quote.rent_amount for quote in self.quotes.values()), 2)


def _conflict_detail(resource: Resource, classification: Classification) -> dict[str, Any]:
    return {
        "resource_id": resource.resource_id,
        "code": resource.code,
        "location": resource.location,
        "availability_status": classification.status.value,
        "available_from": (
            classification.available_from.isoformat() if classification.available_from else None
        ),
        "bookings": [booking.to_dict() for booking in classification.overlapping],
    }


def _steps_through(step: ConversionStep) -> list[ConversionStep]:
    return [candidate for candidate in ConversionStep if candidate.ordinal <= step.ordinal]


class ConversionService:
    """Runs and reconciles plan-to-campaign conversions."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        lock_service: Optional[ResourceLockService] = None,
        id_allocator: Optional[IdAllocator] = None,
        availability_service: Optional[AvailabilityQueryService] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings or get_settings()
        validate_workflow_limits(
            WorkflowLimits(
                lock_timeout_seconds=self._settings.lock_timeout_seconds,
                conversion_timeout_seconds=self._settings.conversion_timeout_seconds,
            )
        )
        self._repository = repository or DataRepository(self._settings)
        self._plans = PlanStore(self._repository)
        self._resources = ResourceStore(self._repository)
        self._campaigns = CampaignStore(self._repository)
        self._locks = lock_service or ResourceLockService(self._settings)
        self._ids = id_allocator or IdAllocator(self._repository, self._settings)
        self._availability = availability_service or AvailabilityQueryService(
            repository=self._repository,
            settings=self._settings,
            resource_store=self._resources,
            campaign_store=self._campaigns,
        )
        self._clock = clock

    def convert(
        self,
        context: AuthContext,
        plan_id: str,
        campaign_name: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> ConversionOutcome:
        try:
            outcome = self._convert(context, plan_id, campaign_name, start_date, end_date, notes)
        except ReservationError as exc:
            self._audit_failure(context, "convert_plan", [plan_id], exc)
            raise
        self._audit_success(context, "convert_plan", plan_id, outcome)
        return outcome

    def reconcile(self, context: AuthContext, campaign_id: str) -> ConversionOutcome:
        """Finish an interrupted conversion: retry reservations, then finalize the plan."""
        try:
            outcome = self._reconcile(context, campaign_id)
        except ReservationError as exc:
            self._audit_failure(context, "reconcile_campaign", [campaign_id], exc)
            raise
        self._audit_success(context, "reconcile_campaign", outcome.campaign.source_plan_id, outcome)
        return outcome

    def _convert(
        self,
        context: AuthContext,
        plan_id: str,
        campaign_name: Optional[str],
        start_date: Optional[str],
        end_date: Optional[str],
        notes: Optional[str],
    ) -> ConversionOutcome:
        require_role(context, self._settings.conversion_roles)
        try:
            override_start = parse_iso_date(start_date, "start_date") if start_date else None
            override_end = parse_iso_date(end_date, "end_date") if end_date else None
        except ValueError as exc:
            raise ReservationValidationError(str(exc)) from exc
        if override_start and override_end and override_start > override_end:
            raise ReservationValidationError("start_date must be on or before end_date")

        deadline = self._clock() + self._settings.conversion_timeout_seconds
        tenant_id = context.tenant_id
        logger.info("Conversion started | tenant_id=%s | plan_id=%s", tenant_id, plan_id)

        with self._locks.acquire(
            [plan_lock_key(tenant_id, plan_id)],
            timeout=self._lock_wait(deadline),
        ):
            plan = self._plans.get_plan(tenant_id, plan_id)
            if plan is None:
                raise PlanNotFoundError(f"Plan not found: {plan_id}")

            if plan.status is PlanStatus.CONVERTED and plan.converted_campaign_id:
                logger.info(
                    "Plan already converted | tenant_id=%s | plan_id=%s | campaign_id=%s",
                    tenant_id,
                    plan_id,
                    plan.converted_campaign_id,
                )
                return self._already_converted(tenant_id, plan.converted_campaign_id)

            if plan.status is PlanStatus.REJECTED:
                raise InvalidTransitionError(
                    f"Plan {plan_id} is Rejected; only Draft, Sent or Approved plans can be converted"
                )

            existing = self._campaigns.get_campaign_by_plan(tenant_id, plan_id)
            if existing is not None:
                logger.warning(
                    "Resuming interrupted conversion | tenant_id=%s | plan_id=%s | campaign_id=%s | step=%s",
                    tenant_id,
                    plan_id,
                    existing.campaign_id,
                    existing.workflow_step.value,
                )
                return self._resume(plan, existing, deadline)

            completed = [ConversionStep.IDEMPOTENCY_GUARD]

            try:
                fallback = DateWindow(
                    override_start or plan.start_date,
                    override_end or plan.end_date,
                )
            except ValueError as exc:
                raise ReservationValidationError(
                    "start_date must be on or before end_date"
                ) from exc
            draft = self._load_draft(plan, fallback)
            warnings = self._plan_warnings(plan)
            completed.append(ConversionStep.LOAD_PLAN)
            self._log_step(tenant_id, plan_id, ConversionStep.LOAD_PLAN, None)
            self._check_deadline(deadline)

            resource_keys = [resource_lock_key(tenant_id, rid) for rid in draft.resource_ids]
            with self._locks.acquire(resource_keys, timeout=self._lock_wait(deadline)):
                self._revalidate(tenant_id, draft, ignore_campaign_ids=())
                completed.append(ConversionStep.REVALIDATE)
                self._log_step(tenant_id, plan_id, ConversionStep.REVALIDATE, None)
                self._check_deadline(deadline)

                campaign_id = self._ids.next(tenant_id, "campaign")
                completed.append(ConversionStep.ALLOCATE_ID)
                self._log_step(tenant_id, plan_id, ConversionStep.ALLOCATE_ID, campaign_id)

                campaign = Campaign(
                    campaign_id=campaign_id,
                    tenant_id=tenant_id,
                    source_plan_id=plan_id,
                    campaign_name=(campaign_name or "").strip() or plan.plan_name,
                    client_name=plan.client_name,
                    status=CampaignStatus.PLANNED,
                    start_date=fallback.start,
                    end_date=fallback.end,
                    total_assets=len(draft.items),
                    total_amount=draft.total_amount,
                    workflow_step=ConversionStep.CREATE_CAMPAIGN,
                    notes=notes if notes is not None else plan.notes,
                )
                return self._apply_writes(
                    plan=plan,
                    campaign=campaign,
                    draft=draft,
                    completed=completed,
                    warnings=warnings,
                    deadline=deadline,
                    campaign_persisted=False,
                )

    def _reconcile(self, context: AuthContext, campaign_id: str) -> ConversionOutcome:
        require_role(context, self._settings.reconciliation_roles)
        tenant_id = context.tenant_id
        campaign = self._campaigns.get_campaign(tenant_id, campaign_id)
        if campaign is None:
            raise CampaignNotFoundError(f"Campaign not found: {campaign_id}")

        deadline = self._clock() + self._settings.conversion_timeout_seconds
        with self._locks.acquire(
            [plan_lock_key(tenant_id, campaign.source_plan_id)],
            timeout=self._lock_wait(deadline),
        ):
            plan = self._plans.get_plan(tenant_id, campaign.source_plan_id)
            if plan is None:
                raise PlanNotFoundError(f"Plan not found: {campaign.source_plan_id}")
            campaign = self._campaigns.get_campaign(tenant_id, campaign_id) or campaign
            if (
                plan.status is PlanStatus.CONVERTED
                and campaign.workflow_step is ConversionStep.FINALIZE_PLAN
            ):
                return self._already_converted(tenant_id, campaign_id)
            logger.info(
                "Reconciliation started | tenant_id=%s | campaign_id=%s | step=%s",
                tenant_id,
                campaign_id,
                campaign.workflow_step.value,
            )
            return self._resume(plan, campaign, deadline)

    def _resume(self, plan: Plan, campaign: Campaign, deadline: float) -> ConversionOutcome:
        """Continue a conversion from the campaign's recorded progress."""
        tenant_id = plan.tenant_id
        completed = _steps_through(campaign.workflow_step)
        warnings = self._plan_warnings(plan)
        warnings.append(
            f"Resumed conversion of campaign {campaign.campaign_id} after step "
            f"{campaign.workflow_step.value}"
        )

        draft: Optional[_ConversionDraft] = None
        if campaign.workflow_step.ordinal < ConversionStep.CREATE_CAMPAIGN_ASSETS.ordinal:
            draft = self._load_draft(plan, DateWindow(campaign.start_date, campaign.end_date))
            resource_ids = draft.resource_ids
        else:
            resource_ids = [
                asset.resource_id
                for asset in self._campaigns.list_campaign_assets(tenant_id, campaign.campaign_id)
            ]

        resource_keys = [resource_lock_key(tenant_id, rid) for rid in resource_ids]
        with self._locks.acquire(resource_keys, timeout=self._lock_wait(deadline)):
            return self._apply_writes(
                plan=plan,
                campaign=campaign,
                draft=draft,
                completed=completed,
                warnings=warnings,
                deadline=deadline,
                campaign_persisted=True,
            )

    def _apply_writes(
        self,
        *,
        plan: Plan,
        campaign: Campaign,
        draft: Optional[_ConversionDraft],
        completed: list[ConversionStep],
        warnings: list[str],
        deadline: float,
        campaign_persisted: bool,
    ) -> ConversionOutcome:
        """Steps 5 to 8; every failure from here on is a reconcilable partial failure."""
        tenant_id = plan.tenant_id
        campaign_id = campaign.campaign_id
        try:
            if not campaign_persisted:
                self._check_deadline(deadline)
                campaign, created = self._campaigns.create_campaign(campaign)
                if not created:
                    logger.warning(
                        "Plan already owns a campaign; continuing with it | plan_id=%s | campaign_id=%s | discarded_id=%s",
                        plan.plan_id,
                        campaign.campaign_id,
                        campaign_id,
                    )
                    campaign_id = campaign.campaign_id
                completed.append(ConversionStep.CREATE_CAMPAIGN)
                self._log_step(tenant_id, plan.plan_id, ConversionStep.CREATE_CAMPAIGN, campaign_id)

            if ConversionStep.CREATE_CAMPAIGN_ASSETS not in completed:
                self._check_deadline(deadline)
                if draft is None:
                    draft = self._load_draft(plan, DateWindow(campaign.start_date, campaign.end_date))
                self._campaigns.create_campaign_assets(self._build_assets(campaign, draft))
                self._campaigns.set_workflow_step(
                    tenant_id, campaign_id, ConversionStep.CREATE_CAMPAIGN_ASSETS
                )
                completed.append(ConversionStep.CREATE_CAMPAIGN_ASSETS)
                self._log_step(
                    tenant_id, plan.plan_id, ConversionStep.CREATE_CAMPAIGN_ASSETS, campaign_id
                )

            if ConversionStep.RESERVE_RESOURCES not in completed:
                self._check_deadline(deadline)
                self._reserve_resources(tenant_id, campaign_id, deadline)
                self._campaigns.set_workflow_step(
                    tenant_id, campaign_id, ConversionStep.RESERVE_RESOURCES
                )
                completed.append(ConversionStep.RESERVE_RESOURCES)
                self._log_step(tenant_id, plan.plan_id, ConversionStep.RESERVE_RESOURCES, campaign_id)

            self._check_deadline(deadline)
            if not self._plans.mark_converted(tenant_id, plan.plan_id, campaign_id):
                raise RepositoryError(
                    f"Plan {plan.plan_id} could not be marked converted by {campaign_id}"
                )
            self._campaigns.set_workflow_step(tenant_id, campaign_id, ConversionStep.FINALIZE_PLAN)
            if ConversionStep.FINALIZE_PLAN not in completed:
                completed.append(ConversionStep.FINALIZE_PLAN)
            self._log_step(tenant_id, plan.plan_id, ConversionStep.FINALIZE_PLAN, campaign_id)
        except (RepositoryError, ConversionTimeoutError) as exc:
            outstanding = self._outstanding_resources(tenant_id, campaign_id, draft)
            last_step = completed[-1]
            logger.error(
                "Conversion partially applied | tenant_id=%s | plan_id=%s | campaign_id=%s | last_step=%s | outstanding=%s | error=%s",
                tenant_id,
                plan.plan_id,
                campaign_id,
                last_step.value,
                outstanding,
                exc,
            )
            raise PartialFailureError(
                f"Conversion stopped after {last_step.value}: {exc}",
                campaign_id=campaign_id,
                last_completed_step=last_step.value,
                outstanding_resource_ids=outstanding,
                completed_steps=[step.value for step in completed],
            ) from exc

        persisted = self._campaigns.get_campaign(tenant_id, campaign_id) or campaign
        for warning in warnings:
            logger.warning("Conversion warning | campaign_id=%s | %s", campaign_id, warning)
        logger.info(
            "Conversion completed | tenant_id=%s | plan_id=%s | campaign_id=%s | assets=%s | total_amount=%.2f",
            tenant_id,
            plan.plan_id,
            campaign_id,
            persisted.total_assets,
            persisted.total_amount,
        )
        return ConversionOutcome(
            campaign=persisted,
            assets=self._campaigns.list_campaign_assets(tenant_id, campaign_id),
            already_converted=False,
            warnings=warnings,
            completed_steps=list(completed),
        )

    def _load_draft(self, plan: Plan, fallback: DateWindow) -> _ConversionDraft:
        tenant_id = plan.tenant_id
        items = self._plans.list_items(tenant_id, plan.plan_id)
        if not items:
            raise ReservationValidationError(f"Plan {plan.plan_id} has no line items")

        windows: dict[str, DateWindow] = {}
        for item in items:
            try:
                windows[item.resource_id] = item.effective_window(fallback)
            except ValueError as exc:
                raise ReservationValidationError(
                    f"Line item {item.resource_id} has start_date after end_date"
                ) from exc

        resources = self._resources.get_many(tenant_id, [item.resource_id for item in items])
        missing = [item.resource_id for item in items if item.resource_id not in resources]
        if missing:
            raise ResourceNotFoundError(f"Resources not found: {', '.join(missing)}")

        quotes = {
            item.resource_id: quote_rent(
                sales_price=item.sales_price,
                card_rate=resources[item.resource_id].card_rate,
                window=windows[item.resource_id],
                billing_mode=item.billing_mode,
                daily_rate=item.daily_rate,
                prorata_days=self._settings.prorata_days,
            )
            for item in items
        }
        return _ConversionDraft(items=items, resources=resources, windows=windows, quotes=quotes)

    def _plan_warnings(self, plan: Plan) -> list[str]:
        if plan.status is PlanStatus.APPROVED:
            return []
        logger.warning(
            "Converting non-approved plan | tenant_id=%s | plan_id=%s | status=%s",
            plan.tenant_id,
            plan.plan_id,
            plan.status.value,
        )
        return [f"Plan {plan.plan_id} is {plan.status.value}, not Approved"]

    def _revalidate(
        self,
        tenant_id: str,
        draft: _ConversionDraft,
        *,
        ignore_campaign_ids: Sequence[str],
    ) -> None:
        # Re-read under the locks; the draft snapshot may already be stale.
        resources = self._resources.get_many(tenant_id, draft.resource_ids)
        ordered = [resources[rid] for rid in draft.resource_ids if rid in resources]
        classifications = self._availability.evaluate(
            tenant_id,
            ordered,
            draft.windows,
            ignore_campaign_ids=ignore_campaign_ids,
        )
        conflicts = [
            _conflict_detail(resource, classifications[resource.resource_id])
            for resource in ordered
            if not classifications[resource.resource_id].is_available
        ]
        if conflicts:
            logger.warning(
                "Revalidation found conflicts | tenant_id=%s | resources=%s",
                tenant_id,
                [item["resource_id"] for item in conflicts],
            )
            raise BookingConflictError(
                f"{len(conflicts)} resource(s) are not available for the requested dates",
                conflicts,
            )

    def _build_assets(self, campaign: Campaign, draft: _ConversionDraft) -> list[CampaignAsset]:
        assets: list[CampaignAsset] = []
        for item in draft.items:
            resource = draft.resources[item.resource_id]
            window = draft.windows[item.resource_id]
            quote = draft.quotes[item.resource_id]
            assets.append(
                CampaignAsset(
                    campaign_id=campaign.campaign_id,
                    tenant_id=campaign.tenant_id,
                    resource_id=resource.resource_id,
                    resource_code=resource.code,
                    city=resource.city,
                    area=resource.area,
                    location=resource.location,
                    media_type=resource.media_type,
                    dimensions=resource.dimensions,
                    total_sqft=resource.total_sqft,
                    card_rate=resource.card_rate,
                    negotiated_rate=quote.negotiated_rate,
                    booking_start=window.start,
                    booking_end=window.end,
                    booked_days=quote.booked_days,
                    billing_mode=item.billing_mode,
                    daily_rate=quote.daily_rate,
                    rent_amount=quote.rent_amount,
                )
            )
        return assets

    def _reserve_resources(self, tenant_id: str, campaign_id: str, deadline: float) -> None:
        """Book each outstanding resource with a re-check and a compare-and-swap write."""
        assets = self._campaigns.list_campaign_assets(tenant_id, campaign_id)
        pending = [asset for asset in assets if not asset.reservation_applied]
        for index, asset in enumerate(pending):
            self._check_deadline(deadline)
            resource = self._resources.get(tenant_id, asset.resource_id)
            if resource is None:
                raise RepositoryError(f"Resource {asset.resource_id} disappeared during conversion")

            already_held = (
                resource.status is ResourceStatus.BOOKED
                and resource.active_campaign_ref == campaign_id
                and resource.reservation_window == asset.window
            )
            if not already_held:
                classification = self._availability.evaluate(
                    tenant_id,
                    [resource],
                    {resource.resource_id: asset.window},
                    ignore_campaign_ids=[campaign_id],
                )[resource.resource_id]
                reserved = classification.is_available and self._resources.reserve(
                    tenant_id=tenant_id,
                    resource_id=resource.resource_id,
                    window=asset.window,
                    campaign_id=campaign_id,
                    expected_status=resource.status,
                    expected_campaign_ref=resource.active_campaign_ref,
                )
                if not reserved:
                    outstanding = [item.resource_id for item in pending[index:]]
                    logger.warning(
                        "Reservation race detected | tenant_id=%s | campaign_id=%s | resource_id=%s",
                        tenant_id,
                        campaign_id,
                        resource.resource_id,
                    )
                    raise ReservationRaceError(
                        f"Resource {resource.resource_id} was taken before it could be reserved",
                        campaign_id=campaign_id,
                        outstanding_resource_ids=outstanding,
                        conflicting_resources=[_conflict_detail(resource, classification)],
                    )

            self._campaigns.mark_reservation_applied(tenant_id, campaign_id, asset.resource_id)
            logger.debug(
                "Resource reserved | tenant_id=%s | campaign_id=%s | resource_id=%s | window=%s..%s",
                tenant_id,
                campaign_id,
                asset.resource_id,
                asset.booking_start,
                asset.booking_end,
            )

    def _already_converted(self, tenant_id: str, campaign_id: str) -> ConversionOutcome:
        campaign = self._campaigns.get_campaign(tenant_id, campaign_id)
        if campaign is None:
            raise CampaignNotFoundError(f"Campaign not found: {campaign_id}")
        return ConversionOutcome(
            campaign=campaign,
            assets=self._campaigns.list_campaign_assets(tenant_id, campaign_id),
            already_converted=True,
            completed_steps=_steps_through(campaign.workflow_step),
        )

    def _outstanding_resources(
        self,
        tenant_id: str,
        campaign_id: str,
        draft: Optional[_ConversionDraft],
    ) -> list[str]:
        try:
            assets = self._campaigns.list_campaign_assets(tenant_id, campaign_id)
        except sqlite3.Error:
            logger.exception("Could not read campaign assets | campaign_id=%s", campaign_id)
            assets = []
        applied = {asset.resource_id for asset in assets if asset.reservation_applied}
        expected = draft.resource_ids if draft is not None else [a.resource_id for a in assets]
        return [resource_id for resource_id in expected if resource_id not in applied]

    def _check_deadline(self, deadline: float) -> None:
        if self._clock() > deadline:
            raise ConversionTimeoutError(
                f"Conversion exceeded {self._settings.conversion_timeout_seconds:.1f}s deadline"
            )

    def _lock_wait(self, deadline: float) -> float:
        remaining = deadline - self._clock()
        if remaining <= 0:
            raise ConversionTimeoutError(
                f"Conversion exceeded {self._settings.conversion_timeout_seconds:.1f}s deadline"
            )
        return min(self._settings.lock_timeout_seconds, remaining)

    @staticmethod
    def _log_step(
        tenant_id: str,
        plan_id: str,
        step: ConversionStep,
        campaign_id: Optional[str],
    ) -> None:
        logger.info(
            "Conversion step completed | %s",
            log_fields(
                tenant_id=tenant_id,
                plan_id=plan_id,
                step=f"{step.ordinal}/{len(ConversionStep)} {step.value}",
                campaign_id=campaign_id,
            ),
        )

    def _audit_success(
        self,
        context: AuthContext,
        action: str,
        plan_id: str,
        outcome: ConversionOutcome,
    ) -> None:
        self._repository.save_audit_event(
            function_name=_AUDIT_FUNCTION,
            tenant_id=context.tenant_id,
            user_id=context.user_id,
            action=action,
            record_ids=[plan_id, outcome.campaign_id],
            status="success",
            metadata={
                "role": context.role.value,
                "already_converted": outcome.already_converted,
                "assets_count": len(outcome.assets),
                "total_amount": outcome.campaign.total_amount,
                "warnings": outcome.warnings,
            },
        )

    def _audit_failure(
        self,
        context: AuthContext,
        action: str,
        record_ids: list[str],
        error: ReservationError,
    ) -> None:
        metadata: dict[str, Any] = {
            "role": context.role.value,
            "error_type": type(error).__name__,
            "error": str(error),
        }
        if isinstance(error, PartialFailureError):
            metadata.update(error.to_dict())
        campaign_id = getattr(error, "campaign_id", None)
        self._repository.save_audit_event(
            function_name=_AUDIT_FUNCTION,
            tenant_id=context.tenant_id,
            user_id=context.user_id,
            action=action,
            record_ids=[*record_ids, campaign_id] if campaign_id else record_ids,
            status="failed",
            metadata=metadata,
        )
