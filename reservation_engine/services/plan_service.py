"""Plan (proposal) lifecycle: creation, line item edits and status changes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from reservation_engine.domain.constraints import (
    PLAN_EDITABLE_STATUSES,
    build_window,
    parse_iso_date,
    validate_line_item,
    validate_plan_transition,
)
from reservation_engine.domain.models import (
    AuthContext,
    BillingMode,
    Plan,
    PlanLineItem,
    PlanStatus,
)
from reservation_engine.repository.data_repository import DataRepository
from reservation_engine.repository.plan_store import PlanStore
from reservation_engine.repository.resource_store import ResourceStore
from reservation_engine.services.auth_service import require_role
from reservation_engine.services.errors import (
    InvalidTransitionError,
    PlanNotFoundError,
    ReservationValidationError,
    ResourceNotFoundError,
)
from reservation_engine.services.id_allocator import IdAllocator
from reservation_engine.services.lock_service import ResourceLockService, plan_lock_key
from reservation_engine.utils.config import Settings, get_settings
from reservation_engine.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class PlanView:
    plan: Plan
    items: list[PlanLineItem]

    def to_dict(self) -> dict[str, Any]:
        plan = self.plan
        return {
            "id": plan.plan_id,
            "plan_name": plan.plan_name,
            "client_name": plan.client_name,
            "status": plan.status.value,
            "start_date": plan.start_date.isoformat(),
            "end_date": plan.end_date.isoformat(),
            "notes": plan.notes,
            "converted_campaign_id": plan.converted_campaign_id,
            "converted_at": plan.converted_at,
            "items": [
                {
                    "position": item.position,
                    "resource_id": item.resource_id,
                    "start_date": item.start_date.isoformat() if item.start_date else None,
                    "end_date": item.end_date.isoformat() if item.end_date else None,
                    "sales_price": item.sales_price,
                    "billing_mode": item.billing_mode.value,
                    "daily_rate": item.daily_rate,
                }
                for item in self.items
            ],
        }


class PlanService:
    """Owns every plan mutation except the final Converted transition."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        id_allocator: Optional[IdAllocator] = None,
        lock_service: Optional[ResourceLockService] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._plans = PlanStore(self._repository)
        self._resources = ResourceStore(self._repository)
        self._ids = id_allocator or IdAllocator(self._repository, self._settings)
        self._locks = lock_service or ResourceLockService(self._settings)

    def _load(self, tenant_id: str, plan_id: str) -> Plan:
        plan = self._plans.get_plan(tenant_id, plan_id)
        if plan is None:
            raise PlanNotFoundError(f"Plan not found: {plan_id}")
        return plan

    def create_plan(
        self,
        context: AuthContext,
        *,
        plan_name: str,
        start_date: str,
        end_date: str,
        client_name: str = "",
        notes: str = "",
    ) -> PlanView:
        require_role(context, self._settings.plan_editor_roles)
        if not plan_name or not plan_name.strip():
            raise ReservationValidationError("plan_name is required")
        try:
            window = build_window(start_date, end_date)
        except ValueError as exc:
            raise ReservationValidationError(str(exc)) from exc

        plan = Plan(
            plan_id=self._ids.next(context.tenant_id, "plan"),
            tenant_id=context.tenant_id,
            plan_name=plan_name.strip(),
            client_name=client_name.strip(),
            status=PlanStatus.DRAFT,
            start_date=window.start,
            end_date=window.end,
            notes=notes,
        )
        self._plans.create_plan(plan)
        logger.info("Plan created | tenant_id=%s | plan_id=%s", context.tenant_id, plan.plan_id)
        return PlanView(plan=plan, items=[])

    def get_plan(self, context: AuthContext, plan_id: str) -> PlanView:
        require_role(context, self._settings.plan_reader_roles)
        plan = self._load(context.tenant_id, plan_id)
        return PlanView(plan=plan, items=self._plans.list_items(context.tenant_id, plan_id))

    def add_item(
        self,
        context: AuthContext,
        plan_id: str,
        *,
        resource_id: str,
        sales_price: float = 0.0,
        billing_mode: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        daily_rate: Optional[float] = None,
    ) -> PlanView:
        require_role(context, self._settings.plan_editor_roles)
        try:
            mode = BillingMode(billing_mode or self._settings.default_billing_mode)
            validate_line_item(sales_price, mode, daily_rate)
            item_start = parse_iso_date(start_date, "start_date") if start_date else None
            item_end = parse_iso_date(end_date, "end_date") if end_date else None
        except ValueError as exc:
            raise ReservationValidationError(str(exc)) from exc

        with self._locks.acquire([plan_lock_key(context.tenant_id, plan_id)]):
            plan = self._load(context.tenant_id, plan_id)
            self._ensure_editable(plan)
            item = PlanLineItem(
                plan_id=plan_id,
                position=0,
                resource_id=resource_id,
                sales_price=float(sales_price),
                billing_mode=mode,
                start_date=item_start,
                end_date=item_end,
                daily_rate=daily_rate,
            )
            try:
                item.effective_window(plan.window)
            except ValueError as exc:
                raise ReservationValidationError(
                    "line item start_date must be on or before end_date"
                ) from exc
            if self._resources.get(context.tenant_id, resource_id) is None:
                raise ResourceNotFoundError(f"Resource not found: {resource_id}")

            self._plans.add_item(context.tenant_id, item)
            logger.info(
                "Plan item saved | tenant_id=%s | plan_id=%s | resource_id=%s",
                context.tenant_id,
                plan_id,
                resource_id,
            )
            return PlanView(plan=plan, items=self._plans.list_items(context.tenant_id, plan_id))

    def remove_item(self, context: AuthContext, plan_id: str, resource_id: str) -> PlanView:
        require_role(context, self._settings.plan_editor_roles)
        with self._locks.acquire([plan_lock_key(context.tenant_id, plan_id)]):
            plan = self._load(context.tenant_id, plan_id)
            self._ensure_editable(plan)
            if not self._plans.remove_item(context.tenant_id, plan_id, resource_id):
                raise ResourceNotFoundError(
                    f"Resource {resource_id} is not part of plan {plan_id}"
                )
            return PlanView(plan=plan, items=self._plans.list_items(context.tenant_id, plan_id))

    def change_status(self, context: AuthContext, plan_id: str, target: str) -> PlanView:
        require_role(context, self._settings.plan_editor_roles)
        try:
            target_status = PlanStatus(target)
        except ValueError as exc:
            raise ReservationValidationError(f"Unknown plan status: {target}") from exc

        with self._locks.acquire([plan_lock_key(context.tenant_id, plan_id)]):
            plan = self._load(context.tenant_id, plan_id)
            try:
                validate_plan_transition(plan.status, target_status)
            except ValueError as exc:
                raise InvalidTransitionError(str(exc)) from exc
            if not self._plans.update_status(
                context.tenant_id,
                plan_id,
                expected=plan.status,
                target=target_status,
            ):
                raise InvalidTransitionError(f"Plan {plan_id} changed concurrently; retry")
            logger.info(
                "Plan status changed | tenant_id=%s | plan_id=%s | from=%s | to=%s",
                context.tenant_id,
                plan_id,
                plan.status.value,
                target_status.value,
            )
            return self.get_plan(context, plan_id)

    @staticmethod
    def _ensure_editable(plan: Plan) -> None:
        if plan.status not in PLAN_EDITABLE_STATUSES:
            raise InvalidTransitionError(
                f"Plan {plan.plan_id} is {plan.status.value}; items can only change in Draft or Sent"
            )
