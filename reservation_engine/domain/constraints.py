"""Domain-level validation rules for plans, campaigns and the conversion workflow."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from reservation_engine.domain.models import (
    BillingMode,
    CampaignAssetStatus,
    CampaignStatus,
    DateWindow,
    PlanStatus,
)


PLAN_TRANSITIONS: dict[PlanStatus, frozenset[PlanStatus]] = {
    PlanStatus.DRAFT: frozenset({PlanStatus.SENT, PlanStatus.APPROVED, PlanStatus.REJECTED}),
    PlanStatus.SENT: frozenset({PlanStatus.DRAFT, PlanStatus.APPROVED, PlanStatus.REJECTED}),
    PlanStatus.APPROVED: frozenset({PlanStatus.SENT, PlanStatus.REJECTED}),
    PlanStatus.REJECTED: frozenset({PlanStatus.DRAFT}),
    PlanStatus.CONVERTED: frozenset(),
}

PLAN_EDITABLE_STATUSES = frozenset({PlanStatus.DRAFT, PlanStatus.SENT})

CAMPAIGN_TRANSITIONS: dict[CampaignStatus, frozenset[CampaignStatus]] = {
    CampaignStatus.PLANNED: frozenset({CampaignStatus.ASSIGNED}),
    CampaignStatus.ASSIGNED: frozenset({CampaignStatus.IN_PROGRESS}),
    CampaignStatus.IN_PROGRESS: frozenset({CampaignStatus.COMPLETED}),
    CampaignStatus.COMPLETED: frozenset({CampaignStatus.VERIFIED}),
    CampaignStatus.VERIFIED: frozenset(),
}

CAMPAIGN_ASSET_TRANSITIONS: dict[CampaignAssetStatus, frozenset[CampaignAssetStatus]] = {
    CampaignAssetStatus.PENDING: frozenset({CampaignAssetStatus.ASSIGNED}),
    CampaignAssetStatus.ASSIGNED: frozenset({CampaignAssetStatus.MOUNTED}),
    CampaignAssetStatus.MOUNTED: frozenset({CampaignAssetStatus.PHOTO_UPLOADED}),
    CampaignAssetStatus.PHOTO_UPLOADED: frozenset({CampaignAssetStatus.VERIFIED}),
    CampaignAssetStatus.VERIFIED: frozenset(),
}


@dataclass(frozen=True)
class WorkflowLimits:
    lock_timeout_seconds: float
    conversion_timeout_seconds: float


def validate_workflow_limits(limits: WorkflowLimits) -> None:
    if limits.lock_timeout_seconds <= 0:
        raise ValueError("lock_timeout_seconds must be > 0")
    if limits.conversion_timeout_seconds <= 0:
        raise ValueError("conversion_timeout_seconds must be > 0")
    if limits.conversion_timeout_seconds < limits.lock_timeout_seconds:
        raise ValueError("conversion_timeout_seconds must cover at least one lock wait")


def parse_iso_date(value: str | date, field_name: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{field_name} must follow YYYY-MM-DD format") from exc


def build_window(start: str | date, end: str | date) -> DateWindow:
    """Parse and order-check a query or booking window."""
    start_date = parse_iso_date(start, "start_date")
    end_date = parse_iso_date(end, "end_date")
    if start_date > end_date:
        raise ValueError("start_date must be on or before end_date")
    return DateWindow(start_date, end_date)


def validate_plan_transition(current: PlanStatus, target: PlanStatus) -> None:
    if target is PlanStatus.CONVERTED:
        raise ValueError("plans become Converted only through the conversion workflow")
    if target not in PLAN_TRANSITIONS[current]:
        raise ValueError(f"plan cannot move from {current.value} to {target.value}")


def validate_campaign_transition(current: CampaignStatus, target: CampaignStatus) -> None:
    if target not in CAMPAIGN_TRANSITIONS[current]:
        raise ValueError(f"campaign cannot move from {current.value} to {target.value}")


def validate_campaign_asset_transition(
    current: CampaignAssetStatus,
    target: CampaignAssetStatus,
) -> None:
    if target not in CAMPAIGN_ASSET_TRANSITIONS[current]:
        raise ValueError(f"campaign asset cannot move from {current.value} to {target.value}")


def validate_line_item(
    sales_price: float,
    billing_mode: BillingMode,
    daily_rate: float | None,
) -> None:
    if sales_price < 0:
        raise ValueError("sales_price must be >= 0")
    if daily_rate is not None and daily_rate < 0:
        raise ValueError("daily_rate must be >= 0")
    if billing_mode is BillingMode.DAILY and not daily_rate:
        raise ValueError("daily_rate is required for DAILY billing")
