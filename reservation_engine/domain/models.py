"""Domain models for media inventory reservations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum


class ResourceStatus(str, Enum):
    AVAILABLE = "Available"
    BOOKED = "Booked"
    BLOCKED = "Blocked"
    MAINTENANCE = "Maintenance"


class PlanStatus(str, Enum):
    DRAFT = "Draft"
    SENT = "Sent"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    CONVERTED = "Converted"


class CampaignStatus(str, Enum):
    PLANNED = "Planned"
    ASSIGNED = "Assigned"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    VERIFIED = "Verified"


class CampaignAssetStatus(str, Enum):
    PENDING = "Pending"
    ASSIGNED = "Assigned"
    MOUNTED = "Mounted"
    PHOTO_UPLOADED = "PhotoUploaded"
    VERIFIED = "Verified"


class BillingMode(str, Enum):
    PRORATA_30 = "PRORATA_30"
    FULL_MONTH = "FULL_MONTH"
    DAILY = "DAILY"


class Role(str, Enum):
    ADMIN = "admin"
    FINANCE = "finance"
    SALES = "sales"
    OPS = "ops"
    VIEWER = "viewer"


class AvailabilityStatus(str, Enum):
    AVAILABLE = "available"
    AVAILABLE_SOON = "available_soon"
    BOOKED = "booked"
    CONFLICT = "conflict"


class ConversionStep(str, Enum):
    """Ordered saga steps of the plan-to-campaign conversion."""

    IDEMPOTENCY_GUARD = "idempotency_guard"
    LOAD_PLAN = "load_plan"
    REVALIDATE = "revalidate"
    ALLOCATE_ID = "allocate_id"
    CREATE_CAMPAIGN = "create_campaign"
    CREATE_CAMPAIGN_ASSETS = "create_campaign_assets"
    RESERVE_RESOURCES = "reserve_resources"
    FINALIZE_PLAN = "finalize_plan"

    @property
    def ordinal(self) -> int:
        return list(ConversionStep).index(self) + 1


@dataclass(frozen=True)
class DateWindow:
    """Closed day-granularity interval `[start, end]`."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError("window start must not be after window end")

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def to_dict(self) -> dict[str, str]:
        return {"from": self.start.isoformat(), "to": self.end.isoformat()}


@dataclass(frozen=True)
class AuthContext:
    """Tenant and role resolved by the external auth layer."""

    tenant_id: str
    role: Role
    user_id: str | None = None


@dataclass(frozen=True)
class Resource:
    resource_id: str
    tenant_id: str
    code: str
    city: str
    media_type: str
    card_rate: float
    status: ResourceStatus = ResourceStatus.AVAILABLE
    area: str = ""
    location: str = ""
    dimensions: str = ""
    total_sqft: float = 0.0
    illumination_type: str = ""
    reservation_window: DateWindow | None = None
    active_campaign_ref: str | None = None

    def __post_init__(self) -> None:
        booked = self.status is ResourceStatus.BOOKED
        if booked != (self.reservation_window is not None):
            raise ValueError(
                f"resource {self.resource_id}: reservation_window must be set exactly when Booked"
            )
        if booked != (self.active_campaign_ref is not None):
            raise ValueError(
                f"resource {self.resource_id}: active_campaign_ref must be set exactly when Booked"
            )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.resource_id,
            "code": self.code,
            "city": self.city,
            "area": self.area,
            "location": self.location,
            "media_type": self.media_type,
            "dimensions": self.dimensions,
            "total_sqft": self.total_sqft,
            "card_rate": self.card_rate,
            "illumination_type": self.illumination_type,
            "status": self.status.value,
            "booked_from": (
                self.reservation_window.start.isoformat() if self.reservation_window else None
            ),
            "booked_to": (
                self.reservation_window.end.isoformat() if self.reservation_window else None
            ),
            "current_campaign_id": self.active_campaign_ref,
        }


@dataclass(frozen=True)
class Booking:
    """One reservation window held by a campaign on a resource."""

    campaign_id: str
    window: DateWindow
    campaign_name: str = ""
    client_name: str = ""
    campaign_status: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "campaign_id": self.campaign_id,
            "campaign_name": self.campaign_name,
            "client_name": self.client_name,
            "start_date": self.window.start.isoformat(),
            "end_date": self.window.end.isoformat(),
            "status": self.campaign_status,
        }


@dataclass(frozen=True)
class Plan:
    plan_id: str
    tenant_id: str
    plan_name: str
    client_name: str
    status: PlanStatus
    start_date: date
    end_date: date
    notes: str = ""
    converted_campaign_id: str | None = None
    converted_at: str | None = None

    @property
    def window(self) -> DateWindow:
        return DateWindow(self.start_date, self.end_date)


@dataclass(frozen=True)
class PlanLineItem:
    plan_id: str
    position: int
    resource_id: str
    sales_price: float
    billing_mode: BillingMode = BillingMode.PRORATA_30
    start_date: date | None = None
    end_date: date | None = None
    daily_rate: float | None = None

    def effective_window(self, fallback: DateWindow) -> DateWindow:
        """Item dates win over the plan-level window when present."""
        return DateWindow(
            self.start_date or fallback.start,
            self.end_date or fallback.end,
        )


@dataclass(frozen=True)
class Campaign:
    campaign_id: str
    tenant_id: str
    source_plan_id: str
    campaign_name: str
    client_name: str
    status: CampaignStatus
    start_date: date
    end_date: date
    total_assets: int
    total_amount: float
    workflow_step: ConversionStep
    notes: str = ""
    created_at: str | None = None


@dataclass(frozen=True)
class CampaignAsset:
    campaign_id: str
    tenant_id: str
    resource_id: str
    resource_code: str
    city: str
    area: str
    location: str
    media_type: str
    dimensions: str
    total_sqft: float
    card_rate: float
    negotiated_rate: float
    booking_start: date
    booking_end: date
    booked_days: int
    billing_mode: BillingMode
    daily_rate: float
    rent_amount: float
    status: CampaignAssetStatus = CampaignAssetStatus.PENDING
    reservation_applied: bool = False

    @property
    def window(self) -> DateWindow:
        return DateWindow(self.booking_start, self.booking_end)
