"""Service-layer exception hierarchy shared by every workflow."""

from __future__ import annotations

from typing import Sequence


class ReservationError(Exception):
    """Base exception for reservation engine failures."""


class ReservationValidationError(ReservationError):
    """Raised when caller input is malformed or violates a domain rule."""


class InvalidTransitionError(ReservationValidationError):
    """Raised when a status change is not allowed by its transition table."""


class NotFoundError(ReservationError):
    """Raised when a tenant-scoped record does not exist."""


class PlanNotFoundError(NotFoundError):
    pass


class CampaignNotFoundError(NotFoundError):
    pass


class ResourceNotFoundError(NotFoundError):
    pass


class ForbiddenError(ReservationError):
    """Raised when the caller's role is not allowed to perform the action."""


class ConflictError(ReservationError):
    """Raised when a reservation would double-book a resource."""

    def __init__(self, message: str, conflicting_resources: Sequence[dict] = ()) -> None:
        super().__init__(message)
        self.conflicting_resources = list(conflicting_resources)


class BookingConflictError(ConflictError):
    """Revalidation found resources that are not free for the requested window."""


class ResourceBusyError(ConflictError):
    """A lock could not be obtained within the configured wait."""

    def __init__(self, message: str, keys: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.keys = list(keys)


class ReservationRaceError(ConflictError):
    """A concurrent writer took a resource between revalidation and reservation."""

    def __init__(
        self,
        message: str,
        *,
        campaign_id: str,
        outstanding_resource_ids: Sequence[str],
        conflicting_resources: Sequence[dict] = (),
    ) -> None:
        super().__init__(message, conflicting_resources)
        self.campaign_id = campaign_id
        self.outstanding_resource_ids = list(outstanding_resource_ids)


class ConversionTimeoutError(ReservationError):
    """Deadline crossed before any write happened."""


class PartialFailureError(ReservationError):
    """A conversion stopped after side effects began; `reconcile` can finish it."""

    def __init__(
        self,
        message: str,
        *,
        campaign_id: str,
        last_completed_step: str,
        outstanding_resource_ids: Sequence[str],
        completed_steps: Sequence[str],
    ) -> None:
        super().__init__(message)
        self.campaign_id = campaign_id
        self.last_completed_step = last_completed_step
        self.outstanding_resource_ids = list(outstanding_resource_ids)
        self.completed_steps = list(completed_steps)

    def to_dict(self) -> dict[str, object]:
        return {
            "message": str(self),
            "campaign_id": self.campaign_id,
            "last_completed_step": self.last_completed_step,
            "outstanding_resources": self.outstanding_resource_ids,
            "completed_steps": self.completed_steps,
        }
