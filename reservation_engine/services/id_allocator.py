"""Tenant-scoped, monotonic identifier allocation."""

from __future__ import annotations

from datetime import date
from typing import Callable, Optional

from reservation_engine.repository.data_repository import DataRepository
from reservation_engine.utils.config import Settings, get_settings
from reservation_engine.utils.logger import get_logger


logger = get_logger(__name__)


class IdAllocator:
    """Formats `{PREFIX}-{YYYYMM}-{NNNN}` ids from a persisted counter.

    Counters are keyed by tenant, kind and month. A value handed out is never
    handed out again, even when the caller fails before using it.
    """

    def __init__(
        self,
        repository: DataRepository,
        settings: Optional[Settings] = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._repository = repository
        self._settings = settings or repository.settings or get_settings()
        self._today = today
        self._prefixes = {
            "campaign": self._settings.campaign_id_prefix,
            "plan": self._settings.plan_id_prefix,
        }

    def next(self, tenant_id: str, kind: str) -> str:
        prefix = self._prefixes.get(kind)
        if prefix is None:
            raise ValueError(f"Unknown id kind: {kind}")
        period = self._today().strftime("%Y%m")
        value = self._repository.next_sequence_value(tenant_id, kind, period)
        allocated = f"{prefix}-{period}-{value:0{self._settings.id_sequence_width}d}"
        logger.debug("Id allocated | tenant_id=%s | kind=%s | id=%s", tenant_id, kind, allocated)
        return allocated
