"""Environment-driven runtime settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Immutable settings snapshot; tests derive variants with `replace`."""

    app_name: str = "Media Inventory Reservation Engine"
    app_version: str = "1.0.0"
    database_path: Path = Path("data/reservations.db")
    log_level: str = "INFO"
    api_token: str | None = None

    lock_timeout_seconds: float = 5.0
    conversion_timeout_seconds: float = 30.0
    seed_demo_data: bool = True
    demo_tenant_id: str = "demo-company"

    campaign_id_prefix: str = "CAM"
    plan_id_prefix: str = "PLAN"
    id_sequence_width: int = 4
    prorata_days: int = 30
    default_billing_mode: str = "PRORATA_30"

    active_campaign_statuses: tuple[str, ...] = ("Planned", "Assigned", "InProgress")
    availability_roles: tuple[str, ...] = ("admin", "sales", "ops")
    plan_editor_roles: tuple[str, ...] = ("admin", "sales")
    plan_reader_roles: tuple[str, ...] = ("admin", "sales", "ops", "finance")
    conversion_roles: tuple[str, ...] = ("admin", "sales")
    reconciliation_roles: tuple[str, ...] = ("admin", "sales", "ops")
    campaign_reader_roles: tuple[str, ...] = ("admin", "sales", "ops", "finance")
    operations_roles: tuple[str, ...] = ("admin", "ops")
    report_roles: tuple[str, ...] = ("admin", "sales", "ops", "finance")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process from environment variables."""
    defaults = Settings()
    return Settings(
        app_name=os.getenv("APP_NAME", defaults.app_name),
        app_version=os.getenv("APP_VERSION", defaults.app_version),
        database_path=Path(os.getenv("DATABASE_PATH", str(defaults.database_path))),
        log_level=os.getenv("LOG_LEVEL", defaults.log_level),
        api_token=os.getenv("API_TOKEN") or None,
        lock_timeout_seconds=float(
            os.getenv("LOCK_TIMEOUT_SECONDS", defaults.lock_timeout_seconds)
        ),
        conversion_timeout_seconds=float(
            os.getenv("CONVERSION_TIMEOUT_SECONDS", defaults.conversion_timeout_seconds)
        ),
        seed_demo_data=_env_bool("SEED_DEMO_DATA", defaults.seed_demo_data),
        demo_tenant_id=os.getenv("DEMO_TENANT_ID", defaults.demo_tenant_id),
    )
