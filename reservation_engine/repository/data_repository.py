"""Repository layer responsible for database lifecycle, seeding and audit records."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional, Sequence

from reservation_engine.utils.config import Settings, get_settings
from reservation_engine.utils.logger import get_logger


logger = get_logger(__name__)


class RepositoryError(RuntimeError):
    """Raised when a persistence call fails; every write is safe to retry."""


_SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS Resources (
        tenant_id TEXT NOT NULL,
        id TEXT NOT NULL,
        code TEXT NOT NULL,
        city TEXT NOT NULL,
        area TEXT NOT NULL DEFAULT '',
        location TEXT NOT NULL DEFAULT '',
        media_type TEXT NOT NULL,
        dimensions TEXT NOT NULL DEFAULT '',
        total_sqft REAL NOT NULL DEFAULT 0,
        card_rate REAL NOT NULL DEFAULT 0 CHECK (card_rate >= 0),
        illumination_type TEXT NOT NULL DEFAULT '',
        status TEXT NOT NULL DEFAULT 'Available'
            CHECK (status IN ('Available', 'Booked', 'Blocked', 'Maintenance')),
        booked_from TEXT,
        booked_to TEXT,
        current_campaign_id TEXT,
        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (tenant_id, id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS Plans (
        tenant_id TEXT NOT NULL,
        id TEXT NOT NULL,
        plan_name TEXT NOT NULL,
        client_name TEXT NOT NULL DEFAULT '',
        status TEXT NOT NULL DEFAULT 'Draft'
            CHECK (status IN ('Draft', 'Sent', 'Approved', 'Rejected', 'Converted')),
        start_date TEXT NOT NULL,
        end_date TEXT NOT NULL,
        notes TEXT NOT NULL DEFAULT '',
        converted_campaign_id TEXT,
        converted_at TEXT,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (tenant_id, id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS PlanItems (
        tenant_id TEXT NOT NULL,
        plan_id TEXT NOT NULL,
        position INTEGER NOT NULL,
        resource_id TEXT NOT NULL,
        start_date TEXT,
        end_date TEXT,
        sales_price REAL NOT NULL DEFAULT 0,
        billing_mode TEXT NOT NULL DEFAULT 'PRORATA_30'
            CHECK (billing_mode IN ('PRORATA_30', 'FULL_MONTH', 'DAILY')),
        daily_rate REAL,
        PRIMARY KEY (tenant_id, plan_id, resource_id),
        FOREIGN KEY (tenant_id, plan_id) REFERENCES Plans(tenant_id, id) ON DELETE CASCADE
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS Campaigns (
        tenant_id TEXT NOT NULL,
        id TEXT NOT NULL,
        source_plan_id TEXT NOT NULL,
        campaign_name TEXT NOT NULL,
        client_name TEXT NOT NULL DEFAULT '',
        status TEXT NOT NULL DEFAULT 'Planned'
            CHECK (status IN ('Planned', 'Assigned', 'InProgress', 'Completed', 'Verified')),
        start_date TEXT NOT NULL,
        end_date TEXT NOT NULL,
        total_assets INTEGER NOT NULL DEFAULT 0,
        total_amount REAL NOT NULL DEFAULT 0,
        notes TEXT NOT NULL DEFAULT '',
        workflow_step TEXT NOT NULL,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (tenant_id, id),
        UNIQUE (tenant_id, source_plan_id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS CampaignAssets (
        tenant_id TEXT NOT NULL,
        campaign_id TEXT NOT NULL,
        resource_id TEXT NOT NULL,
        resource_code TEXT NOT NULL DEFAULT '',
        city TEXT NOT NULL DEFAULT '',
        area TEXT NOT NULL DEFAULT '',
        location TEXT NOT NULL DEFAULT '',
        media_type TEXT NOT NULL DEFAULT '',
        dimensions TEXT NOT NULL DEFAULT '',
        total_sqft REAL NOT NULL DEFAULT 0,
        card_rate REAL NOT NULL DEFAULT 0,
        negotiated_rate REAL NOT NULL DEFAULT 0,
        booking_start TEXT NOT NULL,
        booking_end TEXT NOT NULL,
        booked_days INTEGER NOT NULL,
        billing_mode TEXT NOT NULL,
        daily_rate REAL NOT NULL DEFAULT 0,
        rent_amount REAL NOT NULL DEFAULT 0,
        status TEXT NOT NULL DEFAULT 'Pending'
            CHECK (status IN ('Pending', 'Assigned', 'Mounted', 'PhotoUploaded', 'Verified')),
        reservation_applied INTEGER NOT NULL DEFAULT 0 CHECK (reservation_applied IN (0, 1)),
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (tenant_id, campaign_id, resource_id),
        FOREIGN KEY (tenant_id, campaign_id) REFERENCES Campaigns(tenant_id, id) ON DELETE CASCADE
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS IdSequences (
        tenant_id TEXT NOT NULL,
        kind TEXT NOT NULL,
        period TEXT NOT NULL,
        last_value INTEGER NOT NULL,
        PRIMARY KEY (tenant_id, kind, period)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS AuditLog (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        function_name TEXT NOT NULL,
        tenant_id TEXT NOT NULL,
        user_id TEXT,
        action TEXT NOT NULL,
        record_ids TEXT NOT NULL DEFAULT '[]',
        status TEXT NOT NULL,
        metadata TEXT NOT NULL DEFAULT '{}',
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
    );
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_resources_tenant_city_type
    ON Resources(tenant_id, city, media_type);
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_campaign_assets_resource_window
    ON CampaignAssets(tenant_id, resource_id, booking_start, booking_end);
    """,
)


class DataRepository:
    """Encapsulates SQLite access so business logic stays storage-agnostic."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    @property
    def settings(self) -> Settings:
        return self._settings

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection that commits on success and always closes."""
        connection = sqlite3.connect(
            self._db_path,
            timeout=self._settings.lock_timeout_seconds,
        )
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        try:
            with connection:
                yield connection
        finally:
            connection.close()

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self.connect() as conn:
                conn.execute("PRAGMA journal_mode = WAL;")
                cursor = conn.cursor()
                for statement in _SCHEMA_STATEMENTS:
                    cursor.execute(statement)
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def seed_demo_data(self) -> None:
        """Seed a small demo inventory only when the tenant has no resources."""
        tenant_id = self._settings.demo_tenant_id
        try:
            with self.connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "SELECT COUNT(*) AS count FROM Resources WHERE tenant_id = ?;",
                    (tenant_id,),
                )
                if int(cursor.fetchone()["count"]) > 0:
                    logger.info("Demo inventory already present; skipping seed")
                    return

                resources = [
                    ("HYD-HOD-0001", "Hyderabad", "Banjara Hills", "Road No. 12 Junction", "Hoarding", "40x20", 800.0, 90000.0, "Frontlit"),
                    ("HYD-HOD-0002", "Hyderabad", "Madhapur", "Cyber Towers Signal", "Hoarding", "30x15", 450.0, 65000.0, "Backlit"),
                    ("HYD-UNI-0001", "Hyderabad", "Gachibowli", "ORR Exit 18", "Unipole", "40x20", 800.0, 120000.0, "Frontlit"),
                    ("HYD-BQS-0001", "Hyderabad", "Ameerpet", "Metro Station Stop", "Bus Shelter", "12x6", 72.0, 25000.0, "Backlit"),
                    ("BEN-HOD-0001", "Bengaluru", "Koramangala", "Sony World Signal", "Hoarding", "30x20", 600.0, 85000.0, "Frontlit"),
                    ("BEN-UNI-0001", "Bengaluru", "Hebbal", "Flyover Approach", "Unipole", "40x20", 800.0, 110000.0, "Non-lit"),
                    ("BEN-BQS-0001", "Bengaluru", "Indiranagar", "100 Feet Road Stop", "Bus Shelter", "12x6", 72.0, 22000.0, "Backlit"),
                    ("BEN-CM-0001", "Bengaluru", "MG Road", "Trinity Circle Median", "Center Median", "6x4", 24.0, 15000.0, "Backlit"),
                ]
                cursor.executemany(
                    """
                    INSERT INTO Resources (
                        tenant_id, id, code, city, area, location, media_type,
                        dimensions, total_sqft, card_rate, illumination_type
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                    """,
                    [(tenant_id, row[0], *row) for row in resources],
                )
            logger.info(
                "Demo inventory seeded | tenant_id=%s | resources=%s",
                tenant_id,
                len(resources),
            )
        except sqlite3.Error as exc:
            raise RuntimeError(f"Demo data seeding failed: {exc}") from exc

    def save_audit_event(
        self,
        *,
        function_name: str,
        tenant_id: str,
        user_id: str | None,
        action: str,
        record_ids: Sequence[str],
        status: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Persist an audit trail entry; failures are logged, never raised."""
        try:
            with self.connect() as conn:
                conn.execute(
                    """
                    INSERT INTO AuditLog (
                        function_name, tenant_id, user_id, action, record_ids, status, metadata
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?);
                    """,
                    (
                        function_name,
                        tenant_id,
                        user_id,
                        action,
                        json.dumps(list(record_ids)),
                        status,
                        json.dumps(metadata or {}, default=str),
                    ),
                )
        except sqlite3.Error:
            logger.exception("Audit log write failed | action=%s | tenant_id=%s", action, tenant_id)

    def list_audit_events(self, tenant_id: str) -> list[dict[str, Any]]:
        with self.connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT function_name, user_id, action, record_ids, status, metadata, created_at
                FROM AuditLog
                WHERE tenant_id = ?
                ORDER BY id ASC;
                """,
                (tenant_id,),
            )
            return [
                {
                    "function_name": str(row["function_name"]),
                    "user_id": row["user_id"],
                    "action": str(row["action"]),
                    "record_ids": json.loads(row["record_ids"]),
                    "status": str(row["status"]),
                    "metadata": json.loads(row["metadata"]),
                    "created_at": str(row["created_at"]),
                }
                for row in cursor.fetchall()
            ]

    def next_sequence_value(self, tenant_id: str, kind: str, period: str) -> int:
        """Atomically bump and return the counter for (tenant, kind, period)."""
        try:
            with self.connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    INSERT INTO IdSequences (tenant_id, kind, period, last_value)
                    VALUES (?, ?, ?, 1)
                    ON CONFLICT (tenant_id, kind, period)
                    DO UPDATE SET last_value = last_value + 1;
                    """,
                    (tenant_id, kind, period),
                )
                cursor.execute(
                    """
                    SELECT last_value FROM IdSequences
                    WHERE tenant_id = ? AND kind = ? AND period = ?;
                    """,
                    (tenant_id, kind, period),
                )
                return int(cursor.fetchone()["last_value"])
        except sqlite3.Error as exc:
            raise RepositoryError(f"Sequence allocation failed: {exc}") from exc
