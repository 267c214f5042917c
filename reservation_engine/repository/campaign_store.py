"""Persistence for realized campaigns and their per-asset operational records."""

from __future__ import annotations

import sqlite3
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence

from reservation_engine.domain.models import (
    BillingMode,
    Booking,
    Campaign,
    CampaignAsset,
    CampaignAssetStatus,
    CampaignStatus,
    ConversionStep,
    DateWindow,
)
from reservation_engine.repository.data_repository import DataRepository, RepositoryError


_CAMPAIGN_COLUMNS = (
    "tenant_id, id, source_plan_id, campaign_name, client_name, status, start_date, "
    "end_date, total_assets, total_amount, notes, workflow_step, created_at"
)

_ASSET_COLUMNS = (
    "tenant_id, campaign_id, resource_id, resource_code, city, area, location, "
    "media_type, dimensions, total_sqft, card_rate, negotiated_rate, booking_start, "
    "booking_end, booked_days, billing_mode, daily_rate, rent_amount, status, "
    "reservation_applied"
)


@dataclass(frozen=True)
class BookingRevenueRecord:
    """Flattened booking row used by utilisation reporting."""

    resource_id: str
    campaign_id: str
    booking_start: date
    booking_end: date
    rent_amount: float
    booked_days: int


def _row_to_campaign(row: sqlite3.Row) -> Campaign:
    return Campaign(
        campaign_id=str(row["id"]),
        tenant_id=str(row["tenant_id"]),
        source_plan_id=str(row["source_plan_id"]),
        campaign_name=str(row["campaign_name"]),
        client_name=str(row["client_name"]),
        status=CampaignStatus(row["status"]),
        start_date=date.fromisoformat(str(row["start_date"])),
        end_date=date.fromisoformat(str(row["end_date"])),
        total_assets=int(row["total_assets"]),
        total_amount=float(row["total_amount"]),
        workflow_step=ConversionStep(row["workflow_step"]),
        notes=str(row["notes"]),
        created_at=None if row["created_at"] is None else str(row["created_at"]),
    )


def _row_to_asset(row: sqlite3.Row) -> CampaignAsset:
    return CampaignAsset(
        campaign_id=str(row["campaign_id"]),
        tenant_id=str(row["tenant_id"]),
        resource_id=str(row["resource_id"]),
        resource_code=str(row["resource_code"]),
        city=str(row["city"]),
        area=str(row["area"]),
        location=str(row["location"]),
        media_type=str(row["media_type"]),
        dimensions=str(row["dimensions"]),
        total_sqft=float(row["total_sqft"]),
        card_rate=float(row["card_rate"]),
        negotiated_rate=float(row["negotiated_rate"]),
        booking_start=date.fromisoformat(str(row["booking_start"])),
        booking_end=date.fromisoformat(str(row["booking_end"])),
        booked_days=int(row["booked_days"]),
        billing_mode=BillingMode(row["billing_mode"]),
        daily_rate=float(row["daily_rate"]),
        rent_amount=float(row["rent_amount"]),
        status=CampaignAssetStatus(row["status"]),
        reservation_applied=bool(row["reservation_applied"]),
    )


class CampaignStore:
    def __init__(self, repository: DataRepository) -> None:
        self._repository = repository

    def create_campaign(self, campaign: Campaign) -> tuple[Campaign, bool]:
        """Insert-or-return keyed on the source plan.

        Returns the persisted campaign and whether this call created it; the
        unique source plan constraint keeps a plan from ever owning two.
        """
        try:
            with self._repository.connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    INSERT INTO Campaigns (
                        tenant_id, id, source_plan_id, campaign_name, client_name, status,
                        start_date, end_date, total_assets, total_amount, notes, workflow_step
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT (tenant_id, source_plan_id) DO NOTHING;
                    """,
                    (
                        campaign.tenant_id,
                        campaign.campaign_id,
                        campaign.source_plan_id,
                        campaign.campaign_name,
                        campaign.client_name,
                        campaign.status.value,
                        campaign.start_date.isoformat(),
                        campaign.end_date.isoformat(),
                        campaign.total_assets,
                        campaign.total_amount,
                        campaign.notes,
                        campaign.workflow_step.value,
                    ),
                )
                created = cursor.rowcount == 1
                cursor.execute(
                    f"""
                    SELECT {_CAMPAIGN_COLUMNS}
                    FROM Campaigns
                    WHERE tenant_id = ? AND source_plan_id = ?;
                    """,
                    (campaign.tenant_id, campaign.source_plan_id),
                )
                return _row_to_campaign(cursor.fetchone()), created
        except sqlite3.Error as exc:
            raise RepositoryError(f"Campaign insert failed: {exc}") from exc

    def get_campaign(self, tenant_id: str, campaign_id: str) -> Optional[Campaign]:
        with self._repository.connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {_CAMPAIGN_COLUMNS} FROM Campaigns WHERE tenant_id = ? AND id = ?;",
                (tenant_id, campaign_id),
            )
            row = cursor.fetchone()
            return None if row is None else _row_to_campaign(row)

    def get_campaign_by_plan(self, tenant_id: str, plan_id: str) -> Optional[Campaign]:
        with self._repository.connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT {_CAMPAIGN_COLUMNS}
                FROM Campaigns
                WHERE tenant_id = ? AND source_plan_id = ?;
                """,
                (tenant_id, plan_id),
            )
            row = cursor.fetchone()
            return None if row is None else _row_to_campaign(row)

    def count_campaigns(self, tenant_id: str) -> int:
        with self._repository.connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT COUNT(*) AS count FROM Campaigns WHERE tenant_id = ?;",
                (tenant_id,),
            )
            return int(cursor.fetchone()["count"])

    def set_workflow_step(self, tenant_id: str, campaign_id: str, step: ConversionStep) -> None:
        try:
            with self._repository.connect() as conn:
                conn.execute(
                    "UPDATE Campaigns SET workflow_step = ? WHERE tenant_id = ? AND id = ?;",
                    (step.value, tenant_id, campaign_id),
                )
        except sqlite3.Error as exc:
            raise RepositoryError(f"Campaign progress update failed: {exc}") from exc

    def update_status(
        self,
        tenant_id: str,
        campaign_id: str,
        *,
        expected: CampaignStatus,
        target: CampaignStatus,
    ) -> bool:
        try:
            with self._repository.connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    UPDATE Campaigns SET status = ?
                    WHERE tenant_id = ? AND id = ? AND status = ?;
                    """,
                    (target.value, tenant_id, campaign_id, expected.value),
                )
                return cursor.rowcount == 1
        except sqlite3.Error as exc:
            raise RepositoryError(f"Campaign status update failed: {exc}") from exc

    def create_campaign_assets(self, assets: Sequence[CampaignAsset]) -> int:
        """Insert asset snapshots; rows that already exist are left untouched."""
        if not assets:
            return 0
        try:
            with self._repository.connect() as conn:
                cursor = conn.cursor()
                cursor.executemany(
                    f"""
                    INSERT OR IGNORE INTO CampaignAssets ({_ASSET_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                    """,
                    [
                        (
                            asset.tenant_id,
                            asset.campaign_id,
                            asset.resource_id,
                            asset.resource_code,
                            asset.city,
                            asset.area,
                            asset.location,
                            asset.media_type,
                            asset.dimensions,
                            asset.total_sqft,
                            asset.card_rate,
                            asset.negotiated_rate,
                            asset.booking_start.isoformat(),
                            asset.booking_end.isoformat(),
                            asset.booked_days,
                            asset.billing_mode.value,
                            asset.daily_rate,
                            asset.rent_amount,
                            asset.status.value,
                            int(asset.reservation_applied),
                        )
                        for asset in assets
                    ],
                )
                return max(cursor.rowcount, 0)
        except sqlite3.Error as exc:
            raise RepositoryError(f"Campaign asset insert failed: {exc}") from exc

    def list_campaign_assets(self, tenant_id: str, campaign_id: str) -> list[CampaignAsset]:
        with self._repository.connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT {_ASSET_COLUMNS}
                FROM CampaignAssets
                WHERE tenant_id = ? AND campaign_id = ?
                ORDER BY resource_code ASC, resource_id ASC;
                """,
                (tenant_id, campaign_id),
            )
            return [_row_to_asset(row) for row in cursor.fetchall()]

    def mark_reservation_applied(self, tenant_id: str, campaign_id: str, resource_id: str) -> None:
        try:
            with self._repository.connect() as conn:
                conn.execute(
                    """
                    UPDATE CampaignAssets
                    SET reservation_applied = 1
                    WHERE tenant_id = ? AND campaign_id = ? AND resource_id = ?;
                    """,
                    (tenant_id, campaign_id, resource_id),
                )
        except sqlite3.Error as exc:
            raise RepositoryError(f"Campaign asset progress update failed: {exc}") from exc

    def update_asset_status(
        self,
        tenant_id: str,
        campaign_id: str,
        resource_id: str,
        *,
        expected: CampaignAssetStatus,
        target: CampaignAssetStatus,
    ) -> bool:
        try:
            with self._repository.connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    UPDATE CampaignAssets SET status = ?
                    WHERE tenant_id = ? AND campaign_id = ? AND resource_id = ? AND status = ?;
                    """,
                    (target.value, tenant_id, campaign_id, resource_id, expected.value),
                )
                return cursor.rowcount == 1
        except sqlite3.Error as exc:
            raise RepositoryError(f"Campaign asset status update failed: {exc}") from exc

    def list_active_bookings(
        self,
        tenant_id: str,
        resource_ids: Sequence[str],
        active_statuses: Sequence[str],
    ) -> dict[str, list[Booking]]:
        """Return bookings held by active campaigns, grouped by resource id."""
        if not resource_ids or not active_statuses:
            return {}
        resource_placeholders = ",".join("?" for _ in resource_ids)
        status_placeholders = ",".join("?" for _ in active_statuses)
        with self._repository.connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT
                    ca.resource_id,
                    ca.booking_start,
                    ca.booking_end,
                    c.id AS campaign_id,
                    c.campaign_name,
                    c.client_name,
                    c.status
                FROM CampaignAssets AS ca
                INNER JOIN Campaigns AS c
                    ON c.tenant_id = ca.tenant_id AND c.id = ca.campaign_id
                WHERE ca.tenant_id = ?
                  AND ca.resource_id IN ({resource_placeholders})
                  AND c.status IN ({status_placeholders})
                ORDER BY ca.resource_id ASC, ca.booking_start ASC;
                """,
                (tenant_id, *resource_ids, *active_statuses),
            )
            grouped: dict[str, list[Booking]] = defaultdict(list)
            for row in cursor.fetchall():
                start = date.fromisoformat(str(row["booking_start"]))
                end = date.fromisoformat(str(row["booking_end"]))
                if end < start:
                    continue
                grouped[str(row["resource_id"])].append(
                    Booking(
                        campaign_id=str(row["campaign_id"]),
                        window=DateWindow(start, end),
                        campaign_name=str(row["campaign_name"]),
                        client_name=str(row["client_name"]),
                        campaign_status=str(row["status"]),
                    )
                )
            return dict(grouped)

    def list_booking_revenue(
        self,
        tenant_id: str,
        window: DateWindow,
        active_statuses: Sequence[str],
    ) -> list[BookingRevenueRecord]:
        """Bookings of non-cancelled campaigns intersecting `window`."""
        status_placeholders = ",".join("?" for _ in active_statuses)
        with self._repository.connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT ca.resource_id, ca.campaign_id, ca.booking_start, ca.booking_end,
                       ca.rent_amount, ca.booked_days
                FROM CampaignAssets AS ca
                INNER JOIN Campaigns AS c
                    ON c.tenant_id = ca.tenant_id AND c.id = ca.campaign_id
                WHERE ca.tenant_id = ?
                  AND ca.booking_start <= ?
                  AND ca.booking_end >= ?
                  AND c.status IN ({status_placeholders})
                ORDER BY ca.resource_id ASC, ca.booking_start ASC;
                """,
                (tenant_id, window.end.isoformat(), window.start.isoformat(), *active_statuses),
            )
            return [
                BookingRevenueRecord(
                    resource_id=str(row["resource_id"]),
                    campaign_id=str(row["campaign_id"]),
                    booking_start=date.fromisoformat(str(row["booking_start"])),
                    booking_end=date.fromisoformat(str(row["booking_end"])),
                    rent_amount=float(row["rent_amount"]),
                    booked_days=int(row["booked_days"]),
                )
                for row in cursor.fetchall()
            ]
