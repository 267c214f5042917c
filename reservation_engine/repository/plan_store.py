"""Persistence for proposals (plans) and their ordered line items."""

from __future__ import annotations

import sqlite3
from datetime import date, datetime, timezone
from typing import Optional

from reservation_engine.domain.models import BillingMode, Plan, PlanLineItem, PlanStatus
from reservation_engine.repository.data_repository import DataRepository, RepositoryError


def _optional_date(value: object) -> date | None:
    if value is None:
        return None
    return date.fromisoformat(str(value))


def _row_to_plan(row: sqlite3.Row) -> Plan:
    return Plan(
        plan_id=str(row["id"]),
        tenant_id=str(row["tenant_id"]),
        plan_name=str(row["plan_name"]),
        client_name=str(row["client_name"]),
        status=PlanStatus(row["status"]),
        start_date=date.fromisoformat(str(row["start_date"])),
        end_date=date.fromisoformat(str(row["end_date"])),
        notes=str(row["notes"]),
        converted_campaign_id=row["converted_campaign_id"],
        converted_at=row["converted_at"],
    )


def _row_to_item(row: sqlite3.Row) -> PlanLineItem:
    return PlanLineItem(
        plan_id=str(row["plan_id"]),
        position=int(row["position"]),
        resource_id=str(row["resource_id"]),
        sales_price=float(row["sales_price"]),
        billing_mode=BillingMode(row["billing_mode"]),
        start_date=_optional_date(row["start_date"]),
        end_date=_optional_date(row["end_date"]),
        daily_rate=None if row["daily_rate"] is None else float(row["daily_rate"]),
    )


class PlanStore:
    def __init__(self, repository: DataRepository) -> None:
        self._repository = repository

    def create_plan(self, plan: Plan) -> Plan:
        try:
            with self._repository.connect() as conn:
                conn.execute(
                    """
                    INSERT INTO Plans (
                        tenant_id, id, plan_name, client_name, status,
                        start_date, end_date, notes
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?);
                    """,
                    (
                        plan.tenant_id,
                        plan.plan_id,
                        plan.plan_name,
                        plan.client_name,
                        plan.status.value,
                        plan.start_date.isoformat(),
                        plan.end_date.isoformat(),
                        plan.notes,
                    ),
                )
        except sqlite3.Error as exc:
            raise RepositoryError(f"Plan insert failed: {exc}") from exc
        return plan

    def get_plan(self, tenant_id: str, plan_id: str) -> Optional[Plan]:
        with self._repository.connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT tenant_id, id, plan_name, client_name, status, start_date,
                       end_date, notes, converted_campaign_id, converted_at
                FROM Plans
                WHERE tenant_id = ? AND id = ?;
                """,
                (tenant_id, plan_id),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return _row_to_plan(row)

    def list_items(self, tenant_id: str, plan_id: str) -> list[PlanLineItem]:
        with self._repository.connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT plan_id, position, resource_id, start_date, end_date,
                       sales_price, billing_mode, daily_rate
                FROM PlanItems
                WHERE tenant_id = ? AND plan_id = ?
                ORDER BY position ASC;
                """,
                (tenant_id, plan_id),
            )
            return [_row_to_item(row) for row in cursor.fetchall()]

    def add_item(self, tenant_id: str, item: PlanLineItem) -> PlanLineItem:
        """Append a line item at the next position; re-adding a resource replaces it."""
        try:
            with self._repository.connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    INSERT INTO PlanItems (
                        tenant_id, plan_id, position, resource_id, start_date,
                        end_date, sales_price, billing_mode, daily_rate
                    )
                    VALUES (
                        ?, ?,
                        (SELECT COALESCE(MAX(position), 0) + 1
                         FROM PlanItems WHERE tenant_id = ? AND plan_id = ?),
                        ?, ?, ?, ?, ?, ?
                    )
                    ON CONFLICT (tenant_id, plan_id, resource_id) DO UPDATE SET
                        start_date = excluded.start_date,
                        end_date = excluded.end_date,
                        sales_price = excluded.sales_price,
                        billing_mode = excluded.billing_mode,
                        daily_rate = excluded.daily_rate;
                    """,
                    (
                        tenant_id,
                        item.plan_id,
                        tenant_id,
                        item.plan_id,
                        item.resource_id,
                        item.start_date.isoformat() if item.start_date else None,
                        item.end_date.isoformat() if item.end_date else None,
                        item.sales_price,
                        item.billing_mode.value,
                        item.daily_rate,
                    ),
                )
                cursor.execute(
                    """
                    SELECT plan_id, position, resource_id, start_date, end_date,
                           sales_price, billing_mode, daily_rate
                    FROM PlanItems
                    WHERE tenant_id = ? AND plan_id = ? AND resource_id = ?;
                    """,
                    (tenant_id, item.plan_id, item.resource_id),
                )
                return _row_to_item(cursor.fetchone())
        except sqlite3.Error as exc:
            raise RepositoryError(f"Plan item write failed: {exc}") from exc

    def remove_item(self, tenant_id: str, plan_id: str, resource_id: str) -> bool:
        try:
            with self._repository.connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    DELETE FROM PlanItems
                    WHERE tenant_id = ? AND plan_id = ? AND resource_id = ?;
                    """,
                    (tenant_id, plan_id, resource_id),
                )
                return cursor.rowcount == 1
        except sqlite3.Error as exc:
            raise RepositoryError(f"Plan item delete failed: {exc}") from exc

    def update_status(
        self,
        tenant_id: str,
        plan_id: str,
        *,
        expected: PlanStatus,
        target: PlanStatus,
    ) -> bool:
        """Conditional status change; False when the plan moved underneath us."""
        try:
            with self._repository.connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    UPDATE Plans
                    SET status = ?
                    WHERE tenant_id = ? AND id = ? AND status = ?;
                    """,
                    (target.value, tenant_id, plan_id, expected.value),
                )
                return cursor.rowcount == 1
        except sqlite3.Error as exc:
            raise RepositoryError(f"Plan status update failed: {exc}") from exc

    def mark_converted(self, tenant_id: str, plan_id: str, campaign_id: str) -> bool:
        """Finalize a plan; repeating the call for the same campaign is a no-op."""
        converted_at = datetime.now(timezone.utc).isoformat()
        try:
            with self._repository.connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    UPDATE Plans
                    SET status = ?,
                        converted_campaign_id = ?,
                        converted_at = COALESCE(converted_at, ?)
                    WHERE tenant_id = ?
                      AND id = ?
                      AND (status != ? OR converted_campaign_id = ?);
                    """,
                    (
                        PlanStatus.CONVERTED.value,
                        campaign_id,
                        converted_at,
                        tenant_id,
                        plan_id,
                        PlanStatus.CONVERTED.value,
                        campaign_id,
                    ),
                )
                return cursor.rowcount == 1
        except sqlite3.Error as exc:
            raise RepositoryError(f"Plan finalization failed: {exc}") from exc
