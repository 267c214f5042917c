"""Tenant-scoped persistence for media assets (resources)."""

from __future__ import annotations

import sqlite3
from datetime import date
from typing import Any, Optional

from reservation_engine.domain.models import DateWindow, Resource, ResourceStatus
from reservation_engine.repository.data_repository import DataRepository, RepositoryError


_RESOURCE_COLUMNS = (
    "id, tenant_id, code, city, area, location, media_type, dimensions, "
    "total_sqft, card_rate, illumination_type, status, booked_from, booked_to, "
    "current_campaign_id"
)

_UPDATABLE_FIELDS = {
    "code": "code",
    "city": "city",
    "area": "area",
    "location": "location",
    "media_type": "media_type",
    "dimensions": "dimensions",
    "total_sqft": "total_sqft",
    "card_rate": "card_rate",
    "illumination_type": "illumination_type",
    "status": "status",
    "booked_from": "booked_from",
    "booked_to": "booked_to",
    "active_campaign_ref": "current_campaign_id",
}


def _row_to_resource(row: sqlite3.Row) -> Resource:
    window = None
    if row["booked_from"] is not None and row["booked_to"] is not None:
        window = DateWindow(
            date.fromisoformat(str(row["booked_from"])),
            date.fromisoformat(str(row["booked_to"])),
        )
    return Resource(
        resource_id=str(row["id"]),
        tenant_id=str(row["tenant_id"]),
        code=str(row["code"]),
        city=str(row["city"]),
        area=str(row["area"]),
        location=str(row["location"]),
        media_type=str(row["media_type"]),
        dimensions=str(row["dimensions"]),
        total_sqft=float(row["total_sqft"]),
        card_rate=float(row["card_rate"]),
        illumination_type=str(row["illumination_type"]),
        status=ResourceStatus(row["status"]),
        reservation_window=window,
        active_campaign_ref=row["current_campaign_id"],
    )


def _serialize(value: Any) -> Any:
    if isinstance(value, ResourceStatus):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    return value


class ResourceStore:
    """Pass-through keyed store; no business rules live here."""

    def __init__(self, repository: DataRepository) -> None:
        self._repository = repository

    def create(self, resource: Resource) -> Resource:
        """Insert a resource; used by inventory seeding and tests."""
        window = resource.reservation_window
        try:
            with self._repository.connect() as conn:
                conn.execute(
                    f"""
                    INSERT INTO Resources ({_RESOURCE_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                    """,
                    (
                        resource.resource_id,
                        resource.tenant_id,
                        resource.code,
                        resource.city,
                        resource.area,
                        resource.location,
                        resource.media_type,
                        resource.dimensions,
                        resource.total_sqft,
                        resource.card_rate,
                        resource.illumination_type,
                        resource.status.value,
                        window.start.isoformat() if window else None,
                        window.end.isoformat() if window else None,
                        resource.active_campaign_ref,
                    ),
                )
        except sqlite3.Error as exc:
            raise RepositoryError(f"Resource insert failed: {exc}") from exc
        return resource

    def get(self, tenant_id: str, resource_id: str) -> Optional[Resource]:
        with self._repository.connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {_RESOURCE_COLUMNS} FROM Resources WHERE tenant_id = ? AND id = ?;",
                (tenant_id, resource_id),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return _row_to_resource(row)

    def get_many(self, tenant_id: str, resource_ids: list[str]) -> dict[str, Resource]:
        if not resource_ids:
            return {}
        placeholders = ",".join("?" for _ in resource_ids)
        with self._repository.connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT {_RESOURCE_COLUMNS}
                FROM Resources
                WHERE tenant_id = ? AND id IN ({placeholders});
                """,
                (tenant_id, *resource_ids),
            )
            return {
                str(row["id"]): _row_to_resource(row)
                for row in cursor.fetchall()
            }

    def list_by_tenant(
        self,
        tenant_id: str,
        *,
        city: str | None = None,
        media_type: str | None = None,
    ) -> list[Resource]:
        clauses = ["tenant_id = ?"]
        params: list[Any] = [tenant_id]
        if city:
            clauses.append("city = ?")
            params.append(city)
        if media_type:
            clauses.append("media_type = ?")
            params.append(media_type)
        with self._repository.connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT {_RESOURCE_COLUMNS}
                FROM Resources
                WHERE {" AND ".join(clauses)}
                ORDER BY code ASC, id ASC;
                """,
                tuple(params),
            )
            return [_row_to_resource(row) for row in cursor.fetchall()]

    def update(self, tenant_id: str, resource_id: str, fields: dict[str, Any]) -> bool:
        """Apply a partial update; returns False when the resource is absent."""
        unknown = set(fields) - set(_UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown resource fields: {sorted(unknown)}")
        if not fields:
            return self.get(tenant_id, resource_id) is not None

        assignments = ", ".join(f"{_UPDATABLE_FIELDS[name]} = ?" for name in fields)
        try:
            with self._repository.connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    f"""
                    UPDATE Resources
                    SET {assignments}, updated_at = CURRENT_TIMESTAMP
                    WHERE tenant_id = ? AND id = ?;
                    """,
                    (*(_serialize(value) for value in fields.values()), tenant_id, resource_id),
                )
                return cursor.rowcount == 1
        except sqlite3.Error as exc:
            raise RepositoryError(f"Resource update failed: {exc}") from exc

    def reserve(
        self,
        *,
        tenant_id: str,
        resource_id: str,
        window: DateWindow,
        campaign_id: str,
        expected_status: ResourceStatus,
        expected_campaign_ref: str | None,
    ) -> bool:
        """Compare-and-swap booking write.

        The row is only changed when it still holds the status and campaign
        reference the caller observed, so a concurrent writer makes this
        return False instead of silently overwriting its booking.
        """
        try:
            with self._repository.connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    UPDATE Resources
                    SET status = ?,
                        booked_from = ?,
                        booked_to = ?,
                        current_campaign_id = ?,
                        updated_at = CURRENT_TIMESTAMP
                    WHERE tenant_id = ?
                      AND id = ?
                      AND status = ?
                      AND current_campaign_id IS ?;
                    """,
                    (
                        ResourceStatus.BOOKED.value,
                        window.start.isoformat(),
                        window.end.isoformat(),
                        campaign_id,
                        tenant_id,
                        resource_id,
                        expected_status.value,
                        expected_campaign_ref,
                    ),
                )
                return cursor.rowcount == 1
        except sqlite3.Error as exc:
            raise RepositoryError(f"Resource reservation failed: {exc}") from exc
