"""Inventory utilisation report: occupancy and booked revenue per asset, city and media type."""

from __future__ import annotations

from typing import Any, Optional

import numpy as np
import pandas as pd

from reservation_engine.domain.constraints import build_window
from reservation_engine.domain.models import AuthContext, DateWindow, Resource
from reservation_engine.repository.campaign_store import BookingRevenueRecord, CampaignStore
from reservation_engine.repository.data_repository import DataRepository
from reservation_engine.repository.resource_store import ResourceStore
from reservation_engine.services.auth_service import require_role
from reservation_engine.services.errors import ReservationValidationError
from reservation_engine.utils.config import Settings, get_settings
from reservation_engine.utils.logger import get_logger


logger = get_logger(__name__)

_ASSET_COLUMNS = [
    "resource_id",
    "code",
    "city",
    "media_type",
    "card_rate",
    "booked_days",
    "occupancy_pct",
    "revenue",
    "campaigns",
]


def _booked_days_frame(records: list[BookingRevenueRecord], window: DateWindow) -> pd.DataFrame:
    """Distinct booked days inside the window per resource.

    Overlapping bookings of the same resource are counted once per day.
    """
    if not records:
        return pd.DataFrame(columns=["resource_id", "booked_days"])
    frame = pd.DataFrame(
        [
            {
                "resource_id": record.resource_id,
                "start": max(record.booking_start, window.start),
                "end": min(record.booking_end, window.end),
            }
            for record in records
        ]
    )
    frame["day"] = [
        list(pd.date_range(start=start, end=end, freq="D"))
        for start, end in zip(frame["start"], frame["end"])
    ]
    exploded = frame.explode("day").dropna(subset=["day"])
    return (
        exploded.groupby("resource_id")["day"]
        .nunique()
        .rename("booked_days")
        .reset_index()
    )


def _revenue_frame(records: list[BookingRevenueRecord]) -> pd.DataFrame:
    if not records:
        return pd.DataFrame(columns=["resource_id", "revenue", "campaigns"])
    frame = pd.DataFrame(
        [
            {
                "resource_id": record.resource_id,
                "campaign_id": record.campaign_id,
                "rent_amount": record.rent_amount,
            }
            for record in records
        ]
    )
    return (
        frame.groupby("resource_id")
        .agg(revenue=("rent_amount", "sum"), campaigns=("campaign_id", "nunique"))
        .reset_index()
    )


def _group_summary(frame: pd.DataFrame, column: str) -> list[dict[str, Any]]:
    if frame.empty:
        return []
    grouped = (
        frame.groupby(column)
        .agg(
            total_assets=("resource_id", "count"),
            booked_assets=("booked_days", lambda days: int(np.count_nonzero(days))),
            booked_days=("booked_days", "sum"),
            occupancy_pct=("occupancy_pct", "mean"),
            revenue=("revenue", "sum"),
        )
        .reset_index()
        .sort_values(by=column)
    )
    return [
        {
            column: str(row[column]),
            "total_assets": int(row["total_assets"]),
            "booked_assets": int(row["booked_assets"]),
            "booked_days": int(row["booked_days"]),
            "occupancy_pct": round(float(row["occupancy_pct"]), 2),
            "revenue": round(float(row["revenue"]), 2),
        }
        for _, row in grouped.iterrows()
    ]


class UtilizationService:
    """Builds the utilisation report with pandas; read-only like availability."""

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._resources = ResourceStore(self._repository)
        self._campaigns = CampaignStore(self._repository)

    def build_frame(
        self,
        resources: list[Resource],
        records: list[BookingRevenueRecord],
        window: DateWindow,
    ) -> pd.DataFrame:
        if not resources:
            return pd.DataFrame(columns=_ASSET_COLUMNS)

        frame = pd.DataFrame(
            [
                {
                    "resource_id": resource.resource_id,
                    "code": resource.code,
                    "city": resource.city,
                    "media_type": resource.media_type,
                    "card_rate": resource.card_rate,
                }
                for resource in resources
            ]
        )
        frame = frame.merge(_booked_days_frame(records, window), on="resource_id", how="left")
        frame = frame.merge(_revenue_frame(records), on="resource_id", how="left")
        frame["booked_days"] = frame["booked_days"].fillna(0).astype(int)
        frame["revenue"] = frame["revenue"].fillna(0.0).astype(float).round(2)
        frame["campaigns"] = frame["campaigns"].fillna(0).astype(int)
        frame["occupancy_pct"] = np.round(frame["booked_days"] / window.days * 100.0, 2)
        return frame[_ASSET_COLUMNS]

    def utilization(
        self,
        context: AuthContext,
        start_date: str,
        end_date: str,
    ) -> dict[str, Any]:
        require_role(context, self._settings.report_roles)
        try:
            window = build_window(start_date, end_date)
        except ValueError as exc:
            raise ReservationValidationError(str(exc)) from exc

        resources = self._resources.list_by_tenant(context.tenant_id)
        records = self._campaigns.list_booking_revenue(
            context.tenant_id,
            window,
            self._settings.active_campaign_statuses,
        )
        frame = self.build_frame(resources, records, window)

        total_assets = int(len(frame))
        summary = {
            "start_date": window.start.isoformat(),
            "end_date": window.end.isoformat(),
            "window_days": window.days,
            "total_assets": total_assets,
            "booked_assets": int(np.count_nonzero(frame["booked_days"])) if total_assets else 0,
            "idle_assets": int((frame["booked_days"] == 0).sum()) if total_assets else 0,
            "average_occupancy_pct": (
                round(float(frame["occupancy_pct"].mean()), 2) if total_assets else 0.0
            ),
            "total_revenue": round(float(frame["revenue"].sum()), 2) if total_assets else 0.0,
        }
        logger.info(
            "Utilisation computed | tenant_id=%s | window=%s..%s | assets=%s | avg_occupancy=%.2f",
            context.tenant_id,
            window.start,
            window.end,
            total_assets,
            summary["average_occupancy_pct"],
        )
        return {
            "assets": [
                {
                    "resource_id": str(row["resource_id"]),
                    "code": str(row["code"]),
                    "city": str(row["city"]),
                    "media_type": str(row["media_type"]),
                    "card_rate": float(row["card_rate"]),
                    "booked_days": int(row["booked_days"]),
                    "occupancy_pct": float(row["occupancy_pct"]),
                    "revenue": float(row["revenue"]),
                    "campaigns": int(row["campaigns"]),
                }
                for _, row in frame.iterrows()
            ],
            "by_city": _group_summary(frame, "city"),
            "by_media_type": _group_summary(frame, "media_type"),
            "summary": summary,
        }
