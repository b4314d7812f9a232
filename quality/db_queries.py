"""SQL helper functions for the quality worker.

All database statements are centralized here. No business logic.
Statements are plain SQL accepted by both PostgreSQL and SQLite.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, Integer, Numeric, Text, bindparam, text
from sqlalchemy.engine import Connection

from .models import QualityStatus, SessionRecord, SessionStatus, WaypointEvent
from .timestamps import MAX_MILLIS_EPOCH, NANOS_PER_MILLI

# Same rule as normalize_timestamp(), evaluated by the database.
_NORMALIZED_END_TS = (
    f"CASE WHEN end_timestamp > {MAX_MILLIS_EPOCH} "
    f"THEN end_timestamp / {NANOS_PER_MILLI} ELSE end_timestamp END"
)

_SELECT_ELIGIBLE = text(
    f"""
    SELECT session_id, user_id, end_timestamp, status, quality_status
    FROM sessions
    WHERE status = :status
      AND quality_status = :pending
      AND end_timestamp IS NOT NULL
      AND {_NORMALIZED_END_TS} < :threshold_ms
    ORDER BY {_NORMALIZED_END_TS} ASC, session_id ASC
    LIMIT :limit
    """
)

_SELECT_WAYPOINTS = text(
    """
    SELECT session_id, user_id, action, timestamp, floor_index
    FROM button_presses
    WHERE session_id = :session_id
    ORDER BY timestamp ASC, id ASC
    """
)

_UPDATE_COMPLETED = text(
    """
    UPDATE sessions
    SET quality_status = :completed,
        quality_score = :quality_score,
        quality_checked_at = :checked_at,
        quality_remarks = :quality_remarks,
        total_imu_data_points = :total_imu_data_points,
        total_button_presses = :total_button_presses,
        duration_minutes = :duration_minutes,
        accel_data_coverage = :accel_data_coverage,
        gyro_data_coverage = :gyro_data_coverage,
        mag_data_coverage = :mag_data_coverage,
        gps_data_coverage = :gps_data_coverage,
        barometer_data_coverage = :barometer_data_coverage,
        has_anomalies = :has_anomalies,
        has_data_gaps = :has_data_gaps,
        data_gap_count = :data_gap_count,
        quality_metrics_raw_json = :quality_metrics_raw_json,
        updated_at = :checked_at
    WHERE session_id = :session_id
      AND quality_status = :pending
    """
).bindparams(
    bindparam("quality_score", type_=Numeric(5, 2)),
    bindparam("checked_at", type_=DateTime()),
    bindparam("quality_remarks", type_=Text()),
    bindparam("total_imu_data_points", type_=Integer()),
    bindparam("total_button_presses", type_=Integer()),
    bindparam("duration_minutes", type_=Float()),
    bindparam("accel_data_coverage", type_=Numeric(8, 5)),
    bindparam("gyro_data_coverage", type_=Numeric(8, 5)),
    bindparam("mag_data_coverage", type_=Numeric(8, 5)),
    bindparam("gps_data_coverage", type_=Numeric(8, 5)),
    bindparam("barometer_data_coverage", type_=Numeric(8, 5)),
    bindparam("has_anomalies", type_=Boolean()),
    bindparam("has_data_gaps", type_=Boolean()),
    bindparam("data_gap_count", type_=Integer()),
    bindparam("quality_metrics_raw_json", type_=Text()),
)

_UPDATE_FAILED = text(
    """
    UPDATE sessions
    SET quality_status = :failed,
        quality_checked_at = :checked_at,
        quality_remarks = :quality_remarks,
        updated_at = :checked_at
    WHERE session_id = :session_id
      AND quality_status = :pending
    """
).bindparams(
    bindparam("checked_at", type_=DateTime()),
    bindparam("quality_remarks", type_=Text()),
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_epoch_millis(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def select_eligible_sessions(conn: Connection, *, threshold_ms: int, limit: int) -> list[SessionRecord]:
    """Completed, quality-pending sessions that ended before ``threshold_ms``.

    Oldest end timestamp first, at most ``limit`` rows.
    """
    rows = conn.execute(
        _SELECT_ELIGIBLE,
        {
            "status": SessionStatus.COMPLETED.value,
            "pending": int(QualityStatus.PENDING),
            "threshold_ms": threshold_ms,
            "limit": limit,
        },
    ).mappings()
    return [SessionRecord.from_row(r) for r in rows]


def load_waypoints(conn: Connection, session_id: str) -> list[WaypointEvent]:
    rows = conn.execute(_SELECT_WAYPOINTS, {"session_id": session_id}).mappings()
    return [
        WaypointEvent(
            session_id=str(r["session_id"]),
            action=str(r["action"]),
            timestamp=int(r["timestamp"]),
            user_id=r["user_id"],
            floor_index=int(r["floor_index"]) if r["floor_index"] is not None else None,
        )
        for r in rows
    ]


def update_quality_completed(
    conn: Connection,
    *,
    session_id: str,
    checked_at: datetime,
    quality_score: Decimal,
    quality_remarks: str,
    total_imu_data_points: int,
    total_button_presses: int,
    duration_minutes: float,
    accel_data_coverage: Decimal,
    gyro_data_coverage: Decimal,
    mag_data_coverage: Decimal,
    gps_data_coverage: Decimal,
    barometer_data_coverage: Decimal,
    has_anomalies: bool,
    has_data_gaps: bool,
    data_gap_count: int,
    quality_metrics_raw_json: Optional[str],
) -> int:
    """Returns the number of rows updated (0 when the session is no longer pending)."""
    result = conn.execute(
        _UPDATE_COMPLETED,
        {
            "session_id": session_id,
            "completed": int(QualityStatus.COMPLETED),
            "pending": int(QualityStatus.PENDING),
            "checked_at": checked_at,
            "quality_score": quality_score,
            "quality_remarks": quality_remarks,
            "total_imu_data_points": total_imu_data_points,
            "total_button_presses": total_button_presses,
            "duration_minutes": duration_minutes,
            "accel_data_coverage": accel_data_coverage,
            "gyro_data_coverage": gyro_data_coverage,
            "mag_data_coverage": mag_data_coverage,
            "gps_data_coverage": gps_data_coverage,
            "barometer_data_coverage": barometer_data_coverage,
            "has_anomalies": has_anomalies,
            "has_data_gaps": has_data_gaps,
            "data_gap_count": data_gap_count,
            "quality_metrics_raw_json": quality_metrics_raw_json,
        },
    )
    return int(result.rowcount or 0)


def update_quality_failed(conn: Connection, *, session_id: str, checked_at: datetime, reason: str) -> int:
    result = conn.execute(
        _UPDATE_FAILED,
        {
            "session_id": session_id,
            "failed": int(QualityStatus.FAILED),
            "pending": int(QualityStatus.PENDING),
            "checked_at": checked_at,
            "quality_remarks": reason,
        },
    )
    return int(result.rowcount or 0)
