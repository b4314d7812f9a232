"""Tables read and written by the quality worker.

The acquisition backend owns these tables in production; ``ensure_schema``
exists for local environments and tests. Column names follow the
snake_case convention of the backend store.
"""

from __future__ import annotations

import logging

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    func,
    text,
)
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

metadata = MetaData()

sessions = Table(
    "sessions",
    metadata,
    Column("session_id", String(100), primary_key=True),
    Column("user_id", String(100), index=True),
    Column("start_timestamp", BigInteger, nullable=False, server_default=text("0")),
    Column("end_timestamp", BigInteger),
    Column("is_synced", Boolean, nullable=False, server_default=text("TRUE")),
    Column("status", String(50), nullable=False, server_default="in_progress"),
    Column("payment_status", String(50), nullable=False, server_default="unpaid"),
    Column("remarks", Text),
    Column("bonus_amount", Numeric(10, 2)),
    Column("created_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    Column("updated_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    # Quality scoring
    Column("quality_score", Numeric(5, 2)),
    Column("quality_status", Integer, nullable=False, server_default=text("0")),
    Column("quality_checked_at", DateTime),
    Column("quality_remarks", Text),
    # Data volume
    Column("total_imu_data_points", Integer),
    Column("total_button_presses", Integer),
    Column("duration_minutes", Float),
    # Sensor coverage (0-100)
    Column("accel_data_coverage", Numeric(8, 5)),
    Column("gyro_data_coverage", Numeric(8, 5)),
    Column("mag_data_coverage", Numeric(8, 5)),
    Column("gps_data_coverage", Numeric(8, 5)),
    Column("barometer_data_coverage", Numeric(8, 5)),
    # Flags
    Column("has_anomalies", Boolean, nullable=False, server_default=text("FALSE")),
    Column("has_data_gaps", Boolean, nullable=False, server_default=text("FALSE")),
    Column("data_gap_count", Integer, nullable=False, server_default=text("0")),
    # Schema-free auxiliary metrics (JSON text)
    Column("quality_metrics_raw_json", Text),
    Index("ix_sessions_status_quality_status", "status", "quality_status"),
)

button_presses = Table(
    "button_presses",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("session_id", String(100), nullable=False),
    Column("user_id", String(100)),
    Column("action", String(100), nullable=False),
    Column("timestamp", BigInteger, nullable=False),
    Column("floor_index", Integer),
    Column("is_synced", Boolean, nullable=False, server_default=text("TRUE")),
    Column("created_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    Column("updated_at", DateTime, nullable=False, server_default=func.current_timestamp()),
    Index("ix_button_presses_session_ts", "session_id", "timestamp"),
)


def ensure_schema(engine: Engine) -> None:
    """Create the tables if they don't exist. Safe to call multiple times."""
    logger.info("[DB] Ensuring quality schema exists")
    metadata.create_all(engine, checkfirst=True)
