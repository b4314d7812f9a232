"""Builders and fakes shared by the quality worker tests."""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import insert, select
from sqlalchemy.engine import Engine

from quality.models import QualityStatus, Sample, SessionStatus, WaypointAction
from quality.schema import button_presses, sessions

# Every sensor family present, all values inside the anomaly ceilings.
FULL_READING = dict(
    accel_x=0.1, accel_y=9.8, accel_z=0.2,
    gyro_x=0.01, gyro_y=0.02, gyro_z=0.03,
    mag_x=20.0, mag_y=-15.0, mag_z=40.0,
    pressure=1013.2,
    latitude=19.0760, longitude=72.8777,
)


def make_samples(count: int, start_ts: int, step_ms: int, **readings) -> List[Sample]:
    fields = dict(FULL_READING)
    fields.update(readings)
    return [Sample(timestamp=start_ts + i * step_ms, **fields) for i in range(count)]


def make_bare_samples(timestamps: Iterable[int]) -> List[Sample]:
    return [Sample(timestamp=t) for t in timestamps]


def insert_session(
    engine: Engine,
    session_id: str,
    end_timestamp: Optional[int],
    status: str = SessionStatus.COMPLETED.value,
    quality_status: int = QualityStatus.PENDING,
) -> None:
    with engine.begin() as conn:
        conn.execute(
            insert(sessions).values(
                session_id=session_id,
                user_id="user-1",
                end_timestamp=end_timestamp,
                status=status,
                quality_status=int(quality_status),
            )
        )


def insert_waypoints(engine: Engine, session_id: str, events: Sequence[Tuple[str, int]]) -> None:
    with engine.begin() as conn:
        for action, ts in events:
            conn.execute(
                insert(button_presses).values(
                    session_id=session_id, user_id="user-1", action=action, timestamp=ts,
                )
            )


def waypoint_script(gate_ts: int, total: int) -> List[Tuple[str, int]]:
    """``total`` events, one of them the gate marker at ``gate_ts``."""
    events = [(WaypointAction.REACHED_SOCIETY_GATE.value, gate_ts)]
    if total >= 2:
        events.insert(0, (WaypointAction.LEFT_RESTAURANT.value, gate_ts - 60_000))
    for i in range(total - len(events)):
        events.append((WaypointAction.ANOTHER_FLOOR_IN_BUILDING.value, gate_ts + (i + 1) * 10_000))
    return events


def fetch_session(engine: Engine, session_id: str):
    with engine.connect() as conn:
        return conn.execute(select(sessions).where(sessions.c.session_id == session_id)).mappings().one()


class FakeCache:
    """In-memory stand-in for RedisSampleCache."""

    def __init__(
        self,
        data: Optional[Dict[str, List[Sample]]] = None,
        errors: Optional[Dict[str, Exception]] = None,
    ):
        self.data = data or {}
        self.errors = errors or {}
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def fetch_samples(self, session_id: str) -> List[Sample]:
        with self._lock:
            self.calls.append(session_id)
        if session_id in self.errors:
            raise self.errors[session_id]
        return list(self.data.get(session_id, []))
