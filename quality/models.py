"""Domain models for the quality check worker.

Samples and waypoint events are read-only inputs owned by the cache and
the relational store. ``QualityOutcome`` is built fresh for each attempt
and only ever reaches the database through the outcome writer.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Iterator, Optional, Union


class SessionStatus(str, Enum):
    """Lifecycle status of a data-collection session."""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    APPROVED = "approved"
    REJECTED = "rejected"


class QualityStatus(IntEnum):
    """Quality sub-state, nested inside ``SessionStatus.COMPLETED``."""
    PENDING = 0
    COMPLETED = 1
    FAILED = 2


class WaypointAction(str, Enum):
    """Closed vocabulary of user-triggered waypoint actions."""
    ENTERED_RESTAURANT_BUILDING = "ENTERED_RESTAURANT_BUILDING"
    ENTERED_ELEVATOR = "ENTERED_ELEVATOR"
    CLIMBING_STAIRS = "CLIMBING_STAIRS"
    GOING_UP_IN_LIFT = "GOING_UP_IN_LIFT"
    REACHED_RESTAURANT_CORRIDOR = "REACHED_RESTAURANT_CORRIDOR"
    REACHED_RESTAURANT = "REACHED_RESTAURANT"
    LEFT_RESTAURANT = "LEFT_RESTAURANT"
    COMING_DOWN_STAIRS = "COMING_DOWN_STAIRS"
    LEFT_RESTAURANT_BUILDING = "LEFT_RESTAURANT_BUILDING"
    REACHED_SOCIETY_GATE = "REACHED_SOCIETY_GATE"
    ENTERED_DELIVERY_BUILDING = "ENTERED_DELIVERY_BUILDING"
    ANOTHER_FLOOR_IN_BUILDING = "ANOTHER_FLOOR_IN_BUILDING"
    EXITING_BUILDING = "EXITING_BUILDING"
    BACK_TO_GROUND_FLOOR = "BACK_TO_GROUND_FLOOR"
    ANOTHER_BUILDING_IN_SOCIETY = "ANOTHER_BUILDING_IN_SOCIETY"
    REACHED_DELIVERY_CORRIDOR = "REACHED_DELIVERY_CORRIDOR"
    REACHED_DOORSTEP = "REACHED_DOORSTEP"
    LEFT_DOORSTEP = "LEFT_DOORSTEP"
    GOING_DOWN_IN_LIFT = "GOING_DOWN_IN_LIFT"
    LEAVING_SOCIETY = "LEAVING_SOCIETY"
    LEFT_DELIVERY_BUILDING = "LEFT_DELIVERY_BUILDING"


# Start of the portion of a session worth measuring.
GATE_MARKER = WaypointAction.REACHED_SOCIETY_GATE


@dataclass(frozen=True)
class Sample:
    """One telemetry point from the acquisition cache.

    Every reading is optional: a device need not expose every sensor.
    """
    timestamp: int
    timestamp_nanos: Optional[int] = None

    # Calibrated motion
    accel_x: Optional[float] = None
    accel_y: Optional[float] = None
    accel_z: Optional[float] = None
    gyro_x: Optional[float] = None
    gyro_y: Optional[float] = None
    gyro_z: Optional[float] = None
    mag_x: Optional[float] = None
    mag_y: Optional[float] = None
    mag_z: Optional[float] = None
    gravity_x: Optional[float] = None
    gravity_y: Optional[float] = None
    gravity_z: Optional[float] = None
    linear_accel_x: Optional[float] = None
    linear_accel_y: Optional[float] = None
    linear_accel_z: Optional[float] = None

    # Rotation
    rotation_vector_x: Optional[float] = None
    rotation_vector_y: Optional[float] = None
    rotation_vector_z: Optional[float] = None
    rotation_vector_w: Optional[float] = None

    # Environmental
    pressure: Optional[float] = None
    temperature: Optional[float] = None
    light: Optional[float] = None
    humidity: Optional[float] = None
    proximity: Optional[float] = None

    # Positioning
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    altitude: Optional[float] = None
    gps_accuracy: Optional[float] = None
    speed: Optional[float] = None


@dataclass(frozen=True)
class WaypointEvent:
    session_id: str
    action: str
    timestamp: int
    user_id: Optional[str] = None
    floor_index: Optional[int] = None


@dataclass(frozen=True)
class SessionRecord:
    """Projection of a session row claimed for assessment."""
    session_id: str
    end_timestamp: Optional[int]
    status: str = SessionStatus.COMPLETED.value
    quality_status: int = QualityStatus.PENDING
    user_id: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "SessionRecord":
        return cls(
            session_id=str(row["session_id"]),
            end_timestamp=int(row["end_timestamp"]) if row["end_timestamp"] is not None else None,
            status=str(row["status"]),
            quality_status=int(row["quality_status"]),
            user_id=row["user_id"],
        )


MetricValue = Union[int, float, Decimal, bool, str, datetime, None]


class AuxiliaryMetrics:
    """Append-only ordered list of named metric values.

    Serialized as a JSON object at the persistence boundary, so new metrics
    never need a schema migration.
    """

    def __init__(self) -> None:
        self._items: list[tuple[str, MetricValue]] = []

    def add(self, name: str, value: MetricValue) -> None:
        if not isinstance(value, (int, float, Decimal, bool, str, datetime, type(None))):
            raise TypeError(f"unsupported metric type for {name!r}: {type(value).__name__}")
        self._items.append((name, value))

    def get(self, name: str) -> MetricValue:
        # Last write wins on repeated names, matching the JSON object view.
        for key, value in reversed(self._items):
            if key == name:
                return value
        raise KeyError(name)

    def __contains__(self, name: object) -> bool:
        return any(key == name for key, _ in self._items)

    def __iter__(self) -> Iterator[tuple[str, MetricValue]]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def copy(self) -> "AuxiliaryMetrics":
        other = AuxiliaryMetrics()
        other._items = list(self._items)
        return other

    def to_json(self) -> str:
        return json.dumps({key: _json_value(value) for key, value in self._items})


def _json_value(value: MetricValue):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


@dataclass(frozen=True)
class SensorCoverage:
    """Percentage (0-100, unrounded) of samples carrying each sensor family."""
    accel: Decimal
    gyro: Decimal
    mag: Decimal
    barometer: Decimal
    gps: Decimal


@dataclass
class SessionMetrics:
    total_samples: int
    total_waypoints: int
    duration_minutes: float
    coverage: SensorCoverage
    has_anomalies: bool
    has_gaps: bool
    gap_count: int
    effective_start: int
    effective_end: Optional[int]
    used_gate_marker: bool
    aux: AuxiliaryMetrics = field(default_factory=AuxiliaryMetrics)


@dataclass(frozen=True)
class QualityOutcome:
    """Score, remarks and metrics for one assessment attempt."""
    score: Decimal
    remarks: str
    metrics: SessionMetrics

    def aux_json(self, checked_at: datetime) -> str:
        """Auxiliary metrics as JSON, stamped with the write time."""
        aux = self.metrics.aux.copy()
        aux.add("checked_at", checked_at)
        return aux.to_json()
