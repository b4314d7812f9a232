"""Metric calculation for one session.

Coverage, effective window, gaps and anomalies are computed from the raw
sample stream. The effective window starts at the first gate-marker
waypoint (``REACHED_SOCIETY_GATE``) when there is one; everything recorded
before it (the ride from the restaurant) is ignored for duration and gaps.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Optional, Sequence

from .errors import NO_SAMPLES_REASON, NO_WAYPOINTS_REASON
from .models import (
    GATE_MARKER,
    AuxiliaryMetrics,
    Sample,
    SensorCoverage,
    SessionMetrics,
    WaypointEvent,
)
from .timestamps import normalize_timestamp

logger = logging.getLogger(__name__)

MAX_GAP_MILLISECONDS = 3000

# Anomaly ceilings (absolute value, per axis)
ACCEL_MAX_THRESHOLD = 50.0   # m/s²
GYRO_MAX_THRESHOLD = 10.0    # rad/s
MAG_MAX_THRESHOLD = 200.0    # μT

_COVERAGE_QUANTUM = Decimal("0.00001")
_MILLIS_PER_MINUTE = 60_000


@dataclass(frozen=True)
class InsufficientInput:
    """Reported instead of metrics when the session cannot be scored at all."""
    reason: str


def _has_accel(s: Sample) -> bool:
    return s.accel_x is not None or s.accel_y is not None or s.accel_z is not None


def _has_gyro(s: Sample) -> bool:
    return s.gyro_x is not None or s.gyro_y is not None or s.gyro_z is not None


def _has_mag(s: Sample) -> bool:
    return s.mag_x is not None or s.mag_y is not None or s.mag_z is not None


def _has_barometer(s: Sample) -> bool:
    return s.pressure is not None


def _has_gps(s: Sample) -> bool:
    return s.latitude is not None and s.longitude is not None


def calculate_coverage(samples: Sequence[Sample], predicate: Callable[[Sample], bool]) -> Decimal:
    """Percentage of samples matching ``predicate``, unrounded.

    Thresholds compare against this value; rounding happens only when the
    percentage is stored (see ``quantize_coverage``).
    """
    if not samples:
        return Decimal("0")
    count = sum(1 for s in samples if predicate(s))
    return Decimal(count) * 100 / Decimal(len(samples))


def quantize_coverage(pct: Decimal) -> Decimal:
    """Five decimals, half-up, as held by the NUMERIC(8,5) coverage columns."""
    return pct.quantize(_COVERAGE_QUANTUM, rounding=ROUND_HALF_UP)


def calculate_sensor_coverage(samples: Sequence[Sample]) -> SensorCoverage:
    return SensorCoverage(
        accel=calculate_coverage(samples, _has_accel),
        gyro=calculate_coverage(samples, _has_gyro),
        mag=calculate_coverage(samples, _has_mag),
        barometer=calculate_coverage(samples, _has_barometer),
        gps=calculate_coverage(samples, _has_gps),
    )


def find_gate_timestamp(waypoints: Sequence[WaypointEvent]) -> Optional[int]:
    """Normalized timestamp of the first gate-marker waypoint, if any."""
    for wp in waypoints:
        if wp.action == GATE_MARKER.value:
            return normalize_timestamp(wp.timestamp)
    return None


def _exceeds(value: Optional[float], ceiling: float) -> bool:
    return value is not None and abs(value) > ceiling


def detect_anomalies(samples: Sequence[Sample]) -> bool:
    """True as soon as one sample has an axis above its family ceiling."""
    for s in samples:
        if (
            _exceeds(s.accel_x, ACCEL_MAX_THRESHOLD)
            or _exceeds(s.accel_y, ACCEL_MAX_THRESHOLD)
            or _exceeds(s.accel_z, ACCEL_MAX_THRESHOLD)
            or _exceeds(s.gyro_x, GYRO_MAX_THRESHOLD)
            or _exceeds(s.gyro_y, GYRO_MAX_THRESHOLD)
            or _exceeds(s.gyro_z, GYRO_MAX_THRESHOLD)
            or _exceeds(s.mag_x, MAG_MAX_THRESHOLD)
            or _exceeds(s.mag_y, MAG_MAX_THRESHOLD)
            or _exceeds(s.mag_z, MAG_MAX_THRESHOLD)
        ):
            return True
    return False


def detect_data_gaps(samples: Sequence[Sample], start_from: Optional[int] = None) -> int:
    """Count adjacent sample pairs further apart than ``MAX_GAP_MILLISECONDS``.

    Only samples at or after ``start_from`` (normalized ms) are considered;
    ``None`` means the whole stream.
    """
    timestamps = [normalize_timestamp(s.timestamp) for s in samples]
    if start_from is not None:
        timestamps = [t for t in timestamps if t >= start_from]
    if len(timestamps) < 2:
        return 0

    timestamps.sort()
    gap_count = 0
    for previous, current in zip(timestamps, timestamps[1:]):
        delta = current - previous
        if delta > MAX_GAP_MILLISECONDS:
            gap_count += 1
            logger.debug("Data gap detected: %.1fs between records", delta / 1000.0)
    return gap_count


def calculate_metrics(
    samples: Sequence[Sample],
    waypoints: Sequence[WaypointEvent],
    end_timestamp: Optional[int],
) -> SessionMetrics | InsufficientInput:
    """Compute every metric the scorer needs for one session.

    Returns ``InsufficientInput`` when there are no samples or no waypoint
    events; a partial score is never produced in that case. The
    ``checked_at`` aux key is added by the writer, with the same instant it
    stores in ``quality_checked_at``.
    """
    if not samples:
        return InsufficientInput(NO_SAMPLES_REASON)
    if not waypoints:
        return InsufficientInput(NO_WAYPOINTS_REASON)

    aux = AuxiliaryMetrics()
    first_timestamp = min(normalize_timestamp(s.timestamp) for s in samples)

    gate_ts = find_gate_timestamp(waypoints)
    if gate_ts is not None:
        effective_start = gate_ts
        logger.debug("Using %s timestamp as start: %d", GATE_MARKER.value, gate_ts)
    else:
        effective_start = first_timestamp
        logger.warning("No %s waypoint found, using first IMU timestamp", GATE_MARKER.value)

    effective_end: Optional[int] = None
    if end_timestamp is not None:
        effective_end = normalize_timestamp(end_timestamp)
        duration_minutes = (effective_end - effective_start) / _MILLIS_PER_MINUTE
    else:
        duration_minutes = 0.0
        logger.warning("Cannot calculate duration - session has no end timestamp")

    aux.add("effective_start_timestamp", effective_start)
    aux.add("effective_end_timestamp", effective_end)
    aux.add("start_source", "gate_marker" if gate_ts is not None else "first_sample")
    if effective_end is None:
        aux.add("end_timestamp_missing", True)

    coverage = calculate_sensor_coverage(samples)
    has_anomalies = detect_anomalies(samples)
    gap_count = detect_data_gaps(samples, gate_ts)

    aux.add("first_timestamp", first_timestamp)
    aux.add("last_timestamp", effective_end if effective_end is not None else 0)
    aux.add("avg_accel_coverage", quantize_coverage(coverage.accel))
    aux.add("avg_gyro_coverage", quantize_coverage(coverage.gyro))

    return SessionMetrics(
        total_samples=len(samples),
        total_waypoints=len(waypoints),
        duration_minutes=duration_minutes,
        coverage=coverage,
        has_anomalies=has_anomalies,
        has_gaps=gap_count > 0,
        gap_count=gap_count,
        effective_start=effective_start,
        effective_end=effective_end,
        used_gate_marker=gate_ts is not None,
        aux=aux,
    )
