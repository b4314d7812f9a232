"""Deterministic quality score (0-100) with human-readable remarks.

Every deduction is additive, so rule order only affects the order of the
remarks. Changing the scoring policy means editing the constants below.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from .metrics import MAX_GAP_MILLISECONDS
from .models import SessionMetrics

MAX_SCORE = Decimal("100")
MIN_SCORE = Decimal("0")

MIN_DATA_POINTS = 70_000
MIN_DURATION_MINUTES = 5
MIN_SENSOR_COVERAGE = Decimal("50")
MIN_GPS_COVERAGE = Decimal("10")       # GPS is optional infrastructure
RICH_WAYPOINT_COUNT = 10

LOW_DATA_PENALTY = 20
SHORT_DURATION_PENALTY = 15
ACCEL_COVERAGE_PENALTY = 15
GYRO_COVERAGE_PENALTY = 15
MAG_COVERAGE_PENALTY = 10
BAROMETER_COVERAGE_PENALTY = 10
GPS_COVERAGE_PENALTY = 5
ANOMALY_PENALTY = 10
GAP_PENALTY_PER_GAP = 2
MAX_GAP_PENALTY = 10
WAYPOINT_BONUS = 5

REMARK_SEPARATOR = "; "
NO_ISSUES_REMARK = "Quality check passed without issues"

_SCORE_QUANTUM = Decimal("0.01")


@dataclass(frozen=True)
class ScoreResult:
    score: Decimal
    remarks: tuple[str, ...]

    @property
    def remarks_text(self) -> str:
        if not self.remarks:
            return NO_ISSUES_REMARK
        return REMARK_SEPARATOR.join(self.remarks)


def gap_penalty(gap_count: int) -> int:
    return min(MAX_GAP_PENALTY, gap_count * GAP_PENALTY_PER_GAP)


def score_metrics(metrics: SessionMetrics) -> ScoreResult:
    score = MAX_SCORE
    remarks: list[str] = []
    cov = metrics.coverage

    if metrics.total_samples < MIN_DATA_POINTS:
        score -= LOW_DATA_PENALTY
        remarks.append(f"Insufficient data points ({metrics.total_samples} < {MIN_DATA_POINTS})")

    if metrics.duration_minutes < MIN_DURATION_MINUTES:
        score -= SHORT_DURATION_PENALTY
        remarks.append(
            f"Session too short ({metrics.duration_minutes:.1f} min < {MIN_DURATION_MINUTES} min)"
        )

    if cov.accel < MIN_SENSOR_COVERAGE:
        score -= ACCEL_COVERAGE_PENALTY
        remarks.append(f"Low accelerometer coverage ({cov.accel:.1f}%)")

    if cov.gyro < MIN_SENSOR_COVERAGE:
        score -= GYRO_COVERAGE_PENALTY
        remarks.append(f"Low gyroscope coverage ({cov.gyro:.1f}%)")

    if cov.mag < MIN_SENSOR_COVERAGE:
        score -= MAG_COVERAGE_PENALTY
        remarks.append(f"Low magnetometer coverage ({cov.mag:.1f}%)")

    if cov.barometer < MIN_SENSOR_COVERAGE:
        score -= BAROMETER_COVERAGE_PENALTY
        remarks.append(f"Low barometer coverage ({cov.barometer:.1f}%)")

    if cov.gps < MIN_GPS_COVERAGE:
        score -= GPS_COVERAGE_PENALTY
        remarks.append(f"Very low GPS coverage ({cov.gps:.1f}%)")

    if metrics.has_anomalies:
        score -= ANOMALY_PENALTY
        remarks.append("Sensor anomalies detected (spikes or unrealistic values)")

    if metrics.has_gaps:
        score -= gap_penalty(metrics.gap_count)
        remarks.append(
            f"Data gaps detected ({metrics.gap_count} gaps > {MAX_GAP_MILLISECONDS / 1000:g} seconds)"
        )

    if metrics.total_waypoints >= RICH_WAYPOINT_COUNT:
        score += WAYPOINT_BONUS
        remarks.append(f"Good button press data ({metrics.total_waypoints} events)")

    score = max(MIN_SCORE, min(MAX_SCORE, score)).quantize(_SCORE_QUANTUM)
    return ScoreResult(score=score, remarks=tuple(remarks))
