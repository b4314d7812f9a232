"""Tests del scorer de calidad (0-100 + remarks).

Ejecutar:
    pytest tests/test_scoring.py -v
"""

from decimal import Decimal

import pytest

from quality.models import SensorCoverage, SessionMetrics
from quality.scoring import NO_ISSUES_REMARK, gap_penalty, score_metrics


def _coverage(**overrides) -> SensorCoverage:
    values = dict(
        accel=Decimal("100"), gyro=Decimal("100"), mag=Decimal("100"),
        barometer=Decimal("100"), gps=Decimal("100"),
    )
    values.update({k: Decimal(str(v)) for k, v in overrides.items()})
    return SensorCoverage(**values)


def _metrics(coverage: SensorCoverage | None = None, **overrides) -> SessionMetrics:
    values = dict(
        total_samples=80_000,
        total_waypoints=5,
        duration_minutes=10.0,
        coverage=coverage or _coverage(),
        has_anomalies=False,
        has_gaps=False,
        gap_count=0,
        effective_start=0,
        effective_end=600_000,
        used_gate_marker=True,
    )
    values.update(overrides)
    return SessionMetrics(**values)


# =============================================================================
# BASELINE
# =============================================================================

class TestBaseline:

    def test_clean_session_scores_100_with_canned_remark(self):
        result = score_metrics(_metrics())
        assert result.score == Decimal("100")
        assert result.remarks == ()
        assert result.remarks_text == NO_ISSUES_REMARK

    def test_score_has_two_decimals(self):
        assert score_metrics(_metrics()).score.as_tuple().exponent == -2


# =============================================================================
# INDIVIDUAL RULES
# =============================================================================

class TestDeductions:
    """Each rule triggers on its own with the documented magnitude."""

    @pytest.mark.parametrize(
        "metrics,expected,remark_start",
        [
            (_metrics(total_samples=69_999), 80, "Insufficient data points (69999 < 70000)"),
            (_metrics(duration_minutes=4.9), 85, "Session too short (4.9 min < 5 min)"),
            (_metrics(coverage=_coverage(accel=49.9)), 85, "Low accelerometer coverage (49.9%)"),
            (_metrics(coverage=_coverage(gyro=0)), 85, "Low gyroscope coverage"),
            (_metrics(coverage=_coverage(mag=10)), 90, "Low magnetometer coverage"),
            (_metrics(coverage=_coverage(barometer=49)), 90, "Low barometer coverage"),
            (_metrics(coverage=_coverage(gps=9.99)), 95, "Very low GPS coverage"),
            (_metrics(has_anomalies=True), 90, "Sensor anomalies detected"),
            (_metrics(has_gaps=True, gap_count=1), 98, "Data gaps detected (1 gaps > 3 seconds)"),
        ],
    )
    def test_rule(self, metrics, expected, remark_start):
        result = score_metrics(metrics)
        assert result.score == Decimal(expected)
        assert len(result.remarks) == 1
        assert result.remarks[0].startswith(remark_start)

    def test_thresholds_are_exclusive(self):
        metrics = _metrics(
            total_samples=70_000,
            duration_minutes=5.0,
            coverage=_coverage(accel=50, gyro=50, mag=50, barometer=50, gps=10),
        )
        assert score_metrics(metrics).score == Decimal("100")

    def test_just_below_threshold_is_penalized(self):
        """Coverage that would round up to the threshold at five decimals still counts as low."""
        metrics = _metrics(coverage=_coverage(accel="49.999996", gps="9.9999951"))

        result = score_metrics(metrics)

        assert result.score == Decimal("80")
        assert result.remarks[0].startswith("Low accelerometer coverage")
        assert result.remarks[1].startswith("Very low GPS coverage")

    @pytest.mark.parametrize("gaps,penalty", [(1, 2), (3, 6), (5, 10), (6, 10), (500, 10)])
    def test_gap_penalty_capped(self, gaps, penalty):
        assert gap_penalty(gaps) == penalty
        assert score_metrics(_metrics(has_gaps=True, gap_count=gaps)).score == Decimal(100 - penalty)


# =============================================================================
# BONUS + CLAMPING
# =============================================================================

class TestBonusAndClamp:

    def test_bonus_clamped_to_100(self):
        result = score_metrics(_metrics(total_waypoints=12))
        assert result.score == Decimal("100")
        assert result.remarks == ("Good button press data (12 events)",)

    def test_bonus_offsets_a_deduction(self):
        result = score_metrics(_metrics(total_waypoints=10, has_anomalies=True))
        assert result.score == Decimal("95")

    def test_score_never_below_zero(self):
        metrics = _metrics(
            total_samples=1,
            duration_minutes=0.5,
            coverage=_coverage(accel=0, gyro=0, mag=0, barometer=0, gps=0),
            has_anomalies=True,
            has_gaps=True,
            gap_count=40,
        )
        result = score_metrics(metrics)
        assert result.score == Decimal("0")
        assert len(result.remarks) == 9

    def test_remark_order_and_separator(self):
        metrics = _metrics(total_samples=500, duration_minutes=2.0, coverage=_coverage(accel=30))
        result = score_metrics(metrics)
        assert result.score == Decimal("50")
        assert result.remarks_text == (
            "Insufficient data points (500 < 70000); "
            "Session too short (2.0 min < 5 min); "
            "Low accelerometer coverage (30.0%)"
        )
