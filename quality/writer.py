"""Applies assessment outcomes to session rows.

Both entry points issue a single conditional UPDATE in its own transaction,
keyed by session id *and* ``quality_status = pending``. The update doubles
as an optimistic claim: if another worker already finished the session,
no row matches and nothing is overwritten.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.engine import Engine

from .db_queries import update_quality_completed, update_quality_failed, utc_now
from .metrics import quantize_coverage
from .models import QualityOutcome
from .retry import run_with_retry

logger = logging.getLogger(__name__)


def _naive_utc_now() -> datetime:
    # Columns are TIMESTAMP WITHOUT TIME ZONE holding UTC.
    return utc_now().replace(tzinfo=None)


class SessionOutcomeWriter:
    def __init__(self, engine: Engine, clock: Optional[Callable[[], datetime]] = None):
        self._engine = engine
        self._clock = clock or _naive_utc_now

    def apply_success(self, session_id: str, outcome: QualityOutcome) -> bool:
        """Persist a completed assessment. Returns False if the session was not pending."""
        m = outcome.metrics
        cov = m.coverage
        checked_at = self._clock()
        aux_json = outcome.aux_json(checked_at)

        updated = run_with_retry(
            self._engine,
            lambda conn: update_quality_completed(
                conn,
                session_id=session_id,
                checked_at=checked_at,
                quality_score=outcome.score,
                quality_remarks=outcome.remarks,
                total_imu_data_points=m.total_samples,
                total_button_presses=m.total_waypoints,
                duration_minutes=m.duration_minutes,
                accel_data_coverage=quantize_coverage(cov.accel),
                gyro_data_coverage=quantize_coverage(cov.gyro),
                mag_data_coverage=quantize_coverage(cov.mag),
                gps_data_coverage=quantize_coverage(cov.gps),
                barometer_data_coverage=quantize_coverage(cov.barometer),
                has_anomalies=m.has_anomalies,
                has_data_gaps=m.has_gaps,
                data_gap_count=m.gap_count,
                quality_metrics_raw_json=aux_json,
            ),
        )
        if not updated:
            logger.info("quality_write_skipped session=%s reason=not_pending", session_id)
            return False
        logger.info("quality_completed session=%s score=%.2f", session_id, outcome.score)
        return True

    def apply_failure(self, session_id: str, reason: str) -> bool:
        """Mark the session failed with ``reason``. Metric columns are left untouched."""
        checked_at = self._clock()
        updated = run_with_retry(
            self._engine,
            lambda conn: update_quality_failed(
                conn, session_id=session_id, checked_at=checked_at, reason=reason,
            ),
        )
        if not updated:
            logger.info("quality_write_skipped session=%s reason=not_pending", session_id)
            return False
        logger.warning("Marked session %s as failed: %s", session_id, reason)
        return True
