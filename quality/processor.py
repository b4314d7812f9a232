"""Runs one quality assessment for a claimed session.

fetch samples (Redis) -> load waypoints (DB) -> metrics -> score -> write

Per-session error policy:
- ``TransientFetchError``: nothing is written, the session stays pending.
- ``InputInsufficient``: terminal failure with a fixed reason.
- store errors while writing a computed score: nothing is written, the
  session stays pending.
- anything else: terminal failure with the error message as reason. If
  that write fails too, the session stays pending for the next cycle.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Optional, Protocol

from sqlalchemy.engine import Engine
from sqlalchemy.exc import InterfaceError, OperationalError

from .db_queries import load_waypoints
from .errors import NO_SAMPLES_REASON, InputInsufficient, TransientFetchError
from .metrics import InsufficientInput, calculate_metrics
from .models import QualityOutcome, Sample, SessionRecord, WaypointEvent
from .scoring import score_metrics
from .writer import SessionOutcomeWriter

logger = logging.getLogger(__name__)


class AssessmentResult(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    DEFERRED = "deferred"   # left pending, retried on a later cycle
    SKIPPED = "skipped"     # no longer pending, another worker finished it


class SampleSource(Protocol):
    def fetch_samples(self, session_id: str) -> list[Sample]: ...


class QualityCheckProcessor:
    def __init__(
        self,
        engine: Engine,
        cache: SampleSource,
        writer: Optional[SessionOutcomeWriter] = None,
        stop_event: Optional[threading.Event] = None,
    ):
        self._engine = engine
        self._cache = cache
        self._writer = writer or SessionOutcomeWriter(engine)
        self._stop_event = stop_event

    def _stopping(self) -> bool:
        return self._stop_event is not None and self._stop_event.is_set()

    def process_session(self, session: SessionRecord) -> AssessmentResult:
        sid = session.session_id
        if self._stopping():
            return AssessmentResult.DEFERRED

        try:
            logger.info("Starting quality check for session %s", sid)
            outcome = self.assess(session)

            # Shutdown requested mid-computation: drop the result, nothing was written.
            if self._stopping():
                logger.info("quality_deferred session=%s reason=shutdown", sid)
                return AssessmentResult.DEFERRED

            return self._complete(sid, outcome)

        except TransientFetchError as e:
            logger.warning("quality_deferred session=%s reason=%s", sid, e)
            return AssessmentResult.DEFERRED
        except InputInsufficient as e:
            logger.warning("Insufficient input for session %s: %s", sid, e.reason)
            return self._fail(sid, e.reason)
        except Exception as e:
            logger.exception("Error processing quality check for session %s", sid)
            return self._fail(sid, f"Quality check error: {e}")

    def assess(self, session: SessionRecord) -> QualityOutcome:
        """Compute the outcome without writing anything."""
        sid = session.session_id

        samples = self._cache.fetch_samples(sid)
        if not samples:
            # Checked before touching the DB.
            raise InputInsufficient(sid, NO_SAMPLES_REASON)
        logger.info("Retrieved %d IMU data points for session %s", len(samples), sid)

        waypoints = self._load_waypoints(sid)
        logger.info("Retrieved %d button presses for session %s", len(waypoints), sid)

        metrics = calculate_metrics(samples, waypoints, session.end_timestamp)
        if isinstance(metrics, InsufficientInput):
            raise InputInsufficient(sid, metrics.reason)

        result = score_metrics(metrics)
        return QualityOutcome(score=result.score, remarks=result.remarks_text, metrics=metrics)

    def _load_waypoints(self, session_id: str) -> list[WaypointEvent]:
        try:
            with self._engine.connect() as conn:
                return load_waypoints(conn, session_id)
        except (OperationalError, InterfaceError) as e:
            raise TransientFetchError(session_id, "database", e) from e

    def _complete(self, session_id: str, outcome: QualityOutcome) -> AssessmentResult:
        try:
            applied = self._writer.apply_success(session_id, outcome)
        except (OperationalError, InterfaceError) as e:
            # Store unreachable or retries exhausted: the score is recomputed next cycle.
            logger.warning("quality_deferred session=%s reason=write_failed err=%s", session_id, e)
            return AssessmentResult.DEFERRED
        return AssessmentResult.COMPLETED if applied else AssessmentResult.SKIPPED

    def _fail(self, session_id: str, reason: str) -> AssessmentResult:
        try:
            applied = self._writer.apply_failure(session_id, reason)
        except Exception:
            # Still pending, picked up again next cycle.
            logger.exception("Failed to mark session %s as failed", session_id)
            return AssessmentResult.DEFERRED
        return AssessmentResult.FAILED if applied else AssessmentResult.SKIPPED
