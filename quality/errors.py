"""Exceptions raised by the quality assessment pipeline."""

from __future__ import annotations


NO_SAMPLES_REASON = "No IMU data found in cache"
NO_WAYPOINTS_REASON = "No button press events found - incomplete session data"


class QualityCheckError(Exception):
    """Base error for the quality check worker."""


class InputInsufficient(QualityCheckError):
    """The session lacks samples or waypoint events. Terminal for the session."""

    def __init__(self, session_id: str, reason: str):
        self.session_id = session_id
        self.reason = reason
        super().__init__(f"session {session_id}: {reason}")


class TransientFetchError(QualityCheckError):
    """Cache or store unreachable. The session stays pending and is retried."""

    def __init__(self, session_id: str, source: str, cause: Exception | None = None):
        self.session_id = session_id
        self.source = source
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{source} unavailable for session {session_id}{detail}")
