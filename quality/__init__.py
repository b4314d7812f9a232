"""Session quality check worker.

Modules:
- timestamps: millisecond/nanosecond epoch normalization
- models: sessions, samples, waypoint events, outcomes
- metrics: coverage, effective window, gaps, anomalies
- scoring: deterministic 0-100 score + remarks
- cache: Redis sample cache (both wire encodings)
- db_queries: all SQL statements
- writer: conditional outcome writes (pending -> completed | failed)
- processor: one assessment for one claimed session
- runner: claim scheduler (run_once, run_forever)
- cli: CLI entry point (main)
"""

from .config import WorkerConfig
from .processor import AssessmentResult, QualityCheckProcessor
from .runner import run_forever, run_once

__all__ = ["WorkerConfig", "AssessmentResult", "QualityCheckProcessor", "run_once", "run_forever"]
