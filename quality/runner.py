"""Claim scheduler: polls eligible sessions and assesses them in parallel."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.engine import Engine

from .config import WorkerConfig
from .db_queries import select_eligible_sessions, to_epoch_millis, utc_now
from .processor import AssessmentResult, QualityCheckProcessor, SampleSource
from .retry import run_with_retry

logger = logging.getLogger(__name__)


@dataclass
class CycleStats:
    selected: int = 0
    completed: int = 0
    failed: int = 0
    deferred: int = 0
    skipped: int = 0
    errors: int = 0
    aborted: bool = False

    def record(self, result: AssessmentResult) -> None:
        if result is AssessmentResult.COMPLETED:
            self.completed += 1
        elif result is AssessmentResult.FAILED:
            self.failed += 1
        elif result is AssessmentResult.DEFERRED:
            self.deferred += 1
        elif result is AssessmentResult.SKIPPED:
            self.skipped += 1


def completed_threshold_ms(cfg: WorkerConfig, now: Optional[datetime] = None) -> int:
    """Sessions must have ended before this epoch (ms) to be eligible."""
    now = now or utc_now()
    return to_epoch_millis(now - timedelta(minutes=cfg.completed_threshold_minutes))


def run_once(
    engine: Engine,
    cache: SampleSource,
    cfg: WorkerConfig,
    stop_event: Optional[threading.Event] = None,
    now: Optional[datetime] = None,
    processor: Optional[QualityCheckProcessor] = None,
) -> CycleStats:
    """One polling cycle. Never raises: failures are logged and counted."""
    stats = CycleStats()
    threshold = completed_threshold_ms(cfg, now)

    try:
        sessions = run_with_retry(
            engine,
            lambda conn: select_eligible_sessions(conn, threshold_ms=threshold, limit=cfg.batch_size),
        )
    except Exception as e:
        logger.error("quality_cycle_aborted err=%s", e)
        stats.aborted = True
        return stats

    stats.selected = len(sessions)
    if not sessions:
        logger.debug("No sessions found for quality checking")
        return stats

    logger.info("Found %d sessions for quality checking", len(sessions))
    processor = processor or QualityCheckProcessor(engine, cache, stop_event=stop_event)
    num_workers = max(1, min(cfg.max_concurrency, len(sessions)))

    t0 = time.monotonic()
    # Submitted oldest-first; completion order is not guaranteed.
    with ThreadPoolExecutor(max_workers=num_workers, thread_name_prefix="quality") as pool:
        futures = {pool.submit(processor.process_session, s): s.session_id for s in sessions}
        for fut in as_completed(futures):
            sid = futures[fut]
            try:
                stats.record(fut.result())
            except Exception as exc:
                stats.errors += 1
                logger.error("quality_session_failed session=%s err=%s", sid, exc)

    cycle_ms = (time.monotonic() - t0) * 1000
    logger.info(
        "quality_cycle ms=%.1f sessions=%d ok=%d failed=%d deferred=%d skipped=%d errors=%d workers=%d",
        cycle_ms, stats.selected, stats.completed, stats.failed,
        stats.deferred, stats.skipped, stats.errors, num_workers,
    )
    return stats


def run_forever(
    engine: Engine,
    cache: SampleSource,
    cfg: WorkerConfig,
    stop_event: threading.Event,
) -> None:
    """Poll until ``stop_event`` is set. Each cycle is independent."""
    logger.info("Quality Check Worker starting up...")
    logger.info(
        "Config: interval=%.1fs threshold=%.1fmin batch=%d concurrency=%d",
        cfg.polling_interval_seconds, cfg.completed_threshold_minutes,
        cfg.batch_size, cfg.max_concurrency,
    )

    # Give the other services a moment to come up.
    if stop_event.wait(cfg.startup_delay_seconds):
        logger.info("Quality Check Worker stopped before first cycle")
        return

    while not stop_event.is_set():
        run_once(engine, cache, cfg, stop_event=stop_event)
        if cfg.once:
            break
        logger.debug("Ciclo completado, esperando %.1fs...", cfg.polling_interval_seconds)
        stop_event.wait(cfg.polling_interval_seconds)

    logger.info("Quality Check Worker shutting down...")
