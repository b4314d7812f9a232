"""CLI entry point for the quality check worker."""

from __future__ import annotations

import argparse
import logging
import os
import signal
import threading
from typing import Optional, Sequence

from common.config import get_settings
from common.db import dispose_engine, get_engine

from .cache import RedisSampleCache
from .config import WorkerConfig
from .runner import run_forever
from .schema import ensure_schema

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Session quality check worker (score + flags per completed session)")
    p.add_argument("--polling-interval", type=float, default=None, help="seconds between cycles")
    p.add_argument("--completed-threshold-minutes", type=float, default=None)
    p.add_argument("--batch-size", type=int, default=None)
    p.add_argument("--max-concurrency", type=int, default=None)
    p.add_argument("--startup-delay", type=float, default=None)
    p.add_argument("--once", action="store_true", help="run a single cycle and exit")
    p.add_argument("--init-schema", action="store_true", help="create missing tables before starting")
    return p


def _install_signal_handlers(stop_event: threading.Event) -> None:
    def _handle(signum, _frame):
        logger.info("Stop requested (signal %s)", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)


def main(argv: Optional[Sequence[str]] = None) -> None:
    logging.basicConfig(
        level=os.getenv("QC_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )

    args = build_parser().parse_args(argv)
    cfg = WorkerConfig.from_env().with_overrides(
        polling_interval_seconds=args.polling_interval,
        completed_threshold_minutes=args.completed_threshold_minutes,
        batch_size=args.batch_size,
        max_concurrency=args.max_concurrency,
        startup_delay_seconds=args.startup_delay,
        once=True if args.once else None,
    )

    settings = get_settings()
    engine = get_engine()
    if args.init_schema:
        ensure_schema(engine)

    cache = RedisSampleCache(settings.redis_url, key_prefix=cfg.redis_key_prefix)
    if not cache.ping():
        # Not fatal: each session fetch will be deferred until Redis is back.
        logger.warning("[REDIS] Not reachable at startup, continuing")

    stop_event = threading.Event()
    _install_signal_handlers(stop_event)

    try:
        run_forever(engine, cache, cfg, stop_event)
    finally:
        cache.close()
        dispose_engine()


if __name__ == "__main__":
    main()
