"""Deadlock retry helper for SQL transactions."""

from __future__ import annotations

import logging
import random
import time
from typing import Callable, Optional, TypeVar

from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgreSQL: deadlock_detected, serialization_failure
RETRYABLE_SQLSTATES = frozenset({"40P01", "40001"})


def _sqlstate(exc: DBAPIError) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    if orig is None:
        return None
    # psycopg2 exposes pgcode, psycopg 3 exposes sqlstate
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def is_retryable(exc: DBAPIError) -> bool:
    return _sqlstate(exc) in RETRYABLE_SQLSTATES


def run_with_retry(
    engine: Engine,
    work: Callable[[Connection], T],
    max_retries: int = 3,
) -> T:
    """Ejecuta ``work`` en su propia transacción con retry + exponential backoff para deadlocks.

    Tras un deadlock la transacción de PostgreSQL queda inutilizable, por eso
    cada intento abre un ``engine.begin()`` nuevo. Cualquier otro error se relanza.
    """
    for attempt in range(1, max_retries + 1):
        try:
            with engine.begin() as conn:
                return work(conn)
        except DBAPIError as e:
            if is_retryable(e) and attempt < max_retries:
                delay = min(1000 * (2 ** (attempt - 1)), 5000)
                jitter = random.uniform(0, delay * 0.1)
                total_delay = (delay + jitter) / 1000.0
                logger.warning(
                    "Deadlock detectado (intento %d/%d), reintentando en %.2fs...",
                    attempt, max_retries, total_delay,
                )
                time.sleep(total_delay)
                continue
            logger.error("Error ejecutando transacción (intento %d/%d): %s", attempt, max_retries, e)
            raise
    raise RuntimeError("retry loop exited without a result")
