"""Tests del retry de transacciones ante deadlocks.

Ejecutar:
    pytest tests/test_retry.py -v
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import DBAPIError

from quality.retry import is_retryable, run_with_retry


class _PgError(Exception):
    def __init__(self, pgcode):
        super().__init__(f"pgcode {pgcode}")
        self.pgcode = pgcode


def _dbapi_error(pgcode) -> DBAPIError:
    return DBAPIError("UPDATE sessions", {}, _PgError(pgcode))


@pytest.fixture
def engine():
    eng = MagicMock()
    # Let exceptions raised inside the block propagate.
    eng.begin.return_value.__exit__.return_value = False
    return eng


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    sleeps = []
    monkeypatch.setattr("quality.retry.time.sleep", sleeps.append)
    return sleeps


class TestIsRetryable:

    @pytest.mark.parametrize("code", ["40P01", "40001"])
    def test_deadlock_and_serialization(self, code):
        assert is_retryable(_dbapi_error(code)) is True

    def test_other_codes(self):
        assert is_retryable(_dbapi_error("23505")) is False
        assert is_retryable(_dbapi_error(None)) is False


class TestRunWithRetry:

    def test_returns_work_result(self, engine):
        assert run_with_retry(engine, lambda conn: 42) == 42
        assert engine.begin.call_count == 1

    def test_retries_deadlock_in_new_transaction(self, engine, no_sleep):
        attempts = []

        def work(conn):
            attempts.append(conn)
            if len(attempts) < 3:
                raise _dbapi_error("40P01")
            return "ok"

        assert run_with_retry(engine, work, max_retries=3) == "ok"
        assert engine.begin.call_count == 3
        assert len(no_sleep) == 2
        assert no_sleep[1] > no_sleep[0]

    def test_gives_up_after_max_retries(self, engine):
        def work(conn):
            raise _dbapi_error("40001")

        with pytest.raises(DBAPIError):
            run_with_retry(engine, work, max_retries=2)
        assert engine.begin.call_count == 2

    def test_non_retryable_raises_immediately(self, engine, no_sleep):
        def work(conn):
            raise _dbapi_error("23505")

        with pytest.raises(DBAPIError):
            run_with_retry(engine, work)
        assert engine.begin.call_count == 1
        assert no_sleep == []

    def test_deadlock_retry_is_logged(self, engine, caplog):
        calls = []

        def work(conn):
            calls.append(conn)
            if len(calls) == 1:
                raise _dbapi_error("40P01")
            return "ok"

        with caplog.at_level("WARNING", logger="quality.retry"):
            run_with_retry(engine, work)

        assert "Deadlock detectado (intento 1/3)" in caplog.text
