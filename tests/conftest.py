import pytest
from sqlalchemy import create_engine

from quality.db_queries import to_epoch_millis, utc_now
from quality.schema import ensure_schema


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so worker threads get their own connections."""
    eng = create_engine(
        f"sqlite:///{tmp_path / 'quality.db'}",
        future=True,
        connect_args={"timeout": 30},
    )
    ensure_schema(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def ended_an_hour_ago() -> int:
    """Epoch ms of a session end old enough to be eligible."""
    return to_epoch_millis(utc_now()) - 3_600_000
