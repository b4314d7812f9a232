from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def _default_env_file() -> str:
    # The worker ships next to the acquisition stack; a local .env is enough.
    repo_root = Path(__file__).resolve().parents[1]
    return str(repo_root / ".env")


@dataclass(frozen=True)
class Settings:
    db_host: str
    db_port: int
    db_user: str
    db_password: str
    db_name: str

    db_driver: str
    database_url: Optional[str]

    redis_url: str


def get_settings() -> Settings:
    # Load env file (if present) but still allow overriding via real environment variables.
    env_file = os.getenv("QUALITY_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    db_host = os.getenv("DB_HOST", "localhost")
    db_port = int(os.getenv("DB_PORT", "5432"))
    db_user = os.getenv("DB_USER", "postgres")
    db_password = os.getenv("DB_PASSWORD", "")
    db_name = os.getenv("DB_NAME", "ipsdatastream")

    # SQLAlchemy dialect+driver. psycopg2 is the default image driver;
    # "postgresql+psycopg" works as well when psycopg 3 is installed.
    db_driver = os.getenv("DB_DRIVER", "postgresql+psycopg2")

    # A full URL wins over the individual parts (used by compose and tests).
    database_url = os.getenv("DATABASE_URL") or None

    redis_url = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    return Settings(
        db_host=db_host,
        db_port=db_port,
        db_user=db_user,
        db_password=db_password,
        db_name=db_name,
        db_driver=db_driver,
        database_url=database_url,
        redis_url=redis_url,
    )
