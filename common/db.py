from __future__ import annotations

from typing import Optional
import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Engine

from .config import Settings, get_settings


logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None


def build_sqlalchemy_url(settings: Settings) -> str | URL:
    if settings.database_url:
        return settings.database_url

    # URL.create handles passwords with special characters.
    return URL.create(
        settings.db_driver,
        username=settings.db_user,
        password=settings.db_password or None,
        host=settings.db_host,
        port=settings.db_port,
        database=settings.db_name,
    )


def create_db_engine(settings: Settings | None = None) -> Engine:
    settings = settings or get_settings()
    url = build_sqlalchemy_url(settings)

    # Log básico de parámetros de conexión (sin contraseña)
    logger.info(
        "[DB] Crear engine PostgreSQL host=%s port=%s db=%s user=%s driver=%s",
        settings.db_host,
        settings.db_port,
        settings.db_name,
        settings.db_user,
        settings.db_driver,
    )

    engine = create_engine(url, pool_pre_ping=True, pool_recycle=300, future=True)

    # Test de conexión: ayuda a ver en logs si el worker realmente llega a la BD
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("[DB] Test de conexión OK")
    except Exception:
        logger.exception("[DB] Test de conexión FALLÓ")

    return engine


def get_engine() -> Engine:
    """Process-wide engine, created lazily on first use."""
    global _engine
    if _engine is None:
        _engine = create_db_engine()
    return _engine


def dispose_engine() -> None:
    global _engine
    if _engine is not None:
        _engine.dispose()
        _engine = None
