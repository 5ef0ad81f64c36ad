"""Database connection helpers."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..logging import get_logger

__all__ = ["DEFAULT_PING_TIMEOUT", "build_engine", "normalize_database_url", "ping_engine"]

logger = get_logger(__name__)

DEFAULT_PING_TIMEOUT = 2.0
_POSTGRES_SCHEMES = ("postgres://", "postgresql://")


def normalize_database_url(dsn: str) -> str:
    """Map libpq-style URLs onto the psycopg SQLAlchemy driver."""

    for scheme in _POSTGRES_SCHEMES:
        if dsn.startswith(scheme):
            return "postgresql+psycopg://" + dsn[len(scheme) :]
    return dsn


def build_engine(dsn: str, *, echo: bool = False) -> Engine:
    """Create a SQLAlchemy engine for the configured DSN."""

    url = normalize_database_url(dsn)
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(
        url,
        echo=echo,
        future=True,
        pool_pre_ping=True,
        connect_args=connect_args,
    )
    logger.info("database_engine_created", extra={"dialect": engine.dialect.name})
    return engine


def _select_one(engine: Engine) -> bool:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return True


def ping_engine(engine: Engine, timeout: float = DEFAULT_PING_TIMEOUT) -> bool:
    """Return True when ``SELECT 1`` succeeds within ``timeout`` seconds."""

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="db-ping")
    try:
        future = executor.submit(_select_one, engine)
        return future.result(timeout=timeout)
    except FutureTimeoutError:
        logger.warning("database_ping_timeout", extra={"timeout_seconds": timeout})
        return False
    except SQLAlchemyError as exc:
        logger.warning("database_ping_failed", extra={"error": str(exc)})
        return False
    finally:
        executor.shutdown(wait=False)
