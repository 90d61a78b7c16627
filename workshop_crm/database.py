import logging
import os
import time

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import DATABASE_URL

logger = logging.getLogger(__name__)

SLOW_QUERY_SECONDS = float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0"))


def _pool_options() -> dict:
    """Connection pool settings for server databases (ignored for SQLite)"""
    return {
        "pool_pre_ping": True,
        "pool_size": int(os.getenv("DB_POOL_SIZE", "10")),
        "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", "20")),
        "pool_timeout": int(os.getenv("DB_POOL_TIMEOUT", "30")),
        "pool_recycle": int(os.getenv("DB_POOL_RECYCLE", "300")),
    }


def build_engine(url: str) -> Engine:
    """
    Create the engine for DATABASE_URL.

    SQLite connections are shared across threads (the tracker cache writes
    from a worker thread); an in-memory database uses one static connection
    so every session sees the same tables.
    """
    if not url.startswith("sqlite"):
        return create_engine(url, **_pool_options())

    options = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        options["poolclass"] = StaticPool
    return create_engine(url, **options)


def log_slow_queries(target: Engine, threshold: float = SLOW_QUERY_SECONDS) -> None:
    """Warn about statements slower than threshold seconds (disabled when threshold <= 0)"""
    if threshold <= 0:
        return

    @event.listens_for(target, "before_cursor_execute")
    def _start_timer(conn, cursor, statement, parameters, context, executemany):
        context._query_started = time.perf_counter()

    @event.listens_for(target, "after_cursor_execute")
    def _check_duration(conn, cursor, statement, parameters, context, executemany):
        elapsed = time.perf_counter() - getattr(context, "_query_started", time.perf_counter())
        if elapsed > threshold:
            logger.warning(f"🐌 Slow query ({elapsed * 1000:.0f} ms): {' '.join(statement.split())[:200]}")


engine = build_engine(DATABASE_URL)
log_slow_queries(engine)
logger.info(f"✅ Database engine ready ({engine.dialect.name})")

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
