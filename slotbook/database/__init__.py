"""
Database engine, session factory, and metadata shared across the application.
"""

from __future__ import annotations

import logging
from typing import Any, Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from slotbook.core.config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()

# Waiting writers retry for this long before SQLite reports "database is locked"
_SQLITE_BUSY_TIMEOUT_SECONDS = 30


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _enable_sqlite_pragmas(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection: Any, _record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(url: Optional[str] = None, *, echo: Optional[bool] = None) -> Engine:
    """
    Create an engine for ``url`` (defaults to settings.database_url).

    In-memory SQLite uses a StaticPool so every session sees the same database.
    """
    database_url = url or settings.database_url
    kwargs: dict[str, Any] = {"future": True, "echo": settings.database_echo if echo is None else echo}

    if _is_sqlite(database_url):
        kwargs["connect_args"] = {
            "check_same_thread": False,
            "timeout": _SQLITE_BUSY_TIMEOUT_SECONDS,
        }
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite+pysqlite://"):
            kwargs["poolclass"] = StaticPool
    else:
        kwargs.update({"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10})

    engine = create_engine(database_url, **kwargs)
    if _is_sqlite(database_url):
        _enable_sqlite_pragmas(engine)
    logger.info("Database engine created for dialect %s", engine.dialect.name)
    return engine


engine = build_engine()
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_dialect_name(session: Session, default: str = "sqlite") -> str:
    """Return the dialect name of the engine the session is bound to."""
    bind = session.get_bind()
    if bind is None:
        return default
    return bind.dialect.name or default


def init_db(bind: Optional[Engine] = None) -> None:
    """Create all tables that do not exist yet."""
    import slotbook.models  # noqa: F401  (populates Base.metadata)

    target = bind or engine
    Base.metadata.create_all(bind=target)
    logger.info("Database tables ensured on %s", target.dialect.name)


__all__ = [
    "Base",
    "SessionLocal",
    "build_engine",
    "engine",
    "get_db",
    "get_dialect_name",
    "init_db",
]
