"""
Database connection and session management.
"""
from __future__ import annotations

from typing import Any, Generator

from dotenv import load_dotenv
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from fetanpay.config import Settings, get_settings
from fetanpay.core.exceptions import ConfigurationError

load_dotenv()

_engine: Engine | None = None
_session_factory: sessionmaker | None = None


def build_engine(settings: Settings) -> Engine:
    """
    Create an engine for the configured database.
    """
    if not settings.database_url:
        raise ConfigurationError("DATABASE_URL is not configured.")

    if settings.database_url.lower().startswith("sqlite"):
        return create_engine(settings.database_url, echo=False)

    return create_engine(
        settings.database_url,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_recycle=settings.db_pool_recycle,
        echo=False,
    )


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = build_engine(get_settings())
    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _session_factory


def dispose_engine() -> None:
    """
    Close pooled connections and forget the cached engine.
    """
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting a database session.
    """
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """
    Initialize database by registering models and creating tables.
    """
    from fetanpay.models import Base

    Base.metadata.create_all(bind=get_engine())


def database_health() -> dict[str, Any]:
    """
    Return structured database health details.
    """
    try:
        with get_engine().connect() as connection:
            connection.execute(text("SELECT 1"))
        return {
            "ok": True,
            "dialect": get_engine().dialect.name,
        }
    except (SQLAlchemyError, ConfigurationError) as exc:
        return {
            "ok": False,
            "error": str(exc),
        }
