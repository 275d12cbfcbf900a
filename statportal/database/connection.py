"""Database connection and session management."""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from fastapi import Request
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# Base class for all models
Base = declarative_base()


def _normalize_url(database_url: str) -> str:
    # Standardize on psycopg3 format
    if "postgresql+psycopg2://" in database_url:
        return database_url.replace("postgresql+psycopg2://", "postgresql+psycopg://")
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+psycopg://")
    return database_url


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """Let pysqlite honour SAVEPOINT by emitting BEGIN ourselves."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine for the given URL.

    SQLite URLs (used locally and in tests) get a single shared connection for
    in-memory databases and working SAVEPOINT support; PostgreSQL gets a
    pooled psycopg engine.
    """
    if not database_url:
        raise RuntimeError("DATABASE_URL not found in environment or config")

    database_url = _normalize_url(database_url)

    if database_url.startswith("sqlite"):
        engine_kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite+pysqlite://"):
            engine_kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, echo=echo, **engine_kwargs)
        _enable_sqlite_savepoints(engine)
    else:
        logger.info(f"Using database URL format: {database_url.split('@')[0]}@[HIDDEN]")
        engine = create_engine(
            database_url,
            echo=echo,
            pool_pre_ping=True,
            pool_recycle=1800,  # 30 minutes
            pool_timeout=20,
            pool_size=10,
            max_overflow=20,
            connect_args={
                "application_name": "statportal",
                "connect_timeout": 10,
                "options": "-c timezone=UTC"
            },
            isolation_level="READ_COMMITTED"
        )

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Create the session factory handed to request handlers and services."""
    return sessionmaker(bind=engine, expire_on_commit=False, autoflush=True)


def init_database(settings: dict) -> sessionmaker:
    """Build engine and session factory from settings and check connectivity."""
    engine = create_db_engine(
        settings.get("DATABASE_URL"),
        echo=settings.get("LOG_LEVEL") == "DEBUG",
    )

    try:
        with engine.connect() as test_conn:
            test_conn.execute(text("SELECT 1"))
            logger.info("Database connection test successful")
    except Exception as engine_error:
        logger.error(f"Database engine creation failed: {engine_error}")
        raise RuntimeError(f"Cannot create database engine: {engine_error}") from engine_error

    return create_session_factory(engine)


def get_db(request: Request) -> Generator[Session, None, None]:
    """Dependency for getting database session."""
    session_factory: Optional[sessionmaker] = getattr(request.app.state, "session_factory", None)
    if session_factory is None:
        raise RuntimeError("Database is not initialized")

    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """Context manager for a committed unit of work."""
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def check_connection(db: Session) -> bool:
    """Test database connection."""
    try:
        db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
