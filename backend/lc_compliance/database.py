"""
Database Engine & Session Management
SQLAlchemy setup with dependency injection for FastAPI.
"""
import os

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

from lc_compliance.config import get_settings

settings = get_settings()

Base = declarative_base()


def enable_sqlite_transactions(engine: Engine) -> None:
    """Let SQLAlchemy own BEGIN so SAVEPOINT / ROLLBACK TO behave on pysqlite.

    The audit chain writer relies on savepoints to retry a rejected append
    without discarding the surrounding check transaction.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


def _build_engine(url: str) -> Engine:
    if not url.startswith("sqlite"):
        return create_engine(url, echo=settings.DEBUG, pool_pre_ping=True)

    # Ensure data directory exists
    db_path = url.replace("sqlite:///", "")
    if db_path and db_path != url and db_path != ":memory:":
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)

    sqlite_engine = create_engine(
        url,
        connect_args={"check_same_thread": False},  # Required for SQLite
        echo=settings.DEBUG,
    )
    enable_sqlite_transactions(sqlite_engine)
    return sqlite_engine


engine = _build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """FastAPI dependency: yields a database session, auto-closes on finish."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine | None = None):
    """Create all tables. Called once at application startup."""
    from lc_compliance.models import lookup as _lookup_model   # noqa: F401
    from lc_compliance.models import audit as _audit_model     # noqa: F401
    from lc_compliance.models import lc as _lc_model           # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
