import urllib.parse
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from voucher_engine.config import get_settings


def normalize_database_url(url: str) -> str:
    # sqlite URLs carry an empty netloc that a urlparse round-trip drops
    if url.startswith("sqlite"):
        return url
    # Ensure proper encoding by parsing and reconstructing the URL
    try:
        return urllib.parse.urlunparse(urllib.parse.urlparse(url))
    except ValueError:
        return url.encode("utf-8", errors="replace").decode("utf-8")


DATABASE_URL = normalize_database_url(get_settings().database_url)


def enable_sqlite_transactions(engine):
    """Let SQLAlchemy, not pysqlite, emit BEGIN so SAVEPOINTs and locking behave."""

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def build_engine(url: str):
    connect_args = {}
    if url.startswith("postgres"):
        connect_args = {"options": "-c timezone=utc"}
    elif url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}

    engine = create_engine(url, connect_args=connect_args)
    if url.startswith("sqlite"):
        enable_sqlite_transactions(engine)
    return engine


engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transactional(db: Session):
    """Commit the session on normal exit, roll back on any exception.

    Every state change that has to land atomically (status + counter on
    redemption, claim insert, state transitions) runs inside one of these.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def utcnow() -> datetime:
    # Keep naive UTC timestamps to match the TIMESTAMP column semantics.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)
