import logging
import os
import time
from typing import Callable, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import Session, sessionmaker

from .config import DATABASE_URL, DB_LOCK_TIMEOUT_MS, DB_RETRY_BACKOFF
from .errors import UpstreamUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Get environment-specific pool settings
POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "20"))
MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "30"))
POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "300"))
ENABLE_QUERY_LOGGING = os.getenv("DB_LOG_SLOW_QUERIES", "true").lower() == "true"
SLOW_QUERY_THRESHOLD = float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0"))


def _enable_sqlite_write_locking(engine: Engine) -> None:
    """
    Make every SQLite transaction take the database write lock up front.

    pysqlite defers BEGIN until the first write, so two bookings could both
    pass the overlap check before either inserts. BEGIN IMMEDIATE serializes
    them; the connect timeout bounds how long a transaction waits for the lock.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, _connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def _enable_slow_query_logging(engine: Engine) -> None:
    @event.listens_for(engine, "before_cursor_execute")
    def before_cursor_execute(conn, _cursor, statement, _parameters, context, _executemany):
        conn.info.setdefault("query_start_time", []).append(time.time())

    @event.listens_for(engine, "after_cursor_execute")
    def after_cursor_execute(conn, _cursor, statement, _parameters, context, _executemany):
        total = time.time() - conn.info["query_start_time"].pop(-1)
        if total > SLOW_QUERY_THRESHOLD:
            logger.warning(f"🐌 Slow query ({total:.2f}s): {statement[:200]}...")


def build_engine(url: str) -> Engine:
    """Create an engine with transaction timeouts suited to the backing store"""
    if url.startswith("sqlite"):
        new_engine = create_engine(
            url,
            connect_args={
                "check_same_thread": False,
                "timeout": DB_LOCK_TIMEOUT_MS / 1000,
            },
        )
        _enable_sqlite_write_locking(new_engine)
    else:
        new_engine = create_engine(
            url,
            pool_pre_ping=True,  # Test connections before using
            pool_recycle=POOL_RECYCLE,
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_timeout=POOL_TIMEOUT,
            connect_args={"options": f"-c lock_timeout={DB_LOCK_TIMEOUT_MS}"},
            echo=False,
        )
        logger.info(
            f"📊 Connection pool: size={POOL_SIZE}, max_overflow={MAX_OVERFLOW}, timeout={POOL_TIMEOUT}s"
        )

    if ENABLE_QUERY_LOGGING:
        _enable_slow_query_logging(new_engine)

    return new_engine


try:
    engine = build_engine(DATABASE_URL)
    logger.info("✅ Database engine created successfully")
except Exception as e:
    logger.error(f"❌ Failed to create database engine: {e}")
    raise

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def run_in_transaction(db: Session, work: Callable[[], T], retries: int = 1) -> T:
    """
    Run ``work`` and commit it as one unit.

    Lock and statement timeouts surface as OperationalError; those are retried
    ``retries`` times with linear backoff before being reported as a retryable
    upstream failure. Any other error rolls back and propagates unchanged.
    """
    attempt = 0
    while True:
        try:
            result = work()
            db.commit()
            return result
        except OperationalError as e:
            db.rollback()
            if attempt >= retries:
                logger.error(f"❌ Store transaction failed after {attempt + 1} attempts: {e}")
                raise UpstreamUnavailableError(
                    "The database is busy right now. Please try again."
                ) from e
            attempt += 1
            logger.warning(f"⚠️ Store transaction timed out, retrying (attempt {attempt}): {e}")
            time.sleep(DB_RETRY_BACKOFF * attempt)
        except Exception:
            db.rollback()
            raise
