import logging
import os
import time

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import DATABASE_URL

logger = logging.getLogger(__name__)

# Pool settings apply to server databases only
POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "20"))
MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "30"))
POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "300"))
ENABLE_QUERY_LOGGING = os.getenv("DB_LOG_SLOW_QUERIES", "true").lower() == "true"
SLOW_QUERY_THRESHOLD = float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0"))


def _build_sqlite_engine(url: str) -> Engine:
    """SQLite for development and tests: foreign keys on, one shared connection when in memory"""
    options = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        options["poolclass"] = StaticPool

    sqlite_engine = create_engine(url, **options)

    @event.listens_for(sqlite_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return sqlite_engine


def _attach_slow_query_logging(target: Engine) -> None:
    @event.listens_for(target, "before_cursor_execute")
    def before_cursor_execute(conn, _cursor, statement, _parameters, context, _executemany):
        conn.info.setdefault("query_start_time", []).append(time.time())

    @event.listens_for(target, "after_cursor_execute")
    def after_cursor_execute(conn, _cursor, statement, _parameters, context, _executemany):
        total = time.time() - conn.info["query_start_time"].pop(-1)
        if total > SLOW_QUERY_THRESHOLD:
            logger.warning(f"🐌 Slow query ({total:.2f}s): {statement[:200]}...")


def build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        new_engine = _build_sqlite_engine(url)
        logger.info("✅ SQLite engine created")
    else:
        new_engine = create_engine(
            url,
            pool_pre_ping=True,  # Test connections before using
            pool_recycle=POOL_RECYCLE,
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_timeout=POOL_TIMEOUT,
            echo=False,  # Don't log all SQL (use slow query logging instead)
        )
        logger.info(f"📊 Connection pool: size={POOL_SIZE}, max_overflow={MAX_OVERFLOW}, timeout={POOL_TIMEOUT}s")

    if ENABLE_QUERY_LOGGING:
        _attach_slow_query_logging(new_engine)
    return new_engine


try:
    engine = build_engine(DATABASE_URL)
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
