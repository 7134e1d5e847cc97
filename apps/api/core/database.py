"""
Engine, session factory and the request-scoped session dependency.

PostgreSQL in deployment. SQLite (file or memory) works for local runs and
the test suite; the connection hooks below give it enforced foreign keys and
working SAVEPOINTs, which the gift ledger and result matcher rely on.
"""
import logging
import time

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from core.config import settings

logger = logging.getLogger(__name__)

CONNECT_ATTEMPTS = 3


def build_database_url() -> str:
    """DATABASE_URL when given, otherwise a PostgreSQL URL from the POSTGRES_* parts."""
    if settings.DATABASE_URL:
        return settings.DATABASE_URL
    return "postgresql://{user}:{password}@{host}:{port}/{db}".format(
        user=settings.POSTGRES_USER,
        password=settings.POSTGRES_PASSWORD,
        host=settings.POSTGRES_HOST,
        port=settings.POSTGRES_PORT,
        db=settings.POSTGRES_DB,
    )


DATABASE_URL = build_database_url()
IS_SQLITE = DATABASE_URL.startswith("sqlite")


def _create_engine():
    if IS_SQLITE:
        in_memory = DATABASE_URL in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in DATABASE_URL
        kwargs = {"connect_args": {"check_same_thread": False}, "echo": settings.DEBUG}
        if in_memory:
            # Every connection would otherwise get its own empty database.
            kwargs["poolclass"] = StaticPool
        return create_engine(DATABASE_URL, **kwargs)

    return create_engine(
        DATABASE_URL,
        poolclass=QueuePool,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
        echo=settings.DEBUG,
    )


engine = _create_engine()

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    # Handlers return ORM objects that are serialized after commit.
    expire_on_commit=False,
)

Base = declarative_base()


if IS_SQLITE:
    @event.listens_for(engine, "connect")
    def _sqlite_on_connect(dbapi_conn, connection_record):
        # Let SQLAlchemy issue BEGIN itself so SAVEPOINT works.
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _sqlite_on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def _open_session() -> Session:
    """A session whose connection answered SELECT 1, retried with backoff."""
    delay = 0.1
    for attempt in range(1, CONNECT_ATTEMPTS + 1):
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
            return db
        except Exception as e:
            db.close()
            if attempt == CONNECT_ATTEMPTS:
                logger.error("Database unreachable after %s attempts: %s", CONNECT_ATTEMPTS, e)
                raise
            logger.warning("Database connection attempt %s failed, retrying in %.1fs", attempt, delay)
            time.sleep(delay)
            delay *= 2


def get_db():
    """
    FastAPI dependency: one session per request.

    Commits when the handler returns, rolls back when it raises, always
    closes. Operations that manage their own transaction (gift ledger) commit
    earlier; the final commit is then a no-op.
    """
    db = _open_session()
    try:
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        from fastapi import HTTPException
        if not isinstance(e, HTTPException):
            logger.error("Request transaction rolled back: %s", e)
        raise
    finally:
        db.close()


def get_db_sync() -> Session:
    """Session for Celery tasks and scripts. The caller commits, rolls back and closes."""
    return SessionLocal()


def check_db_connection() -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("Database health check failed: %s", e)
        return False
