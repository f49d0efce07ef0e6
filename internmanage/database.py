import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from internmanage.config import settings
from internmanage.utils.sqlite import register_sqlite_transactions

# Default to a local SQLite database if no DATABASE_URL is provided or usable
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.abspath(os.path.join(BASE_DIR, ".."))
DEFAULT_DB_PATH = os.path.join(PROJECT_ROOT, "internmanage.db")


def server_connect_args(database_url: str) -> dict:
    """Per-connection limits on statement run time and lock waits.

    PostgreSQL cancels a statement that exceeds either limit and the driver
    reports it as ``OperationalError``.
    """
    if not database_url.startswith("postgresql"):
        return {}
    millis = int(settings.DB_TIMEOUT_SECONDS * 1000)
    return {"options": f"-c statement_timeout={millis} -c lock_timeout={millis}"}


def _build_engine():
    """Create the SQLAlchemy engine, preferring the configured DATABASE_URL.

    Every engine gets a bounded wait: SQLite waits at most ``DB_TIMEOUT_SECONDS``
    on a locked database, pooled drivers wait as long for a free connection
    and PostgreSQL statements are cancelled after the same limit.
    """
    database_url = settings.DATABASE_URL

    if database_url and not database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            pool_pre_ping=True,
            pool_timeout=settings.DB_TIMEOUT_SECONDS,
            connect_args=server_connect_args(database_url),
        )

    sqlite_url = database_url or f"sqlite:///{DEFAULT_DB_PATH}"
    sqlite_engine = create_engine(
        sqlite_url,
        connect_args={"check_same_thread": False, "timeout": settings.DB_TIMEOUT_SECONDS},
    )
    register_sqlite_transactions(sqlite_engine)
    return sqlite_engine


engine = _build_engine()

# Loaded state survives commit so that a finished write holds no read transaction open
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

# Base class for the models
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
