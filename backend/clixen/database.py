"""Engine, session factory and declarative base.

Production points ``DATABASE_URL`` at the Supabase Postgres instance;
development and tests use SQLite, including the shared in-memory
``sqlite://`` database the test suite runs on.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .core.config import settings

DATABASE_URL = settings.database_url

_IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def _create_engine(url: str):
    if not url.startswith("sqlite"):
        return create_engine(
            url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
            pool_recycle=settings.db_pool_recycle,
            pool_pre_ping=True,
        )

    kwargs = {"connect_args": {"check_same_thread": False}}
    if url in _IN_MEMORY_URLS:
        # One connection, otherwise every pooled connection sees an empty database.
        kwargs["poolclass"] = StaticPool
    sqlite_engine = create_engine(url, **kwargs)

    @event.listens_for(sqlite_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return sqlite_engine


engine = _create_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db() -> None:
    """Create missing tables. Existing tables are left as they are."""
    from . import models  # noqa: F401  (registers models on Base.metadata)
    Base.metadata.create_all(bind=engine)


def get_db():
    """Request-scoped session; rolled back if the handler raises."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
