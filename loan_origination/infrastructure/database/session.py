"""Database session management with connection pooling"""

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from loan_origination.config import Settings, get_settings


def build_database_url(settings: Settings) -> str:
    """Inject DATABASE_USERNAME / DATABASE_PASSWORD into the configured URL"""
    url = make_url(settings.database_url)
    if settings.database_username:
        url = url.set(username=settings.database_username)
    if settings.database_password:
        url = url.set(password=settings.database_password)
    return url.render_as_string(hide_password=False)


def _get_engine_kwargs(url: str) -> dict:
    """Return dialect-specific engine options for SQLite vs pooled servers"""
    if url.startswith("sqlite"):
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    # Recycle after 1 hour to avoid stale connections
    return {
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 10,
        "pool_recycle": 3600,
    }


def create_db_engine(settings: Settings) -> Engine:
    url = build_database_url(settings)
    return create_engine(url, **_get_engine_kwargs(url))


engine = create_db_engine(get_settings())

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Iterator[Session]:
    """Dependency injection for database sessions"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """Commit on success, roll back on any exception"""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
