from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from .settings import config_settings

DATABASE_URL = config_settings.DATABASE_URL

# 1. SQLAlchemy Engine
# Manages the connection pool and dialect.
engine = create_engine(
    DATABASE_URL,
    pool_pre_ping=True,
    # Only needed for SQLite to handle concurrent requests
    connect_args={"check_same_thread": False} if "sqlite" in DATABASE_URL else {},
)

# 2. SessionLocal
# Each request gets its own session (a unit of work).
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """
    Dependency that yields a database session for a single request,
    and ensures the session is closed afterward.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Creates every mapped table that does not exist yet."""
    # Imported here so every ORM module registers with the metadata first
    from voice2fire.models.orm import (  # noqa: F401
        affiliate,
        assignment,
        commission,
        metric,
        notification_test,
        revenue,
        wallet,
    )
    from voice2fire.models.orm.base import Base

    Base.metadata.create_all(bind=engine)
