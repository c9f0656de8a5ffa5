from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from sehat_rakshak.core.config import get_settings

settings = get_settings()

engine_kwargs: dict = {"future": True, "pool_pre_ping": True}
if settings.database_url.startswith("sqlite"):
    # Single shared connection so an in-memory database survives across sessions
    engine_kwargs.update(
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

# Main SQLAlchemy engine
engine = create_engine(str(settings.database_url), **engine_kwargs)

# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    future=True,
)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that yields a DB session.

    Tenant isolation is applied by the queries themselves (hospital_id filters
    resolved through TenantContext), not by the session.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
