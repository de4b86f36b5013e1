"""
Database engine (SQL store backend)

Engines are built from a Settings instance on demand rather than at import
time, so the Directus backend never needs a DATABASE_URL.
"""
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import declarative_base

from codex_api.core.config import Settings


def create_engine(settings: Settings) -> AsyncEngine:
    """Create an async engine with pooling sized for the environment."""
    pool_config = {}

    if settings.DATABASE_URL.startswith("sqlite"):
        # SQLite drivers do not take pool sizing arguments
        pool_config = {}
    elif settings.ENVIRONMENT == "production":
        pool_config = {
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_recycle": settings.DB_POOL_RECYCLE,
            "pool_pre_ping": True,
        }
    else:
        pool_config = {
            "pool_size": 2,
            "max_overflow": 5,
            "pool_pre_ping": True,
        }

    return create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DEBUG,
        **pool_config,
    )


Base = declarative_base()
