from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from smart_money_indexer.app.config import Settings, get_settings
from smart_money_indexer.app.domain.errors import ConfigurationError


def create_app_async_engine(*, echo: bool = False, settings: Settings | None = None) -> AsyncEngine:
    """
    Factory for AsyncEngine used by background tasks / indexers.

    Centralizing engine creation keeps connection handling consistent
    across tasks and makes it easier to tweak pool settings in one place.
    """
    settings = settings or get_settings()
    if not settings.database_url:
        raise ConfigurationError(
            "Database is not configured: set DATABASE_URL or POSTGRES_USER/POSTGRES_PASSWORD/"
            "POSTGRES_SERVER/POSTGRES_DB"
        )

    return create_async_engine(
        settings.database_url,  # postgresql+asyncpg://...
        echo=echo,
        pool_pre_ping=True,
    )
