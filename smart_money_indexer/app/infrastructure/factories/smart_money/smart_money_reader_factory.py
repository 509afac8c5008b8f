from __future__ import annotations

from typing import Callable, Dict

from sqlalchemy.ext.asyncio import AsyncEngine

from smart_money_indexer.app.config import Settings, get_settings
from smart_money_indexer.app.domain.ports.out import JsonCache, SmartMoneyReader
from smart_money_indexer.app.infrastructure.adapters.smart_money.smart_money_reader import (
    SqlAlchemySmartMoneyReader,
)

SmartMoneyReaderFactory = Callable[[AsyncEngine, JsonCache, Settings], SmartMoneyReader]

_SMART_MONEY_READER_REGISTRY: Dict[str, SmartMoneyReaderFactory] = {
    "sqlalchemy": lambda engine, cache, settings: SqlAlchemySmartMoneyReader(
        engine,
        cache=cache,
        cache_ttl_seconds=settings.smart_money_cache_ttl_seconds,
    ),
}


def smart_money_reader_factory(
    *,
    backend: str,
    engine: AsyncEngine,
    cache: JsonCache,
    settings: Settings | None = None,
) -> SmartMoneyReader:
    try:
        factory = _SMART_MONEY_READER_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported smart-money reader backend: {backend!r}")
    return factory(engine, cache, settings or get_settings())
