from __future__ import annotations

from typing import Any, Literal, Sequence

from smart_money_indexer.app.application.services.smart_money.query_smart_money import (
    SmartMoneyQueries,
    build_filters,
)
from smart_money_indexer.app.config import get_settings
from smart_money_indexer.app.domain.scoring import SCORE_WINDOW
from smart_money_indexer.app.domain.smart_money import (
    DEFAULT_MIN_SCORE,
    DEFAULT_MIN_USD,
    DEFAULT_WINDOW,
    FEED_PAGE_LIMIT,
)
from smart_money_indexer.app.infrastructure.cache.json_cache import create_json_cache
from smart_money_indexer.app.infrastructure.db.engine import create_app_async_engine
from smart_money_indexer.app.infrastructure.factories.smart_money.smart_money_reader_factory import (
    smart_money_reader_factory,
)

SmartMoneyView = Literal["clusters", "feed", "summary", "top"]


async def smart_money_task(
    *,
    view: SmartMoneyView = "clusters",
    chains: Sequence[int | str] = (),
    window: str | None = None,
    min_score: int | None = None,
    min_usd: float = DEFAULT_MIN_USD,
    dexes: Sequence[str] = (),
    search: str = "",
    hide_stable: bool = True,
    only_new: bool = False,
    only_verified: bool = False,
    group_by_token: bool = True,
    cursor: str | None = None,
    limit: int | None = None,
    backend: str = "sqlalchemy",
) -> Any:
    """
    Task: evaluate one smart-money view and return its JSON-ready payload.

    "top" reads the wallet score leaderboard: `window` is then the score
    window (default "30d") and min_score defaults to 0.
    """
    settings = get_settings()
    engine = create_app_async_engine(settings=settings)
    cache = create_json_cache(settings)
    try:
        reader = smart_money_reader_factory(backend=backend, engine=engine, cache=cache, settings=settings)
        queries = SmartMoneyQueries(reader)

        if view == "top":
            return await queries.top_wallets(
                chains=chains,
                window=window or SCORE_WINDOW,
                min_score=min_score if min_score is not None else 0,
                limit=limit if limit is not None else 50,
            )

        filters = build_filters(
            chains=chains,
            window=window or DEFAULT_WINDOW,
            min_score=min_score if min_score is not None else DEFAULT_MIN_SCORE,
            min_usd=min_usd,
            dexes=dexes,
            search=search,
            hide_stable=hide_stable,
            only_new=only_new,
            only_verified=only_verified,
            group_by_token=group_by_token,
        )
        if view == "clusters":
            return await queries.clusters(filters)
        if view == "feed":
            return await queries.feed(
                filters,
                cursor=cursor,
                limit=limit if limit is not None else FEED_PAGE_LIMIT,
            )
        if view == "summary":
            return await queries.summary(filters)
        raise ValueError(f"Unsupported smart-money view: {view!r}")
    finally:
        await cache.close()
        await engine.dispose()
