from __future__ import annotations

from typing import Any, Iterable

from smart_money_indexer.app.domain.smart_money import (
    DEFAULT_MIN_SCORE,
    DEFAULT_MIN_USD,
    DEFAULT_WINDOW,
    FEED_PAGE_LIMIT,
    SmartMoneyFilters,
    parse_window,
)
from smart_money_indexer.app.domain.ports.out import SmartMoneyReader
from smart_money_indexer.app.registry.chains import find_chain, list_chains


def build_filters(
    *,
    chains: Iterable[str | int] = (),
    window: str = DEFAULT_WINDOW,
    min_score: int = DEFAULT_MIN_SCORE,
    min_usd: float = DEFAULT_MIN_USD,
    dexes: Iterable[str] = (),
    search: str = "",
    hide_stable: bool = True,
    only_new: bool = False,
    only_verified: bool = False,
    group_by_token: bool = True,
) -> SmartMoneyFilters:
    """
    Turn raw query parameters into filters.

    No chains means every configured chain; unknown chains raise ValueError.
    Unknown windows fall back to the default window.
    """
    chain_ids: list[int] = []
    for value in chains:
        chain = find_chain(value)
        if chain is None:
            raise ValueError(f"Unknown chain {value!r}")
        chain_ids.append(chain.chain_id)
    if not chain_ids:
        chain_ids = [c.chain_id for c in list_chains()]

    if min_score < 0 or min_score > 100:
        raise ValueError("min_score must be between 0 and 100")
    if min_usd < 0:
        raise ValueError("min_usd must be non-negative")

    return SmartMoneyFilters(
        chain_ids=tuple(sorted(set(chain_ids))),
        window_seconds=parse_window(window),
        min_score=min_score,
        min_usd=min_usd,
        dexes=tuple(sorted({d.strip().lower() for d in dexes if d.strip()})),
        search=search.strip(),
        hide_stable=hide_stable,
        only_new=only_new,
        only_verified=only_verified,
        group_by_token=group_by_token,
    )


class SmartMoneyQueries:
    """Use cases behind the smart-money views."""

    def __init__(self, reader: SmartMoneyReader) -> None:
        self._reader = reader

    async def clusters(self, filters: SmartMoneyFilters, *, now: int | None = None) -> list[dict[str, Any]]:
        return await self._reader.clusters(filters, now=now)

    async def feed(
        self,
        filters: SmartMoneyFilters,
        *,
        cursor: str | None = None,
        limit: int = FEED_PAGE_LIMIT,
        now: int | None = None,
    ) -> dict[str, Any]:
        if limit <= 0:
            raise ValueError("limit must be positive")
        return await self._reader.feed(filters, cursor=cursor, limit=limit, now=now)

    async def summary(self, filters: SmartMoneyFilters, *, now: int | None = None) -> dict[str, Any]:
        return await self._reader.summary(filters, now=now)

    async def top_wallets(
        self,
        *,
        chains: Iterable[str | int] = (),
        window: str = "30d",
        min_score: int = 0,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        filters = build_filters(chains=chains, min_score=max(0, min_score))
        return await self._reader.top_wallets(
            chain_ids=filters.chain_ids,
            window=window,
            min_score=filters.min_score,
            limit=limit,
        )
