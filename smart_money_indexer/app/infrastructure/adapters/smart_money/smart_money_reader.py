from __future__ import annotations

import logging
import time
from decimal import Decimal
from typing import Any, Iterable

from sqlalchemy import Select, and_, or_, select
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from smart_money_indexer.app.domain.ports.out import JsonCache
from smart_money_indexer.app.domain.scoring import SCORE_WINDOW
from smart_money_indexer.app.domain.smart_money import (
    FEED_PAGE_LIMIT,
    SmartMoneyFilters,
    SmartSwap,
    TokenInfo,
    build_clusters,
    build_feed,
    build_summary,
    parse_cursor,
)
from smart_money_indexer.app.infrastructure.db.models.analytics.wallet_scores import WalletScoresDB
from smart_money_indexer.app.infrastructure.db.models.domain.swaps import SwapsDB
from smart_money_indexer.app.infrastructure.db.models.domain.tokens import TokensDB
from smart_money_indexer.app.infrastructure.db.types import as_utc
from smart_money_indexer.app.registry.chains import get_chain_config, stablecoins_for

logger = logging.getLogger(__name__)

CLUSTER_CANDIDATE_LIMIT = 2_000
TOP_WALLETS_MAX_LIMIT = 200


def clamp_limit(limit: int, *, maximum: int = TOP_WALLETS_MAX_LIMIT) -> int:
    return max(1, min(maximum, limit))


class SqlAlchemySmartMoneyReader:
    """
    Read side of the smart-money views.

    SQL narrows swaps to priced rows of scored wallets inside the window; the
    pure functions of domain.smart_money do the classification and grouping.
    Every view result is cached as JSON for a few seconds.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        *,
        cache: JsonCache,
        cache_ttl_seconds: int = 15,
    ) -> None:
        self._engine = engine
        self._cache = cache
        self._cache_ttl_seconds = cache_ttl_seconds

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    async def clusters(
        self,
        filters: SmartMoneyFilters,
        *,
        now: int | None = None,
    ) -> list[dict[str, Any]]:
        now = int(time.time()) if now is None else now
        key = filters.cache_key("clusters")
        cached = await self._cache.get(key)
        if cached is not None:
            return cached

        stmt = (
            self._swaps_query(filters, since=now - filters.window_seconds, min_usd=filters.min_usd)
            .order_by(SwapsDB.timestamp.desc(), SwapsDB.log_index.desc())
            .limit(CLUSTER_CANDIDATE_LIMIT)
        )
        async with self._engine.connect() as conn:
            swaps = await self._load_swaps(conn, stmt)
            tokens = await self._load_tokens(conn, swaps)

        items = build_clusters(swaps, tokens, self._stablecoins(filters), filters, now=now)
        payload = [item.to_dict() for item in items]
        await self._cache.set(key, payload, ttl_seconds=self._cache_ttl_seconds)
        return payload

    async def feed(
        self,
        filters: SmartMoneyFilters,
        *,
        cursor: str | None = None,
        limit: int = FEED_PAGE_LIMIT,
        now: int | None = None,
    ) -> dict[str, Any]:
        now = int(time.time()) if now is None else now
        position = parse_cursor(cursor)
        key = f"{filters.cache_key('feed')}:{cursor or ''}:{limit}"
        cached = await self._cache.get(key)
        if cached is not None:
            return cached

        stmt = self._swaps_query(filters, since=now - filters.window_seconds, min_usd=filters.min_usd)
        if position is not None:
            ts, log_index = position
            stmt = stmt.where(
                or_(
                    SwapsDB.timestamp < ts,
                    and_(SwapsDB.timestamp == ts, SwapsDB.log_index < log_index),
                )
            )
        stmt = stmt.order_by(SwapsDB.timestamp.desc(), SwapsDB.log_index.desc()).limit(limit)

        async with self._engine.connect() as conn:
            swaps = await self._load_swaps(conn, stmt)
            tokens = await self._load_tokens(conn, swaps)

        page = build_feed(swaps, tokens, self._stablecoins(filters), filters, now=now, limit=limit)
        payload = page.to_dict()
        await self._cache.set(key, payload, ttl_seconds=self._cache_ttl_seconds)
        return payload

    async def summary(
        self,
        filters: SmartMoneyFilters,
        *,
        now: int | None = None,
    ) -> dict[str, Any]:
        now = int(time.time()) if now is None else now
        key = filters.cache_key("summary")
        cached = await self._cache.get(key)
        if cached is not None:
            return cached

        stmt = self._swaps_query(filters, since=now - filters.window_seconds, min_usd=None)
        async with self._engine.connect() as conn:
            swaps = await self._load_swaps(conn, stmt)
            tokens = await self._load_tokens(conn, swaps)

        result = build_summary(
            swaps,
            tokens,
            self._stablecoins(filters),
            window_seconds=filters.window_seconds,
            now=now,
        )
        payload = result.to_dict()
        await self._cache.set(key, payload, ttl_seconds=self._cache_ttl_seconds)
        return payload

    async def top_wallets(
        self,
        *,
        chain_ids: Iterable[int],
        window: str = SCORE_WINDOW,
        min_score: int = 0,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        chain_ids = tuple(chain_ids)
        limit = clamp_limit(limit)
        key = f"smart-money:top:{'.'.join(str(c) for c in chain_ids)}:{window}:{min_score}:{limit}"
        cached = await self._cache.get(key)
        if cached is not None:
            return cached

        stmt = (
            select(
                WalletScoresDB.chain_id,
                WalletScoresDB.wallet,
                WalletScoresDB.window,
                WalletScoresDB.score,
                WalletScoresDB.features,
                WalletScoresDB.updated_at,
            )
            .where(
                WalletScoresDB.chain_id.in_(chain_ids),
                WalletScoresDB.window == window,
                WalletScoresDB.score >= min_score,
            )
            .order_by(WalletScoresDB.score.desc(), WalletScoresDB.wallet)
            .limit(limit)
        )
        async with self._engine.connect() as conn:
            rows = (await conn.execute(stmt)).all()

        payload = []
        for r in rows:
            chain = get_chain_config(r.chain_id)
            payload.append(
                {
                    "chain_id": r.chain_id,
                    "chain_name": chain.name if chain is not None else "Unknown",
                    "wallet": r.wallet,
                    "window": r.window,
                    "score": r.score,
                    "features": r.features,
                    "updated_at": as_utc(r.updated_at).isoformat(),
                }
            )
        await self._cache.set(key, payload, ttl_seconds=self._cache_ttl_seconds)
        return payload

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @staticmethod
    def _swaps_query(
        filters: SmartMoneyFilters,
        *,
        since: int,
        min_usd: float | None,
    ) -> Select[Any]:
        stmt = (
            select(
                SwapsDB.chain_id,
                SwapsDB.transaction_hash,
                SwapsDB.log_index,
                SwapsDB.token_in,
                SwapsDB.token_out,
                SwapsDB.amount_in_dec,
                SwapsDB.amount_out_dec,
                SwapsDB.usd_value,
                SwapsDB.dex,
                SwapsDB.pool,
                SwapsDB.trader,
                SwapsDB.timestamp,
                WalletScoresDB.score,
            )
            .join(
                WalletScoresDB,
                and_(
                    WalletScoresDB.chain_id == SwapsDB.chain_id,
                    WalletScoresDB.wallet == SwapsDB.trader,
                    WalletScoresDB.window == SCORE_WINDOW,
                ),
            )
            .where(
                SwapsDB.chain_id.in_(filters.chain_ids),
                SwapsDB.priced.is_(True),
                SwapsDB.timestamp >= since,
                WalletScoresDB.score >= filters.min_score,
            )
        )
        if min_usd is not None:
            stmt = stmt.where(SwapsDB.usd_value >= Decimal(str(min_usd)))
        return stmt

    @staticmethod
    async def _load_swaps(conn: AsyncConnection, stmt: Select[Any]) -> list[SmartSwap]:
        result = await conn.execute(stmt)
        return [
            SmartSwap(
                chain_id=r.chain_id,
                tx_hash=r.transaction_hash,
                log_index=r.log_index,
                token_in=r.token_in,
                token_out=r.token_out,
                amount_in_dec=r.amount_in_dec,
                amount_out_dec=r.amount_out_dec,
                usd_value=float(r.usd_value) if r.usd_value is not None else None,
                dex=r.dex,
                pool=r.pool,
                trader=r.trader,
                timestamp=r.timestamp,
                score=r.score,
            )
            for r in result
        ]

    @staticmethod
    async def _load_tokens(
        conn: AsyncConnection,
        swaps: list[SmartSwap],
    ) -> dict[tuple[int, str], TokenInfo]:
        by_chain: dict[int, set[str]] = {}
        for swap in swaps:
            by_chain.setdefault(swap.chain_id, set()).update((swap.token_in, swap.token_out))

        tokens: dict[tuple[int, str], TokenInfo] = {}
        for chain_id, addresses in by_chain.items():
            result = await conn.execute(
                select(
                    TokensDB.address,
                    TokensDB.symbol,
                    TokensDB.name,
                    TokensDB.verified,
                    TokensDB.first_seen_at,
                ).where(
                    TokensDB.chain_id == chain_id,
                    TokensDB.address.in_(sorted(addresses)),
                )
            )
            for r in result:
                tokens[(chain_id, r.address)] = TokenInfo(
                    chain_id=chain_id,
                    address=r.address,
                    symbol=r.symbol,
                    name=r.name,
                    verified=bool(r.verified),
                    first_seen_at=int(as_utc(r.first_seen_at).timestamp()),
                )
        return tokens

    @staticmethod
    def _stablecoins(filters: SmartMoneyFilters) -> dict[int, frozenset[str]]:
        return {chain_id: stablecoins_for(chain_id) for chain_id in filters.chain_ids}
