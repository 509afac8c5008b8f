from __future__ import annotations

import asyncio
import logging
from typing import Mapping

from smart_money_indexer.app.domain.errors import MetadataUnavailable
from smart_money_indexer.app.domain.models import PairTokens, TokenMeta
from smart_money_indexer.app.domain.ports.out import (
    PairTokensFetcher,
    TokenMetadataFetcher,
    TokenMetadataStore,
)
from smart_money_indexer.app.infrastructure.cache.lru import LruCache

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE = 10_000

_Key = tuple[int, str]


class TokenMetadataCache:
    """
    Process-wide memo of token metadata and pair/pool constituents.

    - Bounded LRUs keyed by (chain_id, lowercased address), one per kind.
    - Map operations are serialised by an asyncio.Lock so chains ingested
      concurrently in one process can share the instance; RPC reads happen
      outside the lock.
    - Token lookups read through the persisted tokens table (`store`) before
      hitting RPC, so several instances share resolved metadata.

    Token metadata never raises and degrades to placeholders. Placeholders are
    not memoised, so the next lookup tries the store and RPC again.

    Pair/pool lookups degrade to None only when the contract is not a pair
    (MetadataUnavailable). TransientNetworkError propagates so the block is
    aborted and retried rather than committed without its swap.
    """

    def __init__(
        self,
        *,
        token_fetchers: Mapping[int, TokenMetadataFetcher] | None = None,
        pair_fetchers: Mapping[int, PairTokensFetcher] | None = None,
        store: TokenMetadataStore | None = None,
        maxsize: int = DEFAULT_CACHE_SIZE,
    ) -> None:
        self._token_fetchers: dict[int, TokenMetadataFetcher] = dict(token_fetchers or {})
        self._pair_fetchers: dict[int, PairTokensFetcher] = dict(pair_fetchers or {})
        self._store = store
        self._tokens: LruCache[_Key, TokenMeta] = LruCache(maxsize)
        self._pairs: LruCache[_Key, PairTokens] = LruCache(maxsize)
        self._pools: LruCache[_Key, PairTokens] = LruCache(maxsize)
        self._lock = asyncio.Lock()

    def register_chain(
        self,
        chain_id: int,
        *,
        token_fetcher: TokenMetadataFetcher,
        pair_fetcher: PairTokensFetcher,
    ) -> None:
        self._token_fetchers[chain_id] = token_fetcher
        self._pair_fetchers[chain_id] = pair_fetcher

    # ---------------------------------------------------------------------
    # Tokens
    # ---------------------------------------------------------------------

    async def resolve_token_meta(self, chain_id: int, address: str) -> TokenMeta:
        key = (chain_id, address.lower())

        async with self._lock:
            cached = self._tokens.get(key)
        if cached is not None:
            return cached

        meta = await self._load_token(chain_id, key[1])
        if meta.placeholder:
            return meta

        async with self._lock:
            self._tokens.put(key, meta)
        return meta

    async def _load_token(self, chain_id: int, address: str) -> TokenMeta:
        if self._store is not None:
            try:
                stored = await self._store.load_token(chain_id=chain_id, address=address)
            except Exception:
                logger.exception("Token store lookup failed for %s on chain_id=%s", address, chain_id)
                stored = None
            if stored is not None and not stored.placeholder:
                return stored

        fetcher = self._token_fetchers.get(chain_id)
        if fetcher is None:
            logger.warning("No token metadata fetcher for chain_id=%s; using placeholder for %s", chain_id, address)
            return TokenMeta.fallback(address)

        try:
            meta = await fetcher.fetch(token_address=address)
        except MetadataUnavailable as exc:
            logger.warning("Token metadata unavailable, using placeholder: %s", exc)
            return TokenMeta.fallback(address)
        except Exception:
            logger.exception("Token metadata fetch failed for %s on chain_id=%s", address, chain_id)
            return TokenMeta.fallback(address)

        if meta.placeholder:
            logger.warning(
                "Partial token metadata for %s on chain_id=%s (symbol=%s decimals=%s)",
                address,
                chain_id,
                meta.symbol,
                meta.decimals,
            )
        return meta

    # ---------------------------------------------------------------------
    # Pairs / pools
    # ---------------------------------------------------------------------

    async def resolve_pair_tokens(self, chain_id: int, pair: str) -> PairTokens | None:
        return await self._resolve_constituents(chain_id, pair, self._pairs, kind="pair")

    async def resolve_pool_tokens(self, chain_id: int, pool: str) -> PairTokens | None:
        return await self._resolve_constituents(chain_id, pool, self._pools, kind="pool")

    async def _resolve_constituents(
        self,
        chain_id: int,
        address: str,
        cache: LruCache[_Key, PairTokens],
        *,
        kind: str,
    ) -> PairTokens | None:
        key = (chain_id, address.lower())

        async with self._lock:
            cached = cache.get(key)
        if cached is not None:
            return cached

        fetcher = self._pair_fetchers.get(chain_id)
        if fetcher is None:
            logger.warning("No pair fetcher for chain_id=%s; cannot resolve %s %s", chain_id, kind, address)
            return None

        try:
            if kind == "pair":
                tokens = await fetcher.fetch_pair(pair_address=key[1])
            else:
                tokens = await fetcher.fetch_pool(pool_address=key[1])
        except MetadataUnavailable as exc:
            logger.warning("Cannot resolve %s tokens: %s", kind, exc)
            return None

        # Only successful lookups are cached
        async with self._lock:
            cache.put(key, tokens)
        return tokens
