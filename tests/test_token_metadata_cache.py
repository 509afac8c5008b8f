import pytest

from smart_money_indexer.app.domain.errors import MetadataUnavailable, TransientNetworkError
from smart_money_indexer.app.domain.models import PairTokens, TokenMeta
from smart_money_indexer.app.infrastructure.cache.lru import LruCache
from smart_money_indexer.app.infrastructure.cache.token_metadata_cache import TokenMetadataCache
from tests.builders import PAIR, POOL, TKN, USDC, FakePairFetcher, FakeTokenFetcher

USDC_META = TokenMeta(address=USDC, symbol="USDC", decimals=6, name="USD Coin")


class FakeStore:
    def __init__(self, metas: dict[str, TokenMeta]) -> None:
        self.metas = metas
        self.calls = 0

    async def load_token(self, *, chain_id: int, address: str) -> TokenMeta | None:
        self.calls += 1
        return self.metas.get(address)


def make_cache(*, tokens=None, pairs=None, store=None, maxsize=100):
    token_fetcher = FakeTokenFetcher(tokens or {})
    pair_fetcher = FakePairFetcher(pairs or {})
    cache = TokenMetadataCache(store=store, maxsize=maxsize)
    cache.register_chain(1, token_fetcher=token_fetcher, pair_fetcher=pair_fetcher)
    return cache, token_fetcher, pair_fetcher


def test_lru_evicts_least_recently_used():
    lru: LruCache[str, int] = LruCache(2)
    lru.put("a", 1)
    lru.put("b", 2)
    assert lru.get("a") == 1
    lru.put("c", 3)
    assert "b" not in lru
    assert lru.get("a") == 1
    assert lru.get("c") == 3
    assert len(lru) == 2


def test_lru_rejects_non_positive_size():
    with pytest.raises(ValueError):
        LruCache(0)


async def test_token_lookup_is_memoized_by_lowercase_address():
    cache, fetcher, _ = make_cache(tokens={USDC: USDC_META})

    first = await cache.resolve_token_meta(1, USDC.upper().replace("0X", "0x"))
    second = await cache.resolve_token_meta(1, USDC)

    assert first == second == USDC_META
    assert fetcher.calls == [USDC]


async def test_store_is_read_before_rpc():
    store = FakeStore({USDC: USDC_META})
    cache, fetcher, _ = make_cache(store=store)

    assert await cache.resolve_token_meta(1, USDC) == USDC_META
    assert fetcher.calls == []
    assert store.calls == 1


async def test_placeholder_in_store_falls_through_to_rpc():
    store = FakeStore({USDC: TokenMeta.fallback(USDC)})
    cache, fetcher, _ = make_cache(tokens={USDC: USDC_META}, store=store)

    assert await cache.resolve_token_meta(1, USDC) == USDC_META
    assert fetcher.calls == [USDC]


async def test_unreadable_token_degrades_to_placeholder():
    cache, _, _ = make_cache()
    meta = await cache.resolve_token_meta(1, TKN)
    assert meta.placeholder
    assert (meta.symbol, meta.decimals, meta.name) == ("TOKEN", 18, "TOKEN")


async def test_unknown_chain_degrades_without_raising():
    cache, _, _ = make_cache()
    assert (await cache.resolve_token_meta(8453, TKN)).placeholder
    assert await cache.resolve_pair_tokens(8453, PAIR) is None


async def test_pair_success_is_cached_but_failure_is_not():
    pair = PairTokens(token0=USDC, token1=TKN)
    cache, _, pair_fetcher = make_cache(pairs={PAIR: pair})

    assert await cache.resolve_pair_tokens(1, PAIR) == pair
    assert await cache.resolve_pair_tokens(1, PAIR) == pair
    assert await cache.resolve_pool_tokens(1, POOL) is None
    assert await cache.resolve_pool_tokens(1, POOL) is None

    assert pair_fetcher.calls == [PAIR, POOL, POOL]


async def test_cache_respects_maxsize():
    metas = {USDC: USDC_META, TKN: TokenMeta(address=TKN, symbol="TKN", decimals=18, name="Token")}
    cache, fetcher, _ = make_cache(tokens=metas, maxsize=1)

    await cache.resolve_token_meta(1, USDC)
    await cache.resolve_token_meta(1, TKN)
    await cache.resolve_token_meta(1, USDC)

    assert fetcher.calls == [USDC, TKN, USDC]


async def test_pair_outage_propagates_and_is_retried():
    pair = PairTokens(token0=USDC, token1=TKN)
    cache, _, pair_fetcher = make_cache(pairs={PAIR: pair})
    pair_fetcher.fail_next = 1

    with pytest.raises(TransientNetworkError):
        await cache.resolve_pair_tokens(1, PAIR)

    assert await cache.resolve_pair_tokens(1, PAIR) == pair
    assert pair_fetcher.calls == [PAIR, PAIR]


class FlakyTokenFetcher:
    def __init__(self, meta: TokenMeta) -> None:
        self.meta = meta
        self.calls = 0

    async def fetch(self, *, token_address: str) -> TokenMeta:
        self.calls += 1
        if self.calls == 1:
            raise MetadataUnavailable("rpc timeout")
        return self.meta


async def test_placeholder_is_not_memoized():
    token_fetcher = FlakyTokenFetcher(USDC_META)
    cache = TokenMetadataCache()
    cache.register_chain(1, token_fetcher=token_fetcher, pair_fetcher=FakePairFetcher({}))

    assert (await cache.resolve_token_meta(1, USDC)).placeholder
    assert await cache.resolve_token_meta(1, USDC) == USDC_META
    assert await cache.resolve_token_meta(1, USDC) == USDC_META
    assert token_fetcher.calls == 2
