from __future__ import annotations

from typing import Callable, Dict, Iterable

from sqlalchemy.ext.asyncio import AsyncEngine

from smart_money_indexer.app.config import Settings, get_settings
from smart_money_indexer.app.domain.ports.out import BlockIngestor
from smart_money_indexer.app.infrastructure.adapters.domain.token_metadata_store import (
    SqlAlchemyTokenMetadataStore,
)
from smart_money_indexer.app.infrastructure.adapters.ingest.block_ingestor import SqlAlchemyBlockIngestor
from smart_money_indexer.app.infrastructure.cache.token_metadata_cache import TokenMetadataCache
from smart_money_indexer.app.infrastructure.factories.web3_factory import create_async_web3
from smart_money_indexer.app.infrastructure.fetchers.erc20_tokens_fetcher import (
    Web3Erc20TokenMetadataFetcher,
)
from smart_money_indexer.app.infrastructure.fetchers.evm_chain_fetcher import Web3EvmChainFetcher
from smart_money_indexer.app.infrastructure.fetchers.pair_tokens_fetcher import Web3PairTokensFetcher
from smart_money_indexer.app.registry.chains import ChainConfig

BlockIngestorFactory = Callable[[AsyncEngine, ChainConfig, TokenMetadataCache, Settings], BlockIngestor]

_BLOCK_INGESTOR_REGISTRY: Dict[str, BlockIngestorFactory] = {}


def _make_sqlalchemy_ingestor(
    engine: AsyncEngine,
    chain: ChainConfig,
    metadata: TokenMetadataCache,
    settings: Settings,
) -> BlockIngestor:
    """
    Wire dependencies for SQLAlchemy backend:
    - AsyncWeb3 provider (per-chain RPC URL)
    - block/log fetcher, ERC-20 and pair/pool metadata fetchers
    - shared metadata cache (registered for this chain)
    """
    w3 = create_async_web3(chain, settings)
    metadata.register_chain(
        chain.chain_id,
        token_fetcher=Web3Erc20TokenMetadataFetcher(w3=w3, chain_id=chain.chain_id),
        pair_fetcher=Web3PairTokensFetcher(w3=w3, chain_id=chain.chain_id),
    )
    return SqlAlchemyBlockIngestor(
        engine,
        chain=chain,
        fetcher=Web3EvmChainFetcher(w3=w3, chain_id=chain.chain_id),
        metadata=metadata,
    )


# Register backends
_BLOCK_INGESTOR_REGISTRY["sqlalchemy"] = _make_sqlalchemy_ingestor


def create_token_metadata_cache(engine: AsyncEngine, settings: Settings | None = None) -> TokenMetadataCache:
    settings = settings or get_settings()
    return TokenMetadataCache(
        store=SqlAlchemyTokenMetadataStore(engine),
        maxsize=settings.metadata_cache_size,
    )


def block_ingestors_factory(
    *,
    backend: str,
    engine: AsyncEngine,
    chains: Iterable[ChainConfig],
    settings: Settings | None = None,
) -> dict[int, BlockIngestor]:
    """
    Create one block ingestor per chain for the given backend.

    All ingestors share a single token/pair metadata cache.
    """
    try:
        factory = _BLOCK_INGESTOR_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported block ingestor backend: {backend!r}")

    settings = settings or get_settings()
    metadata = create_token_metadata_cache(engine, settings)
    return {chain.chain_id: factory(engine, chain, metadata, settings) for chain in chains}
