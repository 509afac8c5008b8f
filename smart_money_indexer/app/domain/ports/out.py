from __future__ import annotations

from typing import Any, Iterable, Protocol, TypeVar

from smart_money_indexer.app.domain.models import (
    ChainBlock,
    ChainLog,
    PairTokens,
    TokenMeta,
)
from smart_money_indexer.app.domain.smart_money import SmartMoneyFilters
from smart_money_indexer.app.domain.tasks import Task

T_co = TypeVar("T_co", covariant=True)


class ChainFetcher(Protocol):
    """
    Read access to one chain's JSON-RPC endpoint.

    Transport failures must surface as TransientNetworkError.
    """

    async def get_block_number(self) -> int: ...

    async def get_block(self, block_number: int) -> ChainBlock: ...

    async def get_logs(self, *, block_number: int, topic0: str) -> list[ChainLog]: ...


class TokenMetadataFetcher(Protocol):
    """
    Low-level dependency used by the metadata cache.

    Implementations perform eth_call against the ERC-20 contract and raise
    MetadataUnavailable when nothing could be read.
    """

    async def fetch(self, *, token_address: str) -> TokenMeta: ...


class PairTokensFetcher(Protocol):
    """
    token0/token1 of Uniswap V2 pairs and V3 pools.

    Raises MetadataUnavailable when the contract is not a pair, and
    TransientNetworkError when the RPC could not be reached.
    """

    async def fetch_pair(self, *, pair_address: str) -> PairTokens: ...

    async def fetch_pool(self, *, pool_address: str) -> PairTokens: ...


class TokenMetadataStore(Protocol):
    """Persisted token metadata (source of truth shared by all instances)."""

    async def load_token(self, *, chain_id: int, address: str) -> TokenMeta | None: ...


class TokenMetadataResolver(Protocol):
    """
    Memoized metadata resolution used by the ingestor.

    Token metadata degrades to placeholders. Pair/pool constituents degrade
    to None for contracts that are not pairs; TransientNetworkError propagates.
    """

    async def resolve_token_meta(self, chain_id: int, address: str) -> TokenMeta: ...

    async def resolve_pair_tokens(self, chain_id: int, pair: str) -> PairTokens | None: ...

    async def resolve_pool_tokens(self, chain_id: int, pool: str) -> PairTokens | None: ...


class EvmEventDecoder(Protocol[T_co]):
    @property
    def topic0(self) -> str: ...

    def decode(self, log: ChainLog) -> T_co | None:
        """
        Decode an EVM log (topics + data) into a typed event.

        Return:
          - the decoded event
          - None if the log is a different event (topic0 mismatch)
        Raises DecodeError when topic0 matches but the payload does not.
        """
        ...


class BlockIngestor(Protocol):
    """
    Port for ingesting a block range of one chain into blocks / transactions /
    logs / tokens / token_transfers / swaps.

    Implementations must be idempotent and reorg-safe: each block is written
    in a single transaction.
    """

    async def ingest_block_range(
        self,
        *,
        chain_id: int,
        from_block: int,
        to_block: int,
    ) -> None:
        ...

    async def last_processed_block(self, *, chain_id: int) -> int | None: ...

    async def get_chain_head(self, *, chain_id: int) -> int: ...


class WalletPositionsIndexer(Protocol):
    async def update_wallet_positions(
        self,
        *,
        chain_id: int,
        from_block: int,
        to_block: int,
    ) -> int:
        """Apply transfer deltas of the range to wallet_positions. Not idempotent."""
        ...

    async def sync_wallet_positions(self, *, chain_id: int, to_block: int) -> int:
        """Apply every block after the stored checkpoint up to `to_block`, exactly once."""
        ...


class WalletPnlIndexer(Protocol):
    async def update_wallet_pnl(self, *, chain_id: int, now: int | None = None) -> int: ...


class WalletScoresIndexer(Protocol):
    async def update_wallet_scores(self, *, chain_id: int, now: int | None = None) -> int: ...


class JsonCache(Protocol):
    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any, *, ttl_seconds: int) -> None: ...

    async def close(self) -> None: ...


class TaskHandle(Protocol):
    @property
    def task(self) -> Task: ...

    def done(self) -> bool: ...

    def exception(self) -> BaseException | None:
        """Final error of a finished task; None while pending or on success."""
        ...

    async def wait(self) -> None:
        """Block until the task finished; re-raises its final error."""
        ...


class TaskQueue(Protocol):
    """
    Work queue consumed by a single worker callable `async (task) -> None`.

    Tasks of one chain run strictly in order; different chains may run in
    parallel.
    """

    async def enqueue(self, task: Task) -> TaskHandle: ...

    async def join(self) -> None: ...


class SmartMoneyReader(Protocol):
    """Read side of the smart-money views; results are JSON-ready."""

    async def clusters(self, filters: SmartMoneyFilters, *, now: int | None = None) -> list[dict[str, Any]]: ...

    async def feed(
        self,
        filters: SmartMoneyFilters,
        *,
        cursor: str | None = None,
        limit: int = ...,
        now: int | None = None,
    ) -> dict[str, Any]: ...

    async def summary(self, filters: SmartMoneyFilters, *, now: int | None = None) -> dict[str, Any]: ...

    async def top_wallets(
        self,
        *,
        chain_ids: Iterable[int],
        window: str = ...,
        min_score: int = ...,
        limit: int = ...,
    ) -> list[dict[str, Any]]: ...
