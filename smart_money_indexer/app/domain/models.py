from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from eth_utils import to_bytes

PLACEHOLDER_SYMBOL = "TOKEN"
PLACEHOLDER_DECIMALS = 18


@dataclass(frozen=True)
class TokenMeta:
    """Resolved ERC-20 metadata. `placeholder` marks values that fell back to defaults."""

    address: str
    symbol: str
    decimals: int
    name: str
    placeholder: bool = False

    @classmethod
    def fallback(cls, address: str) -> "TokenMeta":
        return cls(
            address=address.lower(),
            symbol=PLACEHOLDER_SYMBOL,
            decimals=PLACEHOLDER_DECIMALS,
            name=PLACEHOLDER_SYMBOL,
            placeholder=True,
        )


@dataclass(frozen=True)
class PairTokens:
    token0: str
    token1: str


# -----------------------------------------------------------------------------
# Chain data as returned by the RPC fetcher (lowercase 0x-hex strings)
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class ChainTransaction:
    hash: str
    from_address: str
    to_address: str | None
    value: int


@dataclass(frozen=True)
class ChainBlock:
    number: int
    hash: str
    parent_hash: str
    timestamp: int
    transactions: tuple[ChainTransaction, ...] = ()


@dataclass(frozen=True)
class ChainLog:
    transaction_hash: str
    log_index: int
    block_number: int
    address: str
    topics: tuple[str, ...]
    data: str

    @property
    def topic0(self) -> str | None:
        return self.topics[0] if self.topics else None

    def topic_bytes(self, i: int) -> bytes | None:
        if i >= len(self.topics):
            return None
        return to_bytes(hexstr=self.topics[i])

    @property
    def data_bytes(self) -> bytes:
        if not self.data or self.data == "0x":
            return b""
        return to_bytes(hexstr=self.data)


# -----------------------------------------------------------------------------
# Decoded events
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class DecodedTransfer:
    from_address: str
    to_address: str
    value: int


@dataclass(frozen=True)
class DecodedV2Swap:
    sender: str
    to: str
    amount0_in: int
    amount1_in: int
    amount0_out: int
    amount1_out: int


@dataclass(frozen=True)
class DecodedV3Swap:
    sender: str
    recipient: str
    amount0: int
    amount1: int
    sqrt_price_x96: int
    liquidity: int
    tick: int


@dataclass(frozen=True)
class SwapLegs:
    token_in: str
    token_out: str
    amount_in: int
    amount_out: int


# -----------------------------------------------------------------------------
# Derived rows produced by the fetch phase of block ingestion
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenRecord:
    address: str
    symbol: str
    decimals: int
    name: str
    placeholder: bool
    first_seen_block: int
    first_seen_at: datetime


@dataclass(frozen=True)
class TransferRecord:
    transaction_hash: str
    log_index: int
    token: str
    from_address: str
    to_address: str
    amount_raw: int
    amount_dec: str


@dataclass(frozen=True)
class SwapRecord:
    transaction_hash: str
    log_index: int
    dex: str
    pool: str
    trader: str | None
    token_in: str
    token_out: str
    amount_in_raw: int
    amount_out_raw: int
    amount_in_dec: str
    amount_out_dec: str
    usd_value: str | None
    priced: bool


@dataclass
class BlockSnapshot:
    """Everything ingested for one block, assembled before any DB write."""

    chain_id: int
    block: ChainBlock
    logs: list[ChainLog] = field(default_factory=list)
    tokens: dict[str, TokenRecord] = field(default_factory=dict)
    transfers: list[TransferRecord] = field(default_factory=list)
    swaps: list[SwapRecord] = field(default_factory=list)
    skipped_logs: int = 0
