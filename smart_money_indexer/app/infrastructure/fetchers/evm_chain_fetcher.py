from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, TypeVar

import aiohttp
from web3 import AsyncWeb3
from web3.exceptions import Web3Exception

from smart_money_indexer.app.domain.errors import TransientNetworkError
from smart_money_indexer.app.domain.models import ChainBlock, ChainLog, ChainTransaction

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Transport-level failures of AsyncHTTPProvider; RPC error responses surface as
# Web3Exception / ValueError depending on the web3 version.
TRANSIENT_RPC_ERRORS = (
    aiohttp.ClientError,
    asyncio.TimeoutError,
    OSError,
    Web3Exception,
    ValueError,
)


def _hex(value: Any) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "0x" + bytes(value).hex()
    return str(value).lower()


def _address(value: Any) -> str | None:
    if value is None:
        return None
    return _hex(value)


class Web3EvmChainFetcher:
    """
    Block / log reads for one chain through AsyncWeb3.

    Everything is returned as lowercase 0x-hex strings. Any transport or RPC
    failure is raised as TransientNetworkError so the whole block range can be
    retried by the task queue.
    """

    def __init__(self, *, w3: AsyncWeb3, chain_id: int) -> None:
        self._w3 = w3
        self._chain_id = chain_id

    async def _call(self, what: str, aw: Awaitable[T]) -> T:
        try:
            return await aw
        except TRANSIENT_RPC_ERRORS as exc:
            raise TransientNetworkError(
                f"RPC {what} failed on chain_id={self._chain_id}: {exc}"
            ) from exc

    async def get_block_number(self) -> int:
        return int(await self._call("eth_blockNumber", self._w3.eth.block_number))

    async def get_block(self, block_number: int) -> ChainBlock:
        raw = await self._call(
            f"eth_getBlockByNumber({block_number})",
            self._w3.eth.get_block(block_number, full_transactions=True),
        )

        txs: list[ChainTransaction] = []
        for tx in raw.get("transactions", []):
            # Hash-only entries are not expected with full_transactions=True
            if isinstance(tx, (bytes, str)):
                continue
            txs.append(
                ChainTransaction(
                    hash=_hex(tx["hash"]),
                    from_address=_hex(tx["from"]),
                    to_address=_address(tx.get("to")),
                    value=int(tx.get("value", 0)),
                )
            )

        return ChainBlock(
            number=int(raw["number"]),
            hash=_hex(raw["hash"]),
            parent_hash=_hex(raw["parentHash"]),
            timestamp=int(raw["timestamp"]),
            transactions=tuple(txs),
        )

    async def get_logs(self, *, block_number: int, topic0: str) -> list[ChainLog]:
        raw_logs = await self._call(
            f"eth_getLogs({block_number}, {topic0})",
            self._w3.eth.get_logs(
                {
                    "fromBlock": block_number,
                    "toBlock": block_number,
                    "topics": [topic0],
                }
            ),
        )

        logs: list[ChainLog] = []
        for raw in raw_logs:
            if raw.get("removed"):
                continue
            logs.append(
                ChainLog(
                    transaction_hash=_hex(raw["transactionHash"]),
                    log_index=int(raw["logIndex"]),
                    block_number=int(raw["blockNumber"]),
                    address=_hex(raw["address"]),
                    topics=tuple(_hex(t) for t in raw.get("topics", [])),
                    data=_hex(raw.get("data", b"")),
                )
            )
        logger.debug(
            "Fetched %s logs for topic0=%s block=%s chain_id=%s",
            len(logs),
            topic0,
            block_number,
            self._chain_id,
        )
        return logs
