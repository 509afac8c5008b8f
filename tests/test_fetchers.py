import asyncio

import aiohttp
import pytest
from web3.exceptions import ContractLogicError

from smart_money_indexer.app.domain.errors import MetadataUnavailable, TransientNetworkError
from smart_money_indexer.app.domain.models import PairTokens
from smart_money_indexer.app.infrastructure.fetchers.erc20_tokens_fetcher import Web3Erc20TokenMetadataFetcher
from smart_money_indexer.app.infrastructure.fetchers.evm_chain_fetcher import Web3EvmChainFetcher
from smart_money_indexer.app.infrastructure.fetchers.pair_tokens_fetcher import Web3PairTokensFetcher
from tests.builders import PAIR, TKN, TRANSFER_TOPIC0, USDC, WALLET_A

REVERT = ContractLogicError("execution reverted")


# -----------------------------------------------------------------------------
# AsyncWeb3 stand-in: contract calls answer from per-ABI tables
# -----------------------------------------------------------------------------


def _is_legacy(abi) -> bool:
    return any(e.get("name") == "symbol" and e["outputs"][0]["type"] == "bytes32" for e in abi)


class StubCall:
    def __init__(self, w3: "StubWeb3", kind: str, name: str) -> None:
        self.w3 = w3
        self.kind = kind
        self.name = name

    async def call(self):
        self.w3.calls.append((self.kind, self.name))
        answer = self.w3.answers[self.kind].get(self.name, REVERT)
        if isinstance(answer, BaseException):
            raise answer
        return answer


class StubFunctions:
    def __init__(self, w3: "StubWeb3", kind: str) -> None:
        self._w3 = w3
        self._kind = kind

    def __getattr__(self, name: str):
        return lambda: StubCall(self._w3, self._kind, name)


class StubContract:
    def __init__(self, w3: "StubWeb3", address: str, kind: str) -> None:
        self.address = address
        self.functions = StubFunctions(w3, kind)


class StubBatch:
    def __init__(self, w3: "StubWeb3") -> None:
        self.w3 = w3
        self.calls: list[StubCall] = []

    async def __aenter__(self) -> "StubBatch":
        if self.w3.batch_error is not None:
            raise self.w3.batch_error
        return self

    async def __aexit__(self, *exc_info) -> bool:
        return False

    def add(self, call: StubCall) -> None:
        self.calls.append(call)

    async def async_execute(self) -> list:
        self.w3.batches += 1
        results = []
        for call in self.calls:
            try:
                results.append(await call.call())
            except Exception as exc:
                results.append(exc)
        return results


class StubEth:
    def __init__(self, w3: "StubWeb3") -> None:
        self._w3 = w3
        self.error: BaseException | None = None
        self.head = 0
        self.block: dict = {}
        self.logs: list[dict] = []
        self.log_params: dict | None = None

    def contract(self, *, address: str, abi):
        return StubContract(self._w3, address, "legacy" if _is_legacy(abi) else "standard")

    @property
    def block_number(self):
        return self._answer(self.head)

    def get_block(self, number: int, full_transactions: bool = False):
        return self._answer(self.block)

    def get_logs(self, params: dict):
        self.log_params = params
        return self._answer(self.logs)

    async def _answer(self, value):
        if self.error is not None:
            raise self.error
        return value


class StubWeb3:
    def __init__(self, *, standard: dict | None = None, legacy: dict | None = None) -> None:
        self.answers = {"standard": standard or {}, "legacy": legacy or {}}
        self.calls: list[tuple[str, str]] = []
        self.batches = 0
        self.batch_error: BaseException | None = None
        self.eth = StubEth(self)

    def to_checksum_address(self, address: str) -> str:
        return address

    def batch_requests(self) -> StubBatch:
        return StubBatch(self)


# -----------------------------------------------------------------------------
# ERC-20 metadata
# -----------------------------------------------------------------------------


async def test_metadata_is_read_in_one_batch():
    w3 = StubWeb3(standard={"symbol": "USDC", "decimals": 6, "name": "USD Coin"})
    fetcher = Web3Erc20TokenMetadataFetcher(w3=w3, chain_id=1)

    meta = await fetcher.fetch(token_address=USDC)

    assert (meta.address, meta.symbol, meta.decimals, meta.name) == (USDC, "USDC", 6, "USD Coin")
    assert not meta.placeholder
    assert w3.batches == 1
    assert len(w3.calls) == 3


async def test_failed_batch_falls_back_to_single_calls():
    w3 = StubWeb3(standard={"symbol": "USDC", "decimals": 6, "name": "USD Coin"})
    w3.batch_error = aiohttp.ClientConnectionError("batch not supported")
    fetcher = Web3Erc20TokenMetadataFetcher(w3=w3, chain_id=1)

    meta = await fetcher.fetch(token_address=USDC)

    assert (meta.symbol, meta.decimals, meta.name) == ("USDC", 6, "USD Coin")
    assert w3.batches == 0
    assert w3.calls == [("standard", "symbol"), ("standard", "name"), ("standard", "decimals")]


async def test_bytes32_symbol_and_name_use_legacy_abi():
    w3 = StubWeb3(
        standard={"decimals": 18},
        legacy={"symbol": b"MKR".ljust(32, b"\x00"), "name": b"Maker".ljust(32, b"\x00")},
    )
    fetcher = Web3Erc20TokenMetadataFetcher(w3=w3, chain_id=1)

    meta = await fetcher.fetch(token_address=TKN)

    assert (meta.symbol, meta.decimals, meta.name) == ("MKR", 18, "Maker")
    assert not meta.placeholder
    # decimals came from the batch, so only symbol and name are retried
    assert ("legacy", "decimals") not in w3.calls
    assert ("legacy", "symbol") in w3.calls


async def test_missing_decimals_makes_a_placeholder():
    w3 = StubWeb3(standard={"symbol": "ODD", "decimals": 300})
    fetcher = Web3Erc20TokenMetadataFetcher(w3=w3, chain_id=1)

    meta = await fetcher.fetch(token_address=TKN)

    assert (meta.symbol, meta.decimals, meta.name) == ("ODD", 18, "ODD")
    assert meta.placeholder


async def test_nothing_readable_raises():
    w3 = StubWeb3()
    fetcher = Web3Erc20TokenMetadataFetcher(w3=w3, chain_id=1)

    with pytest.raises(MetadataUnavailable):
        await fetcher.fetch(token_address=TKN)
    # batch, then standard and legacy per field
    assert len(w3.calls) == 3 + 6


# -----------------------------------------------------------------------------
# Pair / pool constituents
# -----------------------------------------------------------------------------


async def test_pair_tokens_are_lowercased():
    w3 = StubWeb3(standard={"token0": USDC.upper().replace("0X", "0x"), "token1": TKN})
    fetcher = Web3PairTokensFetcher(w3=w3, chain_id=1)

    assert await fetcher.fetch_pair(pair_address=PAIR) == PairTokens(token0=USDC, token1=TKN)


async def test_reverting_contract_is_not_a_pair():
    fetcher = Web3PairTokensFetcher(w3=StubWeb3(), chain_id=1)

    with pytest.raises(MetadataUnavailable):
        await fetcher.fetch_pool(pool_address=PAIR)


async def test_pair_lookup_transport_error_is_transient():
    w3 = StubWeb3(standard={"token0": ConnectionError("rpc 503"), "token1": TKN})
    fetcher = Web3PairTokensFetcher(w3=w3, chain_id=1)

    with pytest.raises(TransientNetworkError):
        await fetcher.fetch_pair(pair_address=PAIR)


# -----------------------------------------------------------------------------
# Blocks / logs
# -----------------------------------------------------------------------------


@pytest.mark.parametrize(
    "error",
    [aiohttp.ClientConnectionError("refused"), asyncio.TimeoutError(), OSError("reset"), ValueError("429")],
)
async def test_transport_errors_become_transient(error):
    w3 = StubWeb3()
    w3.eth.error = error
    fetcher = Web3EvmChainFetcher(w3=w3, chain_id=1)

    with pytest.raises(TransientNetworkError):
        await fetcher.get_block_number()
    with pytest.raises(TransientNetworkError):
        await fetcher.get_block(100)


async def test_block_and_logs_are_normalised():
    w3 = StubWeb3()
    w3.eth.head = 123
    w3.eth.block = {
        "number": 100,
        "hash": bytes.fromhex("ab" * 32),
        "parentHash": bytes.fromhex("cd" * 32),
        "timestamp": 1_700_000_000,
        "transactions": [
            {"hash": bytes.fromhex("01" * 32), "from": WALLET_A.upper().replace("0X", "0x"), "to": None, "value": 5},
        ],
    }
    w3.eth.logs = [
        {
            "transactionHash": bytes.fromhex("01" * 32),
            "logIndex": 3,
            "blockNumber": 100,
            "address": USDC,
            "topics": [bytes.fromhex(TRANSFER_TOPIC0[2:])],
            "data": b"",
        },
        {"removed": True},
    ]
    fetcher = Web3EvmChainFetcher(w3=w3, chain_id=1)

    assert await fetcher.get_block_number() == 123
    block = await fetcher.get_block(100)
    logs = await fetcher.get_logs(block_number=100, topic0=TRANSFER_TOPIC0)

    assert block.hash == "0x" + "ab" * 32
    assert block.transactions[0].from_address == WALLET_A
    assert block.transactions[0].to_address is None
    assert [(log.log_index, log.topic0, log.data) for log in logs] == [(3, TRANSFER_TOPIC0, "0x")]
    assert w3.eth.log_params == {"fromBlock": 100, "toBlock": 100, "topics": [TRANSFER_TOPIC0]}
