from __future__ import annotations

import logging
from typing import Any

from web3 import AsyncWeb3
from web3.contract.async_contract import AsyncContract

from smart_money_indexer.app.domain.errors import MetadataUnavailable
from smart_money_indexer.app.domain.models import PLACEHOLDER_DECIMALS, PLACEHOLDER_SYMBOL, TokenMeta
from smart_money_indexer.app.registry.abis import ERC20_ABI, load_abi

logger = logging.getLogger(__name__)

# Pre-standard tokens (e.g. MKR, SAI) return bytes32 strings / uint256 decimals
_ERC20_ABI_LEGACY = [
    {"name": "symbol", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "bytes32"}]},
    {"name": "decimals", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "uint256"}]},
    {"name": "name", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "bytes32"}]},
]

_FIELDS = ("symbol", "decimals", "name")


class Web3Erc20TokenMetadataFetcher:
    """
    ERC-20 metadata fetcher using AsyncWeb3.

    symbol/decimals/name are read in one JSON-RPC batch. Fields the batch did
    not yield (revert, transport failure) are retried one by one with the
    standard ABI, then with the legacy bytes32/uint256 ABI. Missing fields fall
    back to "TOKEN" / 18 / symbol; MetadataUnavailable is raised only when
    nothing at all could be read.
    """

    def __init__(self, *, w3: AsyncWeb3, chain_id: int) -> None:
        self._w3 = w3
        self._chain_id = chain_id

    async def fetch(self, *, token_address: str) -> TokenMeta:
        # web3 expects checksum hex string
        addr_hex = self._w3.to_checksum_address(token_address)

        contract_std: AsyncContract = self._w3.eth.contract(address=addr_hex, abi=list(load_abi(ERC20_ABI)))
        contract_legacy: AsyncContract = self._w3.eth.contract(address=addr_hex, abi=_ERC20_ABI_LEGACY)

        # 1) Batched standard read
        raw = await self._batch_read(contract_std)

        symbol = self._normalize_symbol_name(raw.get("symbol"))
        name = self._normalize_symbol_name(raw.get("name"))
        decimals = self._normalize_decimals(raw.get("decimals"))

        # 2) Per-field retries ONLY for missing fields
        #    (so a mixed token doesn't get overwritten by worse data)
        for contract in (contract_std, contract_legacy):
            if symbol is None:
                symbol = self._normalize_symbol_name(await self._safe_call(contract, "symbol"))
            if name is None:
                name = self._normalize_symbol_name(await self._safe_call(contract, "name"))
            if decimals is None:
                decimals = self._normalize_decimals(await self._safe_call(contract, "decimals"))

        if symbol is None and name is None and decimals is None:
            raise MetadataUnavailable(
                f"No ERC-20 metadata for {token_address} on chain_id={self._chain_id}"
            )

        placeholder = symbol is None or decimals is None
        symbol = symbol if symbol is not None else PLACEHOLDER_SYMBOL
        return TokenMeta(
            address=token_address.lower(),
            symbol=symbol,
            decimals=decimals if decimals is not None else PLACEHOLDER_DECIMALS,
            name=name if name is not None else symbol,
            placeholder=placeholder,
        )

    async def _batch_read(self, contract: AsyncContract) -> dict[str, Any]:
        try:
            async with self._w3.batch_requests() as batch:
                for fn_name in _FIELDS:
                    batch.add(getattr(contract.functions, fn_name)())
                results = await batch.async_execute()
        except Exception as exc:
            logger.debug(
                "Metadata batch failed for %s on chain_id=%s: %s",
                contract.address,
                self._chain_id,
                exc,
            )
            return {}

        out: dict[str, Any] = {}
        for fn_name, value in zip(_FIELDS, results):
            if isinstance(value, BaseException):
                continue
            out[fn_name] = value
        return out

    @staticmethod
    def _normalize_decimals(val: Any) -> int | None:
        if isinstance(val, bool) or not isinstance(val, int):
            return None
        return val if 0 <= val <= 255 else None

    @staticmethod
    def _normalize_symbol_name(val: Any) -> str | None:
        if val is None:
            return None

        if isinstance(val, str):
            return val.strip() or None

        if isinstance(val, (bytes, bytearray, memoryview)):
            try:
                return bytes(val).rstrip(b"\x00").decode("utf-8").strip() or None
            except UnicodeDecodeError:
                return None

        return None

    async def _safe_call(self, contract: AsyncContract, fn_name: str) -> Any | None:
        try:
            fn = getattr(contract.functions, fn_name)
            return await fn().call()
        except Exception as exc:
            # Non-ERC20, proxy weirdness, revert, empty response or provider error
            logger.debug("%s() failed for %s: %s", fn_name, contract.address, exc)
            return None
