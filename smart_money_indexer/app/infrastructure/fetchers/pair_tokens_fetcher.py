from __future__ import annotations

import asyncio

from web3 import AsyncWeb3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError

from smart_money_indexer.app.domain.errors import MetadataUnavailable, TransientNetworkError
from smart_money_indexer.app.domain.models import PairTokens
from smart_money_indexer.app.infrastructure.fetchers.evm_chain_fetcher import TRANSIENT_RPC_ERRORS
from smart_money_indexer.app.registry.abis import UNISWAP_V2_PAIR_ABI, UNISWAP_V3_POOL_ABI, load_abi

# The contract answered but is not a pair/pool (revert, empty or undecodable return).
_NOT_A_PAIR_ERRORS = (ContractLogicError, BadFunctionCallOutput)


class Web3PairTokensFetcher:
    """
    Reads token0()/token1() of an AMM pair (Uniswap V2) or pool (Uniswap V3).

    Unlike token metadata these cannot be defaulted:
    - a contract that reverts or returns garbage raises MetadataUnavailable;
    - transport and RPC failures raise TransientNetworkError, so the block is
      retried instead of being stored without its swap.
    """

    def __init__(self, *, w3: AsyncWeb3, chain_id: int) -> None:
        self._w3 = w3
        self._chain_id = chain_id

    async def fetch_pair(self, *, pair_address: str) -> PairTokens:
        return await self._read(pair_address, UNISWAP_V2_PAIR_ABI)

    async def fetch_pool(self, *, pool_address: str) -> PairTokens:
        return await self._read(pool_address, UNISWAP_V3_POOL_ABI)

    async def _read(self, address: str, abi_file: str) -> PairTokens:
        contract = self._w3.eth.contract(
            address=self._w3.to_checksum_address(address),
            abi=list(load_abi(abi_file)),
        )
        try:
            token0, token1 = await asyncio.gather(
                contract.functions.token0().call(),
                contract.functions.token1().call(),
            )
        except _NOT_A_PAIR_ERRORS as exc:
            raise MetadataUnavailable(
                f"token0/token1 unavailable for {address} on chain_id={self._chain_id}: {exc}"
            ) from exc
        except TRANSIENT_RPC_ERRORS as exc:
            raise TransientNetworkError(
                f"RPC token0/token1 of {address} failed on chain_id={self._chain_id}: {exc}"
            ) from exc

        return PairTokens(token0=str(token0).lower(), token1=str(token1).lower())
