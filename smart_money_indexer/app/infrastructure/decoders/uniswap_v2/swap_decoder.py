from __future__ import annotations

from smart_money_indexer.app.domain.models import ChainLog, DecodedV2Swap
from smart_money_indexer.app.infrastructure.decoders.abi_event_decoder import AbiEventDecoder
from smart_money_indexer.app.registry.abis import UNISWAP_V2_PAIR_ABI


class UniswapV2SwapDecoder(AbiEventDecoder):
    """
    Uniswap V2 pair Swap event (also emitted by V2 forks such as PancakeSwap):
    sender and to are indexed, the four amounts are in data.
    """

    def __init__(self) -> None:
        super().__init__(abi_file=UNISWAP_V2_PAIR_ABI, event_name="Swap")

    def decode(self, log: ChainLog) -> DecodedV2Swap | None:
        args = self.decode_args(log)
        if args is None:
            return None
        return DecodedV2Swap(
            sender=args["sender"],
            to=args["to"],
            amount0_in=args["amount0In"],
            amount1_in=args["amount1In"],
            amount0_out=args["amount0Out"],
            amount1_out=args["amount1Out"],
        )
