from __future__ import annotations

from smart_money_indexer.app.domain.models import ChainLog, DecodedV3Swap
from smart_money_indexer.app.infrastructure.decoders.abi_event_decoder import AbiEventDecoder
from smart_money_indexer.app.registry.abis import UNISWAP_V3_POOL_ABI


class UniswapV3SwapDecoder(AbiEventDecoder):
    """
    Uniswap V3 pool Swap event. amount0/amount1 are signed pool deltas:
    positive flowed into the pool, negative flowed out.
    """

    def __init__(self) -> None:
        super().__init__(abi_file=UNISWAP_V3_POOL_ABI, event_name="Swap")

    def decode(self, log: ChainLog) -> DecodedV3Swap | None:
        args = self.decode_args(log)
        if args is None:
            return None
        return DecodedV3Swap(
            sender=args["sender"],
            recipient=args["recipient"],
            amount0=args["amount0"],
            amount1=args["amount1"],
            sqrt_price_x96=args["sqrtPriceX96"],
            liquidity=args["liquidity"],
            tick=args["tick"],
        )
