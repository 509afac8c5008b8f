from __future__ import annotations

from smart_money_indexer.app.domain.models import ChainLog, DecodedTransfer
from smart_money_indexer.app.infrastructure.decoders.abi_event_decoder import AbiEventDecoder
from smart_money_indexer.app.registry.abis import ERC20_ABI


class Erc20TransferDecoder(AbiEventDecoder):
    """ERC-20 Transfer(address indexed from, address indexed to, uint256 value)."""

    def __init__(self) -> None:
        super().__init__(abi_file=ERC20_ABI, event_name="Transfer")

    def decode(self, log: ChainLog) -> DecodedTransfer | None:
        args = self.decode_args(log)
        if args is None:
            return None
        return DecodedTransfer(
            from_address=args["from"],
            to_address=args["to"],
            value=args["value"],
        )
