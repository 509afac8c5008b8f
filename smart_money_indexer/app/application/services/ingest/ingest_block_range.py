from __future__ import annotations

from dataclasses import dataclass

from smart_money_indexer.app.domain.ports.out import BlockIngestor


@dataclass(frozen=True)
class BlockRange:
    from_block: int
    to_block: int

    def validate(self) -> None:
        if self.from_block < 0 or self.to_block < 0:
            raise ValueError("Block numbers must be non-negative")
        if self.from_block > self.to_block:
            raise ValueError("from_block must be <= to_block")

    def split(self, max_size: int) -> list["BlockRange"]:
        """Consecutive sub-ranges of at most `max_size` blocks."""
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        out: list[BlockRange] = []
        start = self.from_block
        while start <= self.to_block:
            end = min(self.to_block, start + max_size - 1)
            out.append(BlockRange(from_block=start, to_block=end))
            start = end + 1
        return out


async def ingest_block_range(
    *,
    ingestor: BlockIngestor,
    chain_id: int,
    block_range: BlockRange,
) -> None:
    """
    Application-level use case for ingesting a block range of one chain.

    Orchestrates validation and calls the underlying ingestor port.
    """
    block_range.validate()
    await ingestor.ingest_block_range(
        chain_id=chain_id,
        from_block=block_range.from_block,
        to_block=block_range.to_block,
    )
