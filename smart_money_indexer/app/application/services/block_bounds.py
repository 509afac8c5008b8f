from __future__ import annotations

from typing import Literal

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from smart_money_indexer.app.domain.ports.out import BlockIngestor
from smart_money_indexer.app.registry.chains import require_chain_config


BlockSelector = int | str
_NEXT: Literal["next"] = "next"
_EARLIEST: Literal["earliest"] = "earliest"
_LATEST: Literal["latest"] = "latest"


def _parse_int(value: str) -> int | None:
    try:
        return int(value, 0)
    except ValueError:
        return None


async def resolve_block_bounds(
    *,
    ingestor: BlockIngestor,
    chain_id: int,
    from_block: BlockSelector,
    to_block: BlockSelector,
) -> tuple[int, int]:
    """
    Resolve from_block / to_block into concrete block numbers.

    - ints (or numeric strings, decimal or 0x-hex) are returned as-is.
    - from_block "next" / "" -> one past the last ingested block
      ("earliest" -> 0 when nothing was ingested yet, same as "next").
    - to_block "latest" / "" -> chain head minus the chain's confirmations.
    """
    fb = from_block if isinstance(from_block, int) else _parse_int(from_block.strip())
    tb = to_block if isinstance(to_block, int) else _parse_int(to_block.strip())
    if fb is not None and tb is not None:
        return fb, tb

    if fb is None:
        fb_str = str(from_block).strip().lower()
        if fb_str in ("", _NEXT, _EARLIEST):
            last = await ingestor.last_processed_block(chain_id=chain_id)
            fb = last + 1 if last is not None else 0
        else:
            raise ValueError(f"Unsupported from_block value: {from_block!r}")

    if tb is None:
        tb_str = str(to_block).strip().lower()
        if tb_str in ("", _LATEST):
            chain = require_chain_config(chain_id)
            head = await ingestor.get_chain_head(chain_id=chain_id)
            tb = head - chain.confirmations
        else:
            raise ValueError(f"Unsupported to_block value: {to_block!r}")

    return fb, tb


async def last_ingested_block(*, engine: AsyncEngine, chain_id: int) -> int | None:
    """MAX(block_number) of the blocks table for a chain, None when empty."""
    sql = text(
        """
        SELECT MAX(block_number) AS max_block
        FROM blocks
        WHERE chain_id = :chain_id
        """
    )
    async with engine.connect() as conn:
        result = await conn.execute(sql, {"chain_id": chain_id})
        return result.scalar_one_or_none()
