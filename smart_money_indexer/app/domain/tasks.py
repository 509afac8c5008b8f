from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class IngestRangeTask:
    """Ingest blocks [from_block, to_block] of one chain."""

    chain_id: int
    from_block: int
    to_block: int


@dataclass(frozen=True)
class AnalyticsTask:
    """Refresh positions up to `to_block`, then PnL and scores of the chain."""

    chain_id: int
    from_block: int
    to_block: int


Task = IngestRangeTask | AnalyticsTask
