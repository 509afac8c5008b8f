from __future__ import annotations

import logging
from typing import Mapping

from smart_money_indexer.app.application.services.analytics.update_wallet_analytics import (
    update_wallet_analytics,
)
from smart_money_indexer.app.application.services.ingest.ingest_block_range import (
    BlockRange,
    ingest_block_range,
)
from smart_money_indexer.app.domain.errors import ConfigurationError
from smart_money_indexer.app.domain.ports.out import (
    BlockIngestor,
    TaskQueue,
    WalletPnlIndexer,
    WalletPositionsIndexer,
    WalletScoresIndexer,
)
from smart_money_indexer.app.domain.tasks import AnalyticsTask, IngestRangeTask, Task

logger = logging.getLogger(__name__)


class IndexingPipeline:
    """
    Worker callable of the task queue.

    IngestRangeTask -> ingest the range, then enqueue an AnalyticsTask for it.
    AnalyticsTask   -> positions, PnL and scores of the chain.
    """

    def __init__(
        self,
        *,
        ingestors: Mapping[int, BlockIngestor],
        positions: WalletPositionsIndexer,
        pnl: WalletPnlIndexer,
        scores: WalletScoresIndexer,
        run_analytics: bool = True,
    ) -> None:
        self._ingestors = ingestors
        self._positions = positions
        self._pnl = pnl
        self._scores = scores
        self._run_analytics = run_analytics
        self._queue: TaskQueue | None = None

    def attach(self, queue: TaskQueue) -> None:
        self._queue = queue

    def ingestor(self, chain_id: int) -> BlockIngestor:
        try:
            return self._ingestors[chain_id]
        except KeyError:
            raise ConfigurationError(f"No ingestor configured for chain {chain_id}")

    async def __call__(self, task: Task) -> None:
        if isinstance(task, IngestRangeTask):
            await self._handle_ingest(task)
        elif isinstance(task, AnalyticsTask):
            await self._handle_analytics(task)
        else:
            raise TypeError(f"Unsupported task: {task!r}")

    async def _handle_ingest(self, task: IngestRangeTask) -> None:
        await ingest_block_range(
            ingestor=self.ingestor(task.chain_id),
            chain_id=task.chain_id,
            block_range=BlockRange(from_block=task.from_block, to_block=task.to_block),
        )
        if not self._run_analytics:
            return
        if self._queue is None:
            raise ConfigurationError("IndexingPipeline is not attached to a task queue")
        await self._queue.enqueue(
            AnalyticsTask(chain_id=task.chain_id, from_block=task.from_block, to_block=task.to_block)
        )

    async def _handle_analytics(self, task: AnalyticsTask) -> None:
        await update_wallet_analytics(
            positions=self._positions,
            pnl=self._pnl,
            scores=self._scores,
            chain_id=task.chain_id,
            to_block=task.to_block,
        )
