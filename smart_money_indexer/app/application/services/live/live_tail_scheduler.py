from __future__ import annotations

import asyncio
import logging
from typing import Mapping, Sequence

from smart_money_indexer.app.application.services.ingest.ingest_block_range import BlockRange
from smart_money_indexer.app.domain.errors import TransientNetworkError
from smart_money_indexer.app.domain.ports.out import BlockIngestor, TaskHandle, TaskQueue
from smart_money_indexer.app.domain.tasks import IngestRangeTask
from smart_money_indexer.app.registry.chains import ChainConfig

logger = logging.getLogger(__name__)


class LiveTailScheduler:
    """
    Follows the confirmed head of every chain.

    Each poll computes target = head - confirmations and enqueues the blocks
    between the highest block already scheduled and the target, split into
    ranges of at most `max_range` blocks. The highest scheduled block starts
    from the last ingested block; a chain with nothing ingested starts at its
    current target.

    Handles of enqueued ranges are kept until they finish. When one fails for
    good, the highest scheduled block is rewound to just before it, so the
    next poll enqueues that range again.
    """

    def __init__(
        self,
        *,
        queue: TaskQueue,
        ingestors: Mapping[int, BlockIngestor],
        chains: Sequence[ChainConfig],
        max_range: int = 500,
        poll_interval_seconds: float = 12.0,
    ) -> None:
        if max_range <= 0:
            raise ValueError("max_range must be positive")
        self._queue = queue
        self._ingestors = ingestors
        self._chains = list(chains)
        self._max_range = max_range
        self._poll_interval_seconds = poll_interval_seconds
        self._scheduled: dict[int, int] = {}
        self._in_flight: dict[int, list[TaskHandle]] = {}

    def highest_scheduled(self, chain_id: int) -> int | None:
        return self._scheduled.get(chain_id)

    def in_flight(self, chain_id: int) -> int:
        return len(self._in_flight.get(chain_id, ()))

    def _collect_finished(self, chain: ChainConfig) -> None:
        handles = self._in_flight.get(chain.chain_id)
        if not handles:
            return

        pending: list[TaskHandle] = []
        failed_from: int | None = None
        for handle in handles:
            if not handle.done():
                pending.append(handle)
                continue
            if handle.exception() is not None:
                start = handle.task.from_block
                failed_from = start if failed_from is None else min(failed_from, start)
        self._in_flight[chain.chain_id] = pending

        if failed_from is None:
            return
        last = self._scheduled.get(chain.chain_id)
        if last is not None and failed_from - 1 < last:
            self._scheduled[chain.chain_id] = failed_from - 1
            logger.warning(
                "Ingest of %s failed from block %s, rescheduling %s..%s",
                chain.name,
                failed_from,
                failed_from,
                last,
            )

    async def poll_chain(self, chain: ChainConfig) -> list[IngestRangeTask]:
        self._collect_finished(chain)

        ingestor = self._ingestors[chain.chain_id]
        head = await ingestor.get_chain_head(chain_id=chain.chain_id)
        target = head - chain.confirmations
        if target < 0:
            return []

        last = self._scheduled.get(chain.chain_id)
        if last is None:
            last = await ingestor.last_processed_block(chain_id=chain.chain_id)
            if last is None:
                last = target - 1
            self._scheduled[chain.chain_id] = last

        if target <= last:
            return []

        tasks = [
            IngestRangeTask(chain_id=chain.chain_id, from_block=r.from_block, to_block=r.to_block)
            for r in BlockRange(from_block=last + 1, to_block=target).split(self._max_range)
        ]
        in_flight = self._in_flight.setdefault(chain.chain_id, [])
        for task in tasks:
            in_flight.append(await self._queue.enqueue(task))
            self._scheduled[chain.chain_id] = task.to_block

        logger.info(
            "Scheduled blocks %s..%s in %s range(s) for %s",
            last + 1,
            target,
            len(tasks),
            chain.name,
        )
        return tasks

    async def poll_once(self) -> list[IngestRangeTask]:
        scheduled: list[IngestRangeTask] = []
        for chain in self._chains:
            try:
                scheduled.extend(await self.poll_chain(chain))
            except TransientNetworkError as e:
                logger.warning("Head lookup failed for %s, skipping this poll: %s", chain.name, e)
        return scheduled

    async def run(self, stop: asyncio.Event | None = None) -> None:
        stop = stop or asyncio.Event()
        logger.info(
            "Live tail started for %s chain(s), polling every %.1fs",
            len(self._chains),
            self._poll_interval_seconds,
        )
        while not stop.is_set():
            await self.poll_once()
            try:
                await asyncio.wait_for(stop.wait(), timeout=self._poll_interval_seconds)
            except asyncio.TimeoutError:
                pass
        logger.info("Live tail stopped")
