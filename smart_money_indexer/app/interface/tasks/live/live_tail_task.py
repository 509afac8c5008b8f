from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from smart_money_indexer.app.application.services.indexing_pipeline import IndexingPipeline
from smart_money_indexer.app.application.services.live.live_tail_scheduler import LiveTailScheduler
from smart_money_indexer.app.config import get_settings
from smart_money_indexer.app.domain.errors import ConfigurationError
from smart_money_indexer.app.infrastructure.db.engine import create_app_async_engine
from smart_money_indexer.app.infrastructure.factories.analytics.wallet_analytics_factory import (
    wallet_analytics_factory,
)
from smart_money_indexer.app.infrastructure.factories.ingest.block_ingestor_factory import (
    block_ingestors_factory,
)
from smart_money_indexer.app.infrastructure.queue.asyncio_task_queue import AsyncioTaskQueue
from smart_money_indexer.app.registry.chains import ChainConfig, find_chain, list_chains

logger = logging.getLogger(__name__)


def _select_chains(chains: Sequence[int | str] | None) -> list[ChainConfig]:
    if not chains:
        return list_chains()
    selected = []
    for value in chains:
        chain = find_chain(value)
        if chain is None:
            raise ConfigurationError(f"Unknown chain {value!r}")
        selected.append(chain)
    return selected


async def live_tail_task(
    *,
    chains: Sequence[int | str] | None = None,
    backend: str = "sqlalchemy",
    stop: asyncio.Event | None = None,
) -> None:
    """
    Follow the confirmed head of every selected chain (all chains by default)
    until `stop` is set or the task is cancelled.
    """
    settings = get_settings()
    selected = _select_chains(chains)

    engine = create_app_async_engine(settings=settings)
    try:
        ingestors = block_ingestors_factory(backend=backend, engine=engine, chains=selected, settings=settings)
        indexers = wallet_analytics_factory(backend=backend, engine=engine)
        pipeline = IndexingPipeline(
            ingestors=ingestors,
            positions=indexers.positions,
            pnl=indexers.pnl,
            scores=indexers.scores,
        )

        async with AsyncioTaskQueue(
            pipeline,
            workers=settings.ingest_workers,
            maxsize=settings.ingest_queue_size,
            max_attempts=settings.ingest_max_attempts,
        ) as queue:
            pipeline.attach(queue)
            scheduler = LiveTailScheduler(
                queue=queue,
                ingestors=ingestors,
                chains=selected,
                max_range=settings.ingest_max_range,
                poll_interval_seconds=settings.poll_interval_seconds,
            )
            await scheduler.run(stop)
            await queue.join()
    finally:
        await engine.dispose()
