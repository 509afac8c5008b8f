from __future__ import annotations

import logging

from smart_money_indexer.app.application.services.block_bounds import resolve_block_bounds
from smart_money_indexer.app.application.services.indexing_pipeline import IndexingPipeline
from smart_money_indexer.app.application.services.ingest.ingest_block_range import BlockRange
from smart_money_indexer.app.config import get_settings
from smart_money_indexer.app.domain.errors import ConfigurationError
from smart_money_indexer.app.domain.tasks import IngestRangeTask
from smart_money_indexer.app.infrastructure.db.engine import create_app_async_engine
from smart_money_indexer.app.infrastructure.factories.analytics.wallet_analytics_factory import (
    wallet_analytics_factory,
)
from smart_money_indexer.app.infrastructure.factories.ingest.block_ingestor_factory import (
    block_ingestors_factory,
)
from smart_money_indexer.app.infrastructure.factories.queue.task_queue_factory import task_queue_factory
from smart_money_indexer.app.registry.chains import find_chain

logger = logging.getLogger(__name__)


async def ingest_block_range_task(
    *,
    chain_id: int | str,
    from_block: int | str = "next",
    to_block: int | str = "latest",
    analytics: bool = True,
    backend: str = "sqlalchemy",
    queue_backend: str = "asyncio",
) -> None:
    """
    Backfill: ingest one block range of a chain, then refresh wallet analytics.

    from_block / to_block can be:
    - int (a specific block number),
    - "next" (one past the last ingested block),
    - "latest" (chain head minus confirmations).
    """
    chain = find_chain(chain_id)
    if chain is None:
        raise ConfigurationError(f"Unknown chain {chain_id!r}")

    settings = get_settings()
    engine = create_app_async_engine(settings=settings)
    try:
        ingestors = block_ingestors_factory(backend=backend, engine=engine, chains=[chain], settings=settings)
        indexers = wallet_analytics_factory(backend=backend, engine=engine)

        resolved_from_block, resolved_to_block = await resolve_block_bounds(
            ingestor=ingestors[chain.chain_id],
            chain_id=chain.chain_id,
            from_block=from_block,
            to_block=to_block,
        )
        block_range = BlockRange(from_block=resolved_from_block, to_block=resolved_to_block)
        block_range.validate()

        pipeline = IndexingPipeline(
            ingestors=ingestors,
            positions=indexers.positions,
            pnl=indexers.pnl,
            scores=indexers.scores,
            run_analytics=analytics,
        )
        queue = task_queue_factory(backend=queue_backend, worker=pipeline, settings=settings)
        pipeline.attach(queue)

        logger.info(
            "Backfilling %s blocks %s..%s",
            chain.name,
            block_range.from_block,
            block_range.to_block,
        )
        queue.start()
        try:
            handle = await queue.enqueue(
                IngestRangeTask(
                    chain_id=chain.chain_id,
                    from_block=block_range.from_block,
                    to_block=block_range.to_block,
                )
            )
            await queue.join()
            await handle.wait()
        finally:
            await queue.close()
    finally:
        await engine.dispose()
