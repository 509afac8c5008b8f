from __future__ import annotations

from typing import Callable, Dict

from smart_money_indexer.app.config import Settings, get_settings
from smart_money_indexer.app.infrastructure.queue.asyncio_task_queue import (
    AsyncioTaskQueue,
    InlineTaskQueue,
    TaskWorker,
)

TaskQueueFactory = Callable[[TaskWorker, Settings], AsyncioTaskQueue | InlineTaskQueue]

_TASK_QUEUE_REGISTRY: Dict[str, TaskQueueFactory] = {
    "asyncio": lambda worker, settings: AsyncioTaskQueue(
        worker,
        workers=settings.ingest_workers,
        maxsize=settings.ingest_queue_size,
        max_attempts=settings.ingest_max_attempts,
    ),
    "inline": lambda worker, settings: InlineTaskQueue(
        worker,
        max_attempts=settings.ingest_max_attempts,
    ),
}


def task_queue_factory(
    *,
    backend: str,
    worker: TaskWorker,
    settings: Settings | None = None,
) -> AsyncioTaskQueue | InlineTaskQueue:
    try:
        factory = _TASK_QUEUE_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported task queue backend: {backend!r}")
    return factory(worker, settings or get_settings())
