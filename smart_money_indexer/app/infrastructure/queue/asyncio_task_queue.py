from __future__ import annotations

import asyncio
import contextvars
import logging
from collections import deque
from collections.abc import Awaitable, Callable

from smart_money_indexer.app.domain.errors import TransientNetworkError
from smart_money_indexer.app.domain.tasks import Task

logger = logging.getLogger(__name__)

TaskWorker = Callable[[Task], Awaitable[None]]

_in_worker: contextvars.ContextVar[bool] = contextvars.ContextVar("_in_worker", default=False)


class TaskHandle:
    """Completion handle of an enqueued task."""

    def __init__(self, task: Task) -> None:
        self._task = task
        self._future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        # Mark the outcome as observed; callers may never wait on a handle.
        self._future.add_done_callback(lambda f: f.cancelled() or f.exception())
        self.attempts = 0

    @property
    def task(self) -> Task:
        return self._task

    def done(self) -> bool:
        return self._future.done()

    def exception(self) -> BaseException | None:
        """Final error of a finished task; None while pending or on success."""
        if not self._future.done() or self._future.cancelled():
            return None
        return self._future.exception()

    async def wait(self) -> None:
        await asyncio.shield(self._future)

    def _succeed(self) -> None:
        if not self._future.done():
            self._future.set_result(None)

    def _fail(self, exc: BaseException) -> None:
        if not self._future.done():
            self._future.set_exception(exc)


async def run_with_retry(
    worker: TaskWorker,
    handle: TaskHandle,
    *,
    max_attempts: int,
    backoff_seconds: float,
    max_backoff_seconds: float,
) -> None:
    """
    Run one task, retrying TransientNetworkError with exponential backoff.

    Any other error fails the task on the first attempt.
    """
    task = handle.task
    token = _in_worker.set(True)
    try:
        while True:
            handle.attempts += 1
            try:
                await worker(task)
            except TransientNetworkError as e:
                if handle.attempts >= max_attempts:
                    logger.error("Task %s failed after %s attempts: %s", task, handle.attempts, e)
                    handle._fail(e)
                    return
                delay = min(max_backoff_seconds, backoff_seconds * 2 ** (handle.attempts - 1))
                logger.warning(
                    "Transient error on %s (attempt %s/%s), retrying in %.1fs: %s",
                    task,
                    handle.attempts,
                    max_attempts,
                    delay,
                    e,
                )
                await asyncio.sleep(delay)
            except asyncio.CancelledError:
                handle._fail(asyncio.CancelledError())
                raise
            except Exception as e:
                logger.exception("Task %s failed", task)
                handle._fail(e)
                return
            else:
                handle._succeed()
                return
    finally:
        _in_worker.reset(token)


class AsyncioTaskQueue:
    """
    In-process task queue drained by N worker coroutines.

    Every chain has its own FIFO backlog. A chain is handed to at most one
    worker at a time, and after each task it goes to the back of the ready
    line, so tasks of one chain run one at a time, in enqueue order, while a
    slow or retrying chain holds a single worker and other chains keep going.

    `maxsize` bounds the number of tasks waiting across all chains; enqueue
    blocks while it is reached. Tasks enqueued from inside a running task
    (follow-up work) never block the worker on a full queue.
    """

    def __init__(
        self,
        worker: TaskWorker,
        *,
        workers: int = 4,
        maxsize: int = 64,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        max_backoff_seconds: float = 30.0,
    ) -> None:
        if workers <= 0:
            raise ValueError("workers must be positive")
        if max_attempts <= 0:
            raise ValueError("max_attempts must be positive")

        self._worker = worker
        self._workers = workers
        self._max_attempts = max_attempts
        self._backoff_seconds = backoff_seconds
        self._max_backoff_seconds = max_backoff_seconds

        # maxsize <= 0 means unbounded, as for asyncio.Queue
        self._slots = asyncio.Semaphore(maxsize) if maxsize > 0 else None
        self._backlogs: dict[int, deque[TaskHandle]] = {}
        # chain ids with waiting work and no task running
        self._ready: asyncio.Queue[int] = asyncio.Queue()
        # chains that are in the ready line or running
        self._scheduled_chains: set[int] = set()
        self._unfinished = 0
        self._idle = asyncio.Event()
        self._idle.set()

        self._worker_tasks: list[asyncio.Task[None]] = []
        self._pending_puts: set[asyncio.Task[None]] = set()

    async def __aenter__(self) -> "AsyncioTaskQueue":
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def start(self) -> None:
        if self._worker_tasks:
            return
        self._worker_tasks = [
            asyncio.create_task(self._worker_loop(), name=f"task-queue-worker-{i}")
            for i in range(self._workers)
        ]

    async def enqueue(self, task: Task) -> TaskHandle:
        handle = TaskHandle(task)
        if _in_worker.get():
            put = asyncio.create_task(self._put(handle))
            self._pending_puts.add(put)
            put.add_done_callback(self._pending_puts.discard)
        else:
            await self._put(handle)
        logger.debug("Enqueued %s", task)
        return handle

    async def join(self) -> None:
        """Wait until every enqueued task, follow-ups included, has finished."""
        while True:
            if self._pending_puts:
                await asyncio.gather(*list(self._pending_puts))
            await self._idle.wait()
            if not self._pending_puts and self._unfinished == 0:
                return

    async def close(self) -> None:
        for t in self._worker_tasks:
            t.cancel()
        await asyncio.gather(*self._worker_tasks, return_exceptions=True)
        self._worker_tasks = []

    async def _put(self, handle: TaskHandle) -> None:
        if self._slots is not None:
            await self._slots.acquire()
        chain_id = handle.task.chain_id
        self._backlogs.setdefault(chain_id, deque()).append(handle)
        self._unfinished += 1
        self._idle.clear()
        if chain_id not in self._scheduled_chains:
            self._scheduled_chains.add(chain_id)
            self._ready.put_nowait(chain_id)

    async def _worker_loop(self) -> None:
        while True:
            chain_id = await self._ready.get()
            backlog = self._backlogs[chain_id]
            handle = backlog.popleft()
            if self._slots is not None:
                self._slots.release()
            try:
                await run_with_retry(
                    self._worker,
                    handle,
                    max_attempts=self._max_attempts,
                    backoff_seconds=self._backoff_seconds,
                    max_backoff_seconds=self._max_backoff_seconds,
                )
            finally:
                if backlog:
                    self._ready.put_nowait(chain_id)
                else:
                    self._scheduled_chains.discard(chain_id)
                self._unfinished -= 1
                if self._unfinished == 0:
                    self._idle.set()


class InlineTaskQueue:
    """
    Runs each task in the caller's coroutine (no broker, no workers).

    Same retry policy as AsyncioTaskQueue; follow-up tasks run depth-first.
    """

    def __init__(
        self,
        worker: TaskWorker,
        *,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        max_backoff_seconds: float = 30.0,
    ) -> None:
        self._worker = worker
        self._max_attempts = max_attempts
        self._backoff_seconds = backoff_seconds
        self._max_backoff_seconds = max_backoff_seconds

    async def enqueue(self, task: Task) -> TaskHandle:
        handle = TaskHandle(task)
        await run_with_retry(
            self._worker,
            handle,
            max_attempts=self._max_attempts,
            backoff_seconds=self._backoff_seconds,
            max_backoff_seconds=self._max_backoff_seconds,
        )
        return handle

    def start(self) -> None:
        return None

    async def join(self) -> None:
        return None

    async def close(self) -> None:
        return None
