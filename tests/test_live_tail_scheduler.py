import asyncio

from smart_money_indexer.app.application.services.live.live_tail_scheduler import LiveTailScheduler
from smart_money_indexer.app.domain.errors import TransientNetworkError
from smart_money_indexer.app.infrastructure.queue.asyncio_task_queue import AsyncioTaskQueue
from smart_money_indexer.app.registry.chains import require_chain_config

ETH = require_chain_config(1)  # 12 confirmations


class FakeIngestor:
    def __init__(self, *, head: int, last: int | None) -> None:
        self.head = head
        self.last = last
        self.fail = False

    async def get_chain_head(self, *, chain_id: int) -> int:
        if self.fail:
            raise TransientNetworkError("timeout")
        return self.head

    async def last_processed_block(self, *, chain_id: int) -> int | None:
        return self.last


class PendingHandle:
    def __init__(self, task) -> None:
        self.task = task

    def done(self) -> bool:
        return False

    def exception(self):
        return None


class RecordingQueue:
    def __init__(self) -> None:
        self.tasks: list[object] = []

    async def enqueue(self, task):
        self.tasks.append(task)
        return PendingHandle(task)

    async def join(self) -> None:
        return None


def make_scheduler(ingestor: FakeIngestor, queue: RecordingQueue, max_range: int = 500) -> LiveTailScheduler:
    return LiveTailScheduler(
        queue=queue,
        ingestors={1: ingestor},
        chains=[ETH],
        max_range=max_range,
        poll_interval_seconds=0.01,
    )


async def test_backlog_is_split_into_bounded_ranges():
    ingestor = FakeIngestor(head=1_112, last=0)
    queue = RecordingQueue()
    scheduler = make_scheduler(ingestor, queue)

    tasks = await scheduler.poll_once()

    assert [(t.from_block, t.to_block) for t in tasks] == [(1, 500), (501, 1_000), (1_001, 1_100)]
    assert queue.tasks == tasks
    assert scheduler.highest_scheduled(1) == 1_100


async def test_nothing_new_schedules_nothing():
    ingestor = FakeIngestor(head=1_112, last=0)
    queue = RecordingQueue()
    scheduler = make_scheduler(ingestor, queue)

    await scheduler.poll_once()
    assert await scheduler.poll_once() == []

    ingestor.head = 1_122
    tasks = await scheduler.poll_once()
    assert [(t.from_block, t.to_block) for t in tasks] == [(1_101, 1_110)]


async def test_empty_chain_starts_at_confirmed_head():
    scheduler = make_scheduler(FakeIngestor(head=112, last=None), RecordingQueue())
    tasks = await scheduler.poll_once()
    assert [(t.from_block, t.to_block) for t in tasks] == [(100, 100)]


async def test_young_chain_below_confirmations():
    scheduler = make_scheduler(FakeIngestor(head=5, last=None), RecordingQueue())
    assert await scheduler.poll_once() == []
    assert scheduler.highest_scheduled(1) is None


async def test_head_lookup_failure_skips_the_poll():
    ingestor = FakeIngestor(head=200, last=150)
    ingestor.fail = True
    scheduler = make_scheduler(ingestor, RecordingQueue())

    assert await scheduler.poll_once() == []

    ingestor.fail = False
    tasks = await scheduler.poll_once()
    assert [(t.from_block, t.to_block) for t in tasks] == [(151, 188)]


async def test_run_stops_on_event():
    queue = RecordingQueue()
    scheduler = make_scheduler(FakeIngestor(head=112, last=None), queue)
    stop = asyncio.Event()

    runner = asyncio.create_task(scheduler.run(stop))
    await asyncio.sleep(0.05)
    stop.set()
    await asyncio.wait_for(runner, timeout=1)

    assert len(queue.tasks) == 1


async def test_failed_range_is_scheduled_again():
    ingestor = FakeIngestor(head=1_112, last=0)
    ingested: list[tuple[int, int]] = []
    rpc_down = True

    async def worker(task) -> None:
        if rpc_down:
            raise TransientNetworkError("rpc 503")
        ingested.append((task.from_block, task.to_block))

    async with AsyncioTaskQueue(worker, workers=1, max_attempts=2, backoff_seconds=0) as queue:
        scheduler = LiveTailScheduler(queue=queue, ingestors={1: ingestor}, chains=[ETH])
        await scheduler.poll_once()
        await asyncio.wait_for(queue.join(), timeout=5)
        assert ingested == []

        rpc_down = False
        ingestor.head = 1_122
        tasks = await scheduler.poll_once()
        await asyncio.wait_for(queue.join(), timeout=5)

    expected = [(1, 500), (501, 1_000), (1_001, 1_110)]
    assert [(t.from_block, t.to_block) for t in tasks] == expected
    assert ingested == expected
    assert scheduler.highest_scheduled(1) == 1_110


async def test_successful_ranges_are_not_rescheduled():
    ingestor = FakeIngestor(head=612, last=0)

    async def worker(task) -> None:
        return None

    async with AsyncioTaskQueue(worker, workers=2, backoff_seconds=0) as queue:
        scheduler = LiveTailScheduler(queue=queue, ingestors={1: ingestor}, chains=[ETH])
        assert len(await scheduler.poll_once()) == 2
        await asyncio.wait_for(queue.join(), timeout=5)

        assert await scheduler.poll_once() == []
        assert scheduler.in_flight(1) == 0
        assert scheduler.highest_scheduled(1) == 600
