import pytest

from smart_money_indexer.app.application.services.block_bounds import last_ingested_block, resolve_block_bounds
from smart_money_indexer.app.application.services.ingest.ingest_block_range import BlockRange


class FakeIngestor:
    def __init__(self, *, head: int = 1_000, last: int | None = None) -> None:
        self.head = head
        self.last = last

    async def get_chain_head(self, *, chain_id: int) -> int:
        return self.head

    async def last_processed_block(self, *, chain_id: int) -> int | None:
        return self.last


async def resolve(from_block, to_block, **kwargs):
    return await resolve_block_bounds(
        ingestor=FakeIngestor(**kwargs),
        chain_id=1,
        from_block=from_block,
        to_block=to_block,
    )


async def test_explicit_numbers():
    assert await resolve(5, 10) == (5, 10)
    assert await resolve("0x10", " 20 ") == (16, 20)


async def test_next_and_latest():
    assert await resolve("next", "latest", last=41) == (42, 988)
    assert await resolve("earliest", 50) == (0, 50)
    assert await resolve("", "", last=None) == (0, 988)


async def test_unknown_selectors():
    with pytest.raises(ValueError):
        await resolve("soon", 5)
    with pytest.raises(ValueError):
        await resolve(1, "pending")


def test_block_range_validation():
    BlockRange(from_block=3, to_block=3).validate()
    with pytest.raises(ValueError):
        BlockRange(from_block=4, to_block=3).validate()
    with pytest.raises(ValueError):
        BlockRange(from_block=-1, to_block=3).validate()


def test_block_range_split():
    parts = BlockRange(from_block=10, to_block=21).split(5)
    assert [(p.from_block, p.to_block) for p in parts] == [(10, 14), (15, 19), (20, 21)]
    assert BlockRange(from_block=1, to_block=1).split(500) == [BlockRange(from_block=1, to_block=1)]
    with pytest.raises(ValueError):
        BlockRange(from_block=1, to_block=2).split(0)


async def test_last_ingested_block_on_empty_table(async_engine):
    assert await last_ingested_block(engine=async_engine, chain_id=1) is None
