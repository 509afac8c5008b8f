from decimal import Decimal

import pytest
from sqlalchemy import func, select

from smart_money_indexer.app.domain.errors import TransientNetworkError
from smart_money_indexer.app.domain.models import ChainLog, PairTokens, TokenMeta
from smart_money_indexer.app.infrastructure.adapters.ingest.block_ingestor import SqlAlchemyBlockIngestor
from smart_money_indexer.app.infrastructure.cache.token_metadata_cache import TokenMetadataCache
from smart_money_indexer.app.infrastructure.db.models.domain.swaps import SwapsDB
from smart_money_indexer.app.infrastructure.db.models.domain.token_transfers import TokenTransfersDB
from smart_money_indexer.app.infrastructure.db.models.domain.tokens import TokensDB
from smart_money_indexer.app.infrastructure.db.models.raw.blocks import BlocksDB
from smart_money_indexer.app.infrastructure.db.models.raw.logs import LogsDB
from smart_money_indexer.app.infrastructure.db.models.raw.transactions import TransactionsDB
from smart_money_indexer.app.registry.chains import require_chain_config
from tests.builders import (
    PAIR,
    POOL,
    TKN,
    TRANSFER_TOPIC0,
    USDC,
    WALLET_A,
    WALLET_B,
    FakeChainFetcher,
    FakeMetadataResolver,
    FakePairFetcher,
    FakeTokenFetcher,
    make_block,
    topic_address,
    transfer_log,
    tx_hash,
    v2_swap_log,
    v3_swap_log,
)

TS = 1_700_000_000
USDC_META = TokenMeta(address=USDC, symbol="USDC", decimals=6, name="USD Coin")
TKN_META = TokenMeta(address=TKN, symbol="TKN", decimals=18, name="Token")


def buy_block(number: int = 100, *, fork: str = "a"):
    """WALLET_A swaps 1000 USDC for 500 TKN on PAIR (token0=USDC, token1=TKN)."""
    tx = tx_hash(number)
    block = make_block(number, timestamp=TS + number, txs={tx: WALLET_A}, fork=fork)
    logs = [
        transfer_log(token=USDC, from_address=WALLET_A, to_address=PAIR, value=1000 * 10**6, tx=tx, log_index=0, block_number=number),
        transfer_log(token=TKN, from_address=PAIR, to_address=WALLET_A, value=500 * 10**18, tx=tx, log_index=1, block_number=number),
        v2_swap_log(
            pair=PAIR,
            sender=WALLET_A,
            to=WALLET_A,
            amount0_in=1000 * 10**6,
            amount1_in=0,
            amount0_out=0,
            amount1_out=500 * 10**18,
            tx=tx,
            log_index=2,
            block_number=number,
        ),
    ]
    return block, logs


@pytest.fixture
def fetcher():
    return FakeChainFetcher()


@pytest.fixture
def resolver():
    return FakeMetadataResolver(
        tokens={USDC: USDC_META, TKN: TKN_META},
        pairs={PAIR: PairTokens(token0=USDC, token1=TKN), POOL: PairTokens(token0=USDC, token1=TKN)},
    )


@pytest.fixture
def ingestor(async_engine, fetcher, resolver):
    return SqlAlchemyBlockIngestor(
        async_engine,
        chain=require_chain_config(1),
        fetcher=fetcher,
        metadata=resolver,
    )


async def count(engine, model) -> int:
    async with engine.connect() as conn:
        return (await conn.execute(select(func.count()).select_from(model))).scalar_one()


async def test_buy_is_ingested_and_priced(async_engine, fetcher, ingestor):
    fetcher.set_block(*buy_block())

    await ingestor.ingest_block_range(chain_id=1, from_block=100, to_block=100)

    async with async_engine.connect() as conn:
        swap = (await conn.execute(select(SwapsDB))).one()
        transfers = (await conn.execute(select(TokenTransfersDB).order_by(TokenTransfersDB.log_index))).all()

    assert swap.dex == "uniswap-v2"
    assert swap.trader == WALLET_A
    assert (swap.token_in, swap.token_out) == (USDC, TKN)
    assert swap.amount_in_raw == 1000 * 10**6
    assert swap.amount_out_raw == 500 * 10**18
    assert (swap.amount_in_dec, swap.amount_out_dec) == ("1000", "500")
    assert swap.usd_value == Decimal(1000)
    assert swap.priced is True
    assert swap.timestamp == TS + 100

    assert [t.amount_dec for t in transfers] == ["1000", "500"]
    assert transfers[1].to_address == WALLET_A
    assert await count(async_engine, LogsDB) == 3
    assert await ingestor.last_processed_block(chain_id=1) == 100


async def test_reingesting_a_range_is_idempotent(async_engine, fetcher, ingestor):
    fetcher.set_block(*buy_block(100))
    fetcher.set_block(*buy_block(101))

    await ingestor.ingest_block_range(chain_id=1, from_block=100, to_block=101)
    await ingestor.ingest_block_range(chain_id=1, from_block=100, to_block=101)

    assert await count(async_engine, BlocksDB) == 2
    assert await count(async_engine, TransactionsDB) == 2
    assert await count(async_engine, TokenTransfersDB) == 4
    assert await count(async_engine, SwapsDB) == 2
    assert await count(async_engine, TokensDB) == 2


async def test_reorg_replaces_stale_block(async_engine, fetcher, ingestor):
    fetcher.set_block(*buy_block(100, fork="a"))
    assert await ingestor.ingest_block(100) is False

    other_tx = tx_hash(9_999)
    fetcher.set_block(
        make_block(100, timestamp=TS + 100, txs={other_tx: WALLET_B}, fork="b"),
        [transfer_log(token=TKN, from_address=WALLET_B, to_address=WALLET_A, value=1, tx=other_tx, log_index=0, block_number=100)],
    )
    assert await ingestor.ingest_block(100) is True

    async with async_engine.connect() as conn:
        block_hash = (await conn.execute(select(BlocksDB.block_hash))).scalar_one()
        tx_hashes = (await conn.execute(select(TransactionsDB.hash))).scalars().all()
        transfer_txs = (await conn.execute(select(TokenTransfersDB.transaction_hash))).scalars().all()

    assert block_hash.startswith("0xbbbbbbbb")
    assert tx_hashes == [other_tx]
    assert transfer_txs == [other_tx]
    assert await count(async_engine, SwapsDB) == 0
    assert await count(async_engine, LogsDB) == 1


async def test_first_seen_is_never_moved(async_engine, fetcher, ingestor):
    fetcher.set_block(*buy_block(100))
    fetcher.set_block(*buy_block(150))

    await ingestor.ingest_block(100)
    await ingestor.ingest_block(150)

    async with async_engine.connect() as conn:
        first_seen = (
            await conn.execute(select(TokensDB.first_seen_block).where(TokensDB.address == TKN))
        ).scalar_one()
    assert first_seen == 100


async def test_placeholder_metadata_is_upgraded_but_never_downgraded(async_engine, fetcher, resolver, ingestor):
    del resolver.tokens[TKN]
    fetcher.set_block(*buy_block(100))
    await ingestor.ingest_block(100)

    resolver.tokens[TKN] = TKN_META
    fetcher.set_block(*buy_block(101))
    await ingestor.ingest_block(101)

    del resolver.tokens[TKN]
    fetcher.set_block(*buy_block(102))
    await ingestor.ingest_block(102)

    async with async_engine.connect() as conn:
        row = (await conn.execute(select(TokensDB).where(TokensDB.address == TKN))).one()
    assert (row.symbol, row.decimals, row.placeholder) == ("TKN", 18, False)


async def test_nft_transfers_and_unknown_pairs_are_skipped(async_engine, fetcher, ingestor):
    tx = tx_hash(100)
    nft_transfer = ChainLog(
        transaction_hash=tx,
        log_index=0,
        block_number=100,
        address="0x" + "9" * 40,
        topics=(TRANSFER_TOPIC0, topic_address(WALLET_A), topic_address(WALLET_B), "0x" + "00" * 31 + "01"),
        data="0x",
    )
    unknown_pair_swap = v2_swap_log(
        pair="0x" + "8" * 40,
        sender=WALLET_A,
        to=WALLET_A,
        amount0_in=1,
        amount1_in=0,
        amount0_out=0,
        amount1_out=1,
        tx=tx,
        log_index=1,
        block_number=100,
    )
    fetcher.set_block(make_block(100, timestamp=TS, txs={tx: WALLET_A}), [nft_transfer, unknown_pair_swap])

    snapshot = await ingestor.fetch_block_snapshot(100)
    assert snapshot.skipped_logs == 2
    assert snapshot.transfers == []
    assert snapshot.swaps == []

    await ingestor.ingest_block(100)
    assert await count(async_engine, LogsDB) == 2
    assert await count(async_engine, SwapsDB) == 0


async def test_v3_sell_is_priced_from_out_leg(async_engine, fetcher, ingestor):
    tx = tx_hash(100)
    fetcher.set_block(
        make_block(100, timestamp=TS, txs={tx: WALLET_B}),
        [
            v3_swap_log(
                pool=POOL,
                sender=WALLET_B,
                recipient=WALLET_B,
                amount0=-250 * 10**6,
                amount1=100 * 10**18,
                tx=tx,
                log_index=4,
                block_number=100,
            )
        ],
    )
    await ingestor.ingest_block(100)

    async with async_engine.connect() as conn:
        swap = (await conn.execute(select(SwapsDB))).one()
    assert (swap.token_in, swap.token_out) == (TKN, USDC)
    assert swap.dex == "uniswap-v3"
    assert swap.usd_value == Decimal(250)
    assert swap.trader == WALLET_B


async def test_rpc_failure_writes_nothing(async_engine, fetcher, ingestor):
    fetcher.set_block(*buy_block(100))
    fetcher.fail_next = 1

    with pytest.raises(TransientNetworkError):
        await ingestor.ingest_block(100)
    assert await count(async_engine, BlocksDB) == 0


async def test_ingestor_is_bound_to_its_chain(ingestor, fetcher):
    fetcher.head = 123
    assert await ingestor.get_chain_head(chain_id=1) == 123
    with pytest.raises(ValueError):
        await ingestor.ingest_block_range(chain_id=56, from_block=1, to_block=1)


async def test_pair_lookup_outage_aborts_the_block(async_engine, fetcher):
    pair_fetcher = FakePairFetcher({PAIR: PairTokens(token0=USDC, token1=TKN)})
    pair_fetcher.fail_next = 1
    metadata = TokenMetadataCache()
    metadata.register_chain(
        1,
        token_fetcher=FakeTokenFetcher({USDC: USDC_META, TKN: TKN_META}),
        pair_fetcher=pair_fetcher,
    )
    ingestor = SqlAlchemyBlockIngestor(
        async_engine,
        chain=require_chain_config(1),
        fetcher=fetcher,
        metadata=metadata,
    )
    fetcher.set_block(*buy_block(100))

    with pytest.raises(TransientNetworkError):
        await ingestor.ingest_block_range(chain_id=1, from_block=100, to_block=100)
    assert await ingestor.last_processed_block(chain_id=1) is None
    assert await count(async_engine, SwapsDB) == 0

    # the retry picks the swap up
    await ingestor.ingest_block_range(chain_id=1, from_block=100, to_block=100)
    assert await ingestor.last_processed_block(chain_id=1) == 100
    assert await count(async_engine, SwapsDB) == 1
