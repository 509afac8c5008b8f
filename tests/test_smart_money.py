import pytest

from smart_money_indexer.app.domain.smart_money import (
    SmartMoneyFilters,
    SmartSwap,
    TokenInfo,
    bucket_index,
    bucket_start,
    build_clusters,
    build_feed,
    build_summary,
    classify_swap,
    compute_sparkline,
    normalize_token_label,
    parse_cursor,
    parse_window,
    short_address,
)
from tests.builders import TKN, USDC, USDT, WALLET_A, WALLET_B

T = 180 * 9_444_445  # epoch aligned to the 180s cluster bucket
NOW = T + 100
STABLES = {1: frozenset({USDC, USDT})}
FILTERS = SmartMoneyFilters(chain_ids=(1,), min_score=0, min_usd=0)


def swap(
    *,
    side: str,
    usd: float | None,
    ts: int,
    wallet: str = WALLET_A,
    score: int = 90,
    token: str = TKN,
    log_index: int = 0,
    dex: str = "uniswap_v2",
) -> SmartSwap:
    token_in, token_out = (USDC, token) if side == "buy" else (token, USDC)
    usd_text = str(usd or 0)
    amount_in, amount_out = (usd_text, "10") if side == "buy" else ("10", usd_text)
    return SmartSwap(
        chain_id=1,
        tx_hash=f"0x{ts:064x}",
        log_index=log_index,
        token_in=token_in,
        token_out=token_out,
        amount_in_dec=amount_in,
        amount_out_dec=amount_out,
        usd_value=usd,
        dex=dex,
        pool="0x" + "3" * 40,
        trader=wallet,
        timestamp=ts,
        score=score,
    )


def token_info(**overrides) -> TokenInfo:
    values = dict(
        chain_id=1,
        address=TKN,
        symbol="TKN",
        name="Token",
        verified=True,
        first_seen_at=NOW - 3 * 86_400,
    )
    values.update(overrides)
    return TokenInfo(**values)


def test_bucket_boundaries():
    assert bucket_index(T + 179, T, 180) == 0
    assert bucket_index(T + 181, T, 180) == 1
    assert bucket_start(T + 179, 180) == T
    assert bucket_start(T + 180, 180) == T + 180


def test_sparkline_empty_buckets_are_none():
    points = [(NOW - 590, 2.0), (NOW - 580, 4.0), (NOW - 10, 1.0), (NOW - 5000, 9.0)]
    mean = compute_sparkline(points, window_seconds=600, bucket_seconds=300, now=NOW, reduce="mean")
    total = compute_sparkline(points, window_seconds=600, bucket_seconds=300, now=NOW, reduce="sum")
    assert mean == [3.0, 1.0]
    assert total == [6.0, 1.0]

    empty = compute_sparkline([], window_seconds=1800, bucket_seconds=300, now=NOW, reduce="sum")
    assert empty == [None] * 6


def test_classify_sides():
    buy = classify_swap(swap(side="buy", usd=100.0, ts=T), STABLES)
    sell = classify_swap(swap(side="sell", usd=100.0, ts=T), STABLES)
    assert (buy.side, buy.token) == ("buy", TKN)
    assert (sell.side, sell.token) == ("sell", TKN)


def test_classify_rejects_unpriced_and_stable_pairs():
    assert classify_swap(swap(side="buy", usd=None, ts=T), STABLES) is None
    assert classify_swap(swap(side="buy", usd=0.0, ts=T), STABLES) is None
    assert classify_swap(swap(side="buy", usd=10.0, ts=T, token=USDT), STABLES) is None
    assert classify_swap(swap(side="buy", usd=10.0, ts=T, token=USDT), STABLES, hide_stable=False) is None


def test_three_buys_and_a_sell_form_one_cluster():
    swaps = [
        swap(side="buy", usd=100.0, ts=T + 10, wallet=WALLET_A, score=80),
        swap(side="buy", usd=100.0, ts=T + 20, wallet=WALLET_A, score=80),
        swap(side="buy", usd=100.0, ts=T + 30, wallet=WALLET_B, score=95),
        swap(side="sell", usd=50.0, ts=T + 40, wallet=WALLET_B, score=95),
    ]
    clusters = build_clusters(swaps, {(1, TKN): token_info()}, STABLES, FILTERS, now=NOW)

    assert len(clusters) == 1
    cluster = clusters[0]
    assert cluster.id == f"1:{TKN}:{T}"
    assert cluster.buy_usd == 300.0
    assert cluster.sell_usd == 50.0
    assert cluster.net_usd == 250.0
    assert cluster.wallet_count == 2
    assert [w.address for w in cluster.top_wallets] == [WALLET_B, WALLET_A]
    assert cluster.symbol == "TKN"
    assert cluster.token_age_hours == 72
    assert cluster.swaps[0].timestamp == T + 40
    assert len(cluster.flow_spark) == 6
    assert cluster.flow_spark[-1] == 250.0
    assert len(cluster.price_spark) == 12


def test_clusters_split_across_buckets_and_without_grouping():
    swaps = [
        swap(side="buy", usd=100.0, ts=T + 10),
        swap(side="buy", usd=100.0, ts=T + 190),
    ]
    assert len(build_clusters(swaps, {}, STABLES, FILTERS, now=T + 300)) == 2

    same_bucket = [swap(side="buy", usd=100.0, ts=T + 10), swap(side="buy", usd=100.0, ts=T + 20)]
    ungrouped = SmartMoneyFilters(chain_ids=(1,), min_score=0, min_usd=0, group_by_token=False)
    assert len(build_clusters(same_bucket, {}, STABLES, ungrouped, now=NOW)) == 2


def test_filters():
    buy = swap(side="buy", usd=100.0, ts=T, dex="uniswap_v3")
    old = {(1, TKN): token_info(first_seen_at=NOW - 2 * 86_400, verified=False)}

    def kept(filters: SmartMoneyFilters, tokens=old) -> bool:
        return bool(build_clusters([buy], tokens, STABLES, filters, now=NOW))

    assert kept(FILTERS)
    assert not kept(SmartMoneyFilters(chain_ids=(1,), min_score=0, min_usd=0, only_new=True))
    assert kept(SmartMoneyFilters(chain_ids=(1,), min_score=0, min_usd=0, only_new=True), tokens={})
    assert not kept(SmartMoneyFilters(chain_ids=(1,), min_score=0, min_usd=0, only_verified=True))
    assert not kept(SmartMoneyFilters(chain_ids=(1,), min_score=0, min_usd=0, dexes=("uniswap_v2",)))
    assert kept(SmartMoneyFilters(chain_ids=(1,), min_score=0, min_usd=0, search="tkn"))
    assert kept(SmartMoneyFilters(chain_ids=(1,), min_score=0, min_usd=0, search=WALLET_A[:8]))
    assert not kept(SmartMoneyFilters(chain_ids=(1,), min_score=0, min_usd=0, search="pepe"))


def test_feed_cursor_follows_last_raw_row():
    page = [
        swap(side="buy", usd=100.0, ts=T + 30, log_index=3),
        swap(side="buy", usd=100.0, ts=T + 20, log_index=2, token=USDT),  # filtered out
    ]
    full = build_feed(page, {}, STABLES, FILTERS, now=NOW, limit=2)
    assert len(full.items) == 1
    assert full.items[0].route == f"{USDC} -> {TKN}"
    assert full.items[0].token_symbol == "Unknown"
    assert full.next_cursor == f"{T + 20}:2"

    partial = build_feed(page, {}, STABLES, FILTERS, now=NOW, limit=3)
    assert partial.next_cursor is None


def test_summary():
    swaps = [
        swap(side="buy", usd=500.0, ts=NOW - 2_000, wallet=WALLET_A),
        swap(side="buy", usd=200.0, ts=NOW - 60, wallet=WALLET_B),
        swap(side="sell", usd=50.0, ts=NOW - 30, wallet=WALLET_B),
    ]
    summary = build_summary(swaps, {(1, TKN): token_info()}, STABLES, window_seconds=3600, now=NOW)
    assert summary.smart_buys_usd == 700.0
    assert summary.smart_sells_usd == 50.0
    assert summary.net_flow_usd == 650.0
    assert summary.active_wallets == 1
    assert summary.top_token.address == TKN
    assert summary.top_token.net_usd == 150.0


def test_summary_without_inflow_has_no_top_token():
    swaps = [swap(side="sell", usd=50.0, ts=NOW - 30)]
    summary = build_summary(swaps, {}, STABLES, window_seconds=300, now=NOW)
    assert summary.top_token is None
    assert summary.active_wallets == 1


def test_labels_and_cursor_parsing():
    assert normalize_token_label(None) == "Unknown"
    assert normalize_token_label("  é") == "Unknown"
    assert normalize_token_label(" PEPE ") == "PEPE"
    assert short_address(WALLET_A) == "0xaaaa...aaaa"
    assert parse_window("1h") == 3600
    assert parse_window("bogus") == 300
    assert parse_cursor(None) is None
    assert parse_cursor("123:4") == (123, 4)
    with pytest.raises(ValueError):
        parse_cursor("123")
