"""
Smart-money aggregation over recent priced swaps of high-scoring wallets.

Pure functions only: the SQL adapter selects candidate swaps (priced, above
the USD and score thresholds, inside the time window) and hands them here for
classification, filtering, clustering, feed paging and summarising.
"""
from __future__ import annotations

import math
import re
from dataclasses import asdict, dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Literal, Mapping

Side = Literal["buy", "sell"]

WINDOW_SECONDS: dict[str, int] = {
    "1m": 60,
    "5m": 300,
    "15m": 900,
    "1h": 3600,
    "24h": 86400,
}
DEFAULT_WINDOW = "5m"

DEFAULT_MIN_SCORE = 75
DEFAULT_MIN_USD = 500

CLUSTER_BUCKET_SECONDS = 180
SPARK_BUCKET_SECONDS = 300
PRICE_SPARK_WINDOW_SECONDS = 3600
FLOW_SPARK_WINDOW_SECONDS = 1800
NEW_TOKEN_MAX_AGE_SECONDS = 86400
SUMMARY_TOP_TOKEN_SECONDS = 900

CLUSTER_TOP_WALLETS = 3
CLUSTER_SWAPS_LIMIT = 20
FEED_PAGE_LIMIT = 60

_PRINTABLE_ASCII = re.compile(r"^[\x20-\x7E]+$")


@dataclass(frozen=True)
class SmartSwap:
    """A priced swap joined with its trader's 30d wallet score."""

    chain_id: int
    tx_hash: str
    log_index: int
    token_in: str
    token_out: str
    amount_in_dec: str
    amount_out_dec: str
    usd_value: float | None
    dex: str
    pool: str
    trader: str
    timestamp: int
    score: int


@dataclass(frozen=True)
class TokenInfo:
    chain_id: int
    address: str
    symbol: str | None
    name: str | None
    verified: bool
    first_seen_at: int | None


@dataclass(frozen=True)
class SmartMoneyFilters:
    chain_ids: tuple[int, ...]
    window_seconds: int = WINDOW_SECONDS[DEFAULT_WINDOW]
    min_score: int = DEFAULT_MIN_SCORE
    min_usd: float = DEFAULT_MIN_USD
    dexes: tuple[str, ...] = ()
    search: str = ""
    hide_stable: bool = True
    only_new: bool = False
    only_verified: bool = False
    group_by_token: bool = True

    def cache_key(self, view: str) -> str:
        return ":".join(
            [
                "smart-money",
                view,
                ".".join(str(c) for c in self.chain_ids),
                str(self.window_seconds),
                str(self.min_score),
                str(self.min_usd),
                ".".join(self.dexes),
                str(self.hide_stable),
                str(self.only_new),
                str(self.only_verified),
                str(self.group_by_token),
                self.search,
            ]
        )


@dataclass(frozen=True)
class ClassifiedSwap:
    swap: SmartSwap
    side: Side
    token: str
    usd_value: float


@dataclass(frozen=True)
class WalletRef:
    address: str
    score: int


@dataclass(frozen=True)
class ClusterSwap:
    tx_hash: str
    log_index: int
    wallet: str
    wallet_short: str
    score: int
    side: Side
    usd_value: float
    dex: str
    token_in: str
    token_out: str
    timestamp: int


@dataclass
class ClusterItem:
    id: str
    chain_id: int
    token: str
    symbol: str
    name: str
    verified: bool
    token_age_hours: int | None
    first_seen_at: int | None
    buy_usd: float
    sell_usd: float
    net_usd: float
    wallet_count: int
    top_wallets: list[WalletRef]
    price_spark: list[float | None]
    flow_spark: list[float | None]
    swaps: list[ClusterSwap]
    liquidity_usd: float | None = None
    volume_24h_usd: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class FeedItem:
    chain_id: int
    tx_hash: str
    log_index: int
    side: Side
    usd_value: float
    wallet: str
    wallet_short: str
    score: int
    token: str
    token_symbol: str
    token_name: str
    token_age_hours: int | None
    verified: bool
    route: str
    dex: str
    timestamp: int
    amount_in: str
    amount_out: str


@dataclass
class FeedPage:
    items: list[FeedItem]
    next_cursor: str | None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TopToken:
    chain_id: int
    address: str
    symbol: str
    name: str
    net_usd: float


@dataclass
class SmartMoneySummary:
    window_seconds: int
    smart_buys_usd: float
    smart_sells_usd: float
    net_flow_usd: float
    active_wallets: int
    top_token: TopToken | None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class _ClusterAcc:
    chain_id: int
    token: str
    bucket: int
    cluster_id: str
    buy_usd: float = 0.0
    sell_usd: float = 0.0
    swaps: list[ClusterSwap] = field(default_factory=list)
    wallets: dict[str, int] = field(default_factory=dict)
    price_points: list[tuple[int, float]] = field(default_factory=list)
    flow_points: list[tuple[int, float]] = field(default_factory=list)


# -----------------------------------------------------------------------------
# Parsing / labels
# -----------------------------------------------------------------------------


def parse_window(value: str | None) -> int:
    return WINDOW_SECONDS.get(value or "", WINDOW_SECONDS[DEFAULT_WINDOW])


def parse_cursor(value: str | None) -> tuple[int, int] | None:
    """Decode a feed cursor "timestamp:log_index"."""
    if not value:
        return None
    ts, sep, idx = value.partition(":")
    if not sep:
        raise ValueError(f"Invalid cursor: {value!r}")
    return int(ts), int(idx)


def encode_cursor(timestamp: int, log_index: int) -> str:
    return f"{timestamp}:{log_index}"


def normalize_token_label(value: str | None) -> str:
    if not value or not _PRINTABLE_ASCII.match(value):
        return "Unknown"
    trimmed = value.strip()
    return trimmed or "Unknown"


def short_address(address: str) -> str:
    if len(address) < 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


def _to_float(value: str) -> float | None:
    try:
        f = float(Decimal(value))
    except (InvalidOperation, TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


# -----------------------------------------------------------------------------
# Bucket math
# -----------------------------------------------------------------------------


def bucket_index(timestamp: int, window_start: int, bucket_seconds: int) -> int:
    return (timestamp - window_start) // bucket_seconds


def bucket_start(timestamp: int, bucket_seconds: int) -> int:
    """Epoch-aligned start of the bucket containing `timestamp`."""
    return bucket_index(timestamp, 0, bucket_seconds) * bucket_seconds


def compute_sparkline(
    points: Iterable[tuple[int, float]],
    *,
    window_seconds: int,
    bucket_seconds: int,
    now: int,
    reduce: Literal["mean", "sum"],
) -> list[float | None]:
    """
    Fixed-width series over [now - window_seconds, now).

    Buckets without points are None, never 0.
    """
    size = math.ceil(window_seconds / bucket_seconds)
    totals: list[float] = [0.0] * size
    counts: list[int] = [0] * size
    start = now - window_seconds

    for timestamp, value in points:
        if timestamp < start:
            continue
        idx = bucket_index(timestamp, start, bucket_seconds)
        if idx < 0 or idx >= size:
            continue
        totals[idx] += value
        counts[idx] += 1

    series: list[float | None] = []
    for total, count in zip(totals, counts, strict=True):
        if count == 0:
            series.append(None)
        elif reduce == "mean":
            series.append(total / count)
        else:
            series.append(total)
    return series


# -----------------------------------------------------------------------------
# Classification / filtering
# -----------------------------------------------------------------------------


def classify_swap(
    swap: SmartSwap,
    stablecoins: Mapping[int, frozenset[str]],
    *,
    hide_stable: bool = True,
) -> ClassifiedSwap | None:
    """
    buy  = stablecoin in, token out
    sell = token in, stablecoin out
    Swaps with both or neither leg a stablecoin are not smart-money trades.
    """
    usd = swap.usd_value
    if usd is None or not math.isfinite(usd) or usd <= 0:
        return None

    stables = stablecoins.get(swap.chain_id, frozenset())
    in_stable = swap.token_in in stables
    out_stable = swap.token_out in stables

    if hide_stable and in_stable and out_stable:
        return None

    if in_stable and not out_stable:
        return ClassifiedSwap(swap=swap, side="buy", token=swap.token_out, usd_value=usd)
    if out_stable and not in_stable:
        return ClassifiedSwap(swap=swap, side="sell", token=swap.token_in, usd_value=usd)
    return None


def token_age_seconds(info: TokenInfo | None, now: int) -> int | None:
    if info is None or info.first_seen_at is None:
        return None
    return now - info.first_seen_at


def matches_filters(
    item: ClassifiedSwap,
    info: TokenInfo | None,
    filters: SmartMoneyFilters,
    *,
    now: int,
) -> bool:
    if filters.dexes and item.swap.dex not in filters.dexes:
        return False

    if filters.only_verified and not (info is not None and info.verified):
        return False

    if filters.only_new:
        age = token_age_seconds(info, now)
        if age is not None and age > NEW_TOKEN_MAX_AGE_SECONDS:
            return False

    search = filters.search.strip().lower()
    if search:
        match_token = (
            search in item.token.lower()
            or search in normalize_token_label(info.symbol if info else None).lower()
            or search in normalize_token_label(info.name if info else None).lower()
        )
        match_wallet = search in item.swap.trader.lower()
        if not match_token and not match_wallet:
            return False

    return True


def select_swaps(
    swaps: Iterable[SmartSwap],
    tokens: Mapping[tuple[int, str], TokenInfo],
    stablecoins: Mapping[int, frozenset[str]],
    filters: SmartMoneyFilters,
    *,
    now: int,
) -> list[ClassifiedSwap]:
    out: list[ClassifiedSwap] = []
    for swap in swaps:
        item = classify_swap(swap, stablecoins, hide_stable=filters.hide_stable)
        if item is None:
            continue
        info = tokens.get((swap.chain_id, item.token))
        if not matches_filters(item, info, filters, now=now):
            continue
        out.append(item)
    return out


# -----------------------------------------------------------------------------
# Views
# -----------------------------------------------------------------------------


def build_clusters(
    swaps: Iterable[SmartSwap],
    tokens: Mapping[tuple[int, str], TokenInfo],
    stablecoins: Mapping[int, frozenset[str]],
    filters: SmartMoneyFilters,
    *,
    now: int,
) -> list[ClusterItem]:
    """
    Group matching swaps by (chain, token, 180s bucket), or one cluster per swap
    when grouping is disabled.
    """
    clusters: dict[str, _ClusterAcc] = {}

    for item in select_swaps(swaps, tokens, stablecoins, filters, now=now):
        swap = item.swap
        if filters.group_by_token:
            bucket = bucket_start(swap.timestamp, CLUSTER_BUCKET_SECONDS)
            key = f"{swap.chain_id}:{item.token}:{bucket}"
        else:
            bucket = swap.timestamp
            key = f"{swap.chain_id}:{swap.tx_hash}:{swap.log_index}"

        acc = clusters.get(key)
        if acc is None:
            acc = _ClusterAcc(chain_id=swap.chain_id, token=item.token, bucket=bucket, cluster_id=key)
            clusters[key] = acc

        acc.swaps.append(
            ClusterSwap(
                tx_hash=swap.tx_hash,
                log_index=swap.log_index,
                wallet=swap.trader,
                wallet_short=short_address(swap.trader),
                score=swap.score,
                side=item.side,
                usd_value=item.usd_value,
                dex=swap.dex,
                token_in=swap.token_in,
                token_out=swap.token_out,
                timestamp=swap.timestamp,
            )
        )

        if item.side == "buy":
            acc.buy_usd += item.usd_value
        else:
            acc.sell_usd += item.usd_value

        acc.wallets.setdefault(swap.trader, swap.score)

        token_amount = _to_float(swap.amount_out_dec if item.side == "buy" else swap.amount_in_dec)
        if token_amount is not None and token_amount > 0:
            acc.price_points.append((swap.timestamp, item.usd_value / token_amount))
        acc.flow_points.append(
            (swap.timestamp, item.usd_value if item.side == "buy" else -item.usd_value)
        )

    out: list[ClusterItem] = []
    for acc in clusters.values():
        info = tokens.get((acc.chain_id, acc.token))
        age = token_age_seconds(info, now)
        top_wallets = sorted(acc.wallets.items(), key=lambda kv: kv[1], reverse=True)[:CLUSTER_TOP_WALLETS]

        out.append(
            ClusterItem(
                id=acc.cluster_id,
                chain_id=acc.chain_id,
                token=acc.token,
                symbol=normalize_token_label(info.symbol if info else None),
                name=normalize_token_label(info.name if info else None),
                verified=info.verified if info else False,
                token_age_hours=max(0, age // 3600) if age is not None else None,
                first_seen_at=info.first_seen_at if info else None,
                buy_usd=acc.buy_usd,
                sell_usd=acc.sell_usd,
                net_usd=acc.buy_usd - acc.sell_usd,
                wallet_count=len(acc.wallets),
                top_wallets=[WalletRef(address=a, score=s) for a, s in top_wallets],
                price_spark=compute_sparkline(
                    acc.price_points,
                    window_seconds=PRICE_SPARK_WINDOW_SECONDS,
                    bucket_seconds=SPARK_BUCKET_SECONDS,
                    now=now,
                    reduce="mean",
                ),
                flow_spark=compute_sparkline(
                    acc.flow_points,
                    window_seconds=FLOW_SPARK_WINDOW_SECONDS,
                    bucket_seconds=SPARK_BUCKET_SECONDS,
                    now=now,
                    reduce="sum",
                ),
                swaps=sorted(acc.swaps, key=lambda s: s.timestamp, reverse=True)[:CLUSTER_SWAPS_LIMIT],
            )
        )
    return out


def build_feed(
    page: list[SmartSwap],
    tokens: Mapping[tuple[int, str], TokenInfo],
    stablecoins: Mapping[int, frozenset[str]],
    filters: SmartMoneyFilters,
    *,
    now: int,
    limit: int = FEED_PAGE_LIMIT,
) -> FeedPage:
    """
    Render one page of swaps (already ordered newest first and cut to `limit`).

    The cursor follows the last raw row so filtered-out swaps are not revisited.
    """
    items: list[FeedItem] = []
    for item in select_swaps(page, tokens, stablecoins, filters, now=now):
        swap = item.swap
        info = tokens.get((swap.chain_id, item.token))
        age = token_age_seconds(info, now)
        items.append(
            FeedItem(
                chain_id=swap.chain_id,
                tx_hash=swap.tx_hash,
                log_index=swap.log_index,
                side=item.side,
                usd_value=item.usd_value,
                wallet=swap.trader,
                wallet_short=short_address(swap.trader),
                score=swap.score,
                token=item.token,
                token_symbol=normalize_token_label(info.symbol if info else None),
                token_name=normalize_token_label(info.name if info else None),
                token_age_hours=max(0, age // 3600) if age is not None else None,
                verified=info.verified if info else False,
                route=f"{swap.token_in} -> {swap.token_out}",
                dex=swap.dex,
                timestamp=swap.timestamp,
                amount_in=swap.amount_in_dec,
                amount_out=swap.amount_out_dec,
            )
        )

    next_cursor = None
    if page and len(page) >= limit:
        last = page[-1]
        next_cursor = encode_cursor(last.timestamp, last.log_index)
    return FeedPage(items=items, next_cursor=next_cursor)


def build_summary(
    swaps: Iterable[SmartSwap],
    tokens: Mapping[tuple[int, str], TokenInfo],
    stablecoins: Mapping[int, frozenset[str]],
    *,
    window_seconds: int,
    now: int,
) -> SmartMoneySummary:
    """
    Buy/sell totals over the whole window; active wallets and the top net-inflow
    token over the last 15 minutes.
    """
    recent_since = now - SUMMARY_TOP_TOKEN_SECONDS
    buy_usd = 0.0
    sell_usd = 0.0
    active_wallets: set[str] = set()
    net_by_token: dict[tuple[int, str], float] = {}

    for swap in swaps:
        if swap.timestamp >= recent_since:
            active_wallets.add(swap.trader)

        item = classify_swap(swap, stablecoins, hide_stable=True)
        if item is None:
            continue

        if item.side == "buy":
            buy_usd += item.usd_value
        else:
            sell_usd += item.usd_value

        if swap.timestamp >= recent_since:
            key = (swap.chain_id, item.token)
            delta = item.usd_value if item.side == "buy" else -item.usd_value
            net_by_token[key] = net_by_token.get(key, 0.0) + delta

    top_token = None
    top_key = None
    top_net = 0.0
    for key, net in net_by_token.items():
        if net > top_net:
            top_key, top_net = key, net

    if top_key is not None:
        info = tokens.get(top_key)
        top_token = TopToken(
            chain_id=top_key[0],
            address=top_key[1],
            symbol=normalize_token_label(info.symbol if info else None),
            name=normalize_token_label(info.name if info else None),
            net_usd=top_net,
        )

    return SmartMoneySummary(
        window_seconds=window_seconds,
        smart_buys_usd=buy_usd,
        smart_sells_usd=sell_usd,
        net_flow_usd=buy_usd - sell_usd,
        active_wallets=len(active_wallets),
        top_token=top_token,
    )
