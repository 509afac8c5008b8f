"""
FIFO lot accounting for realized wallet PnL.

Only swaps with exactly one stablecoin leg are considered:
  - stablecoin -> token opens a lot (amount bought, USD cost, timestamp),
  - token -> stablecoin consumes the oldest lots first.

USD arithmetic is done in Decimal; amounts are raw integers so lots can be
split exactly.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Collection, Iterable

PNL_WINDOW_SECONDS = 30 * 24 * 60 * 60

_ZERO = Decimal(0)


@dataclass(frozen=True)
class SwapTrade:
    """Minimal swap projection needed for PnL. Feed in chronological order."""

    trader: str | None
    token_in: str
    token_out: str
    amount_in_raw: int
    amount_out_raw: int
    amount_in_dec: str
    amount_out_dec: str
    timestamp: int


@dataclass
class Lot:
    amount_raw: int
    cost_usd: Decimal
    timestamp: int
    original_amount_raw: int = 0

    def __post_init__(self) -> None:
        if not self.original_amount_raw:
            self.original_amount_raw = self.amount_raw


@dataclass
class PnlStats:
    realized_pnl_usd: Decimal = _ZERO
    win_trades: int = 0
    loss_trades: int = 0
    hold_seconds_weighted: Decimal = _ZERO
    hold_weight: Decimal = _ZERO

    @property
    def trades(self) -> int:
        return self.win_trades + self.loss_trades

    @property
    def avg_hold_seconds(self) -> int:
        if self.hold_weight <= 0:
            return 0
        return int((self.hold_seconds_weighted / self.hold_weight).to_integral_value())


@dataclass(frozen=True)
class WalletTokenPnl:
    wallet: str
    token: str
    realized_pnl_usd_30d: Decimal
    realized_pnl_usd_all: Decimal
    win_trades_30d: int
    loss_trades_30d: int
    avg_hold_seconds_30d: int


@dataclass
class _SaleResult:
    realized: Decimal = _ZERO
    hold_seconds_weighted: Decimal = _ZERO
    hold_weight: Decimal = _ZERO
    consumed: bool = False


@dataclass
class FifoLedger:
    """Per-(wallet, token) FIFO queues of open lots."""

    lots: dict[tuple[str, str], deque[Lot]] = field(default_factory=dict)

    def open_lot(self, key: tuple[str, str], lot: Lot) -> None:
        self.lots.setdefault(key, deque()).append(lot)

    def consume(
        self,
        key: tuple[str, str],
        *,
        amount_raw: int,
        proceeds_usd: Decimal,
        timestamp: int,
    ) -> _SaleResult:
        result = _SaleResult()
        queue = self.lots.get(key)
        if not queue:
            return result

        remaining = amount_raw
        while remaining > 0 and queue:
            lot = queue[0]
            take = min(remaining, lot.amount_raw)

            cost_portion = lot.cost_usd * take / lot.amount_raw
            proceeds_portion = proceeds_usd * take / amount_raw
            lot_fraction = Decimal(take) / Decimal(lot.original_amount_raw)

            result.realized += proceeds_portion - cost_portion
            result.hold_seconds_weighted += (timestamp - lot.timestamp) * lot_fraction
            result.hold_weight += lot_fraction
            result.consumed = True

            lot.amount_raw -= take
            lot.cost_usd -= cost_portion
            remaining -= take
            if lot.amount_raw == 0:
                queue.popleft()

        return result


def _to_decimal(value: str) -> Decimal | None:
    try:
        d = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not d.is_finite():
        return None
    return d


def compute_pnl_stats(
    swaps: Iterable[SwapTrade],
    stablecoins: Collection[str],
) -> dict[tuple[str, str], PnlStats]:
    """
    Realized PnL per (wallet, token).

    A sale with no open lot has no trackable cost basis: it is ignored and not
    counted as a trade. A sale that consumed lots counts as one trade, a win
    when its realized PnL is >= 0.
    """
    ledger = FifoLedger()
    stats: dict[tuple[str, str], PnlStats] = {}

    for swap in swaps:
        if not swap.trader:
            continue

        in_stable = swap.token_in in stablecoins
        out_stable = swap.token_out in stablecoins

        if in_stable and not out_stable:
            cost_usd = _to_decimal(swap.amount_in_dec)
            if cost_usd is None or cost_usd <= 0 or swap.amount_out_raw <= 0:
                continue
            ledger.open_lot(
                (swap.trader, swap.token_out),
                Lot(amount_raw=swap.amount_out_raw, cost_usd=cost_usd, timestamp=swap.timestamp),
            )
            continue

        if out_stable and not in_stable:
            proceeds_usd = _to_decimal(swap.amount_out_dec)
            if proceeds_usd is None or swap.amount_in_raw <= 0:
                continue

            key = (swap.trader, swap.token_in)
            sale = ledger.consume(
                key,
                amount_raw=swap.amount_in_raw,
                proceeds_usd=proceeds_usd,
                timestamp=swap.timestamp,
            )
            if not sale.consumed:
                continue

            stat = stats.setdefault(key, PnlStats())
            stat.realized_pnl_usd += sale.realized
            if sale.realized >= 0:
                stat.win_trades += 1
            else:
                stat.loss_trades += 1
            stat.hold_seconds_weighted += sale.hold_seconds_weighted
            stat.hold_weight += sale.hold_weight

    return stats


def compute_wallet_token_pnl(
    swaps: list[SwapTrade],
    stablecoins: Collection[str],
    *,
    now: int,
    window_seconds: int = PNL_WINDOW_SECONDS,
) -> list[WalletTokenPnl]:
    """Run FIFO accounting over all history and over the trailing window, then merge."""
    since = now - window_seconds
    all_stats = compute_pnl_stats(swaps, stablecoins)
    recent_stats = compute_pnl_stats((s for s in swaps if s.timestamp >= since), stablecoins)

    out: list[WalletTokenPnl] = []
    for key in sorted(set(all_stats) | set(recent_stats)):
        wallet, token = key
        everything = all_stats.get(key, PnlStats())
        recent = recent_stats.get(key, PnlStats())
        out.append(
            WalletTokenPnl(
                wallet=wallet,
                token=token,
                realized_pnl_usd_30d=recent.realized_pnl_usd,
                realized_pnl_usd_all=everything.realized_pnl_usd,
                win_trades_30d=recent.win_trades,
                loss_trades_30d=recent.loss_trades,
                avg_hold_seconds_30d=recent.avg_hold_seconds,
            )
        )
    return out
