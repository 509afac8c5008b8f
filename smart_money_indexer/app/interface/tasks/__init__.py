from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from .ingest.ingest_block_range_task import ingest_block_range_task as ingest__ingest_block_range_task
from .analytics.wallet_analytics_task import wallet_analytics_task as analytics__wallet_analytics_task
from .live.live_tail_task import live_tail_task as live__live_tail_task
from .smart_money.smart_money_task import smart_money_task as smart_money__smart_money_task

TaskFn = Callable[..., Awaitable[Any]]

TASKS: dict[str, TaskFn] = {
    "ingest__ingest_block_range_task": ingest__ingest_block_range_task,
    "analytics__wallet_analytics_task": analytics__wallet_analytics_task,
    "live__live_tail_task": live__live_tail_task,
    "smart_money__smart_money_task": smart_money__smart_money_task,
}
