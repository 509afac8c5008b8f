import asyncio
import inspect
import json
import logging
from typing import Any, Optional

import typer
from dotenv import load_dotenv
from InquirerPy import inquirer

from smart_money_indexer.app.domain.smart_money import (
    DEFAULT_MIN_SCORE,
    DEFAULT_MIN_USD,
    DEFAULT_WINDOW,
    FEED_PAGE_LIMIT,
    WINDOW_SECONDS,
)
from smart_money_indexer.app.interface.tasks import TASKS
from smart_money_indexer.app.interface.tasks.analytics.wallet_analytics_task import wallet_analytics_task
from smart_money_indexer.app.interface.tasks.ingest.ingest_block_range_task import ingest_block_range_task
from smart_money_indexer.app.interface.tasks.live.live_tail_task import live_tail_task
from smart_money_indexer.app.interface.tasks.smart_money.smart_money_task import smart_money_task


load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

app = typer.Typer()
indexer_app = typer.Typer(help="cli for indexing on chain data.")
smart_money_app = typer.Typer(help="smart-money views over indexed swaps.")
app.add_typer(indexer_app, name="indexer")
app.add_typer(smart_money_app, name="smart-money")


def _parse_block(value: str) -> int | str:
    value = value.strip()
    try:
        return int(value, 0)
    except ValueError:
        return value


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, default=str))


# -----------------------------------------------------------------------------
# indexer
# -----------------------------------------------------------------------------


@indexer_app.command("run")
def run() -> None:
    task_name = inquirer.select(
        message="Select task:",
        choices=list(TASKS.keys()),
        pointer="❯",
        instruction="Use ↑/↓ to move, Enter to select",
    ).execute()

    task = TASKS[task_name]
    params = inspect.signature(task).parameters
    kwargs: dict[str, object] = {}

    if "chain_id" in params:
        kwargs["chain_id"] = inquirer.text(
            message="Chain (id or short name, e.g. 1 or eth):",
            default="1",
        ).execute()
    if "chains" in params:
        chains = inquirer.text(
            message="Chains (comma separated, empty = all):",
            default="",
        ).execute()
        kwargs["chains"] = [c.strip() for c in chains.split(",") if c.strip()]
    if "from_block" in params:
        kwargs["from_block"] = _parse_block(
            inquirer.text(message="From block (inclusive):", default="next").execute()
        )
    if "to_block" in params:
        kwargs["to_block"] = _parse_block(
            inquirer.text(message="To block (inclusive):", default="latest").execute()
        )
    if "view" in params:
        kwargs["view"] = inquirer.select(
            message="View:",
            choices=["clusters", "feed", "summary", "top"],
            pointer="❯",
        ).execute()

    result = asyncio.run(task(**kwargs))  # type: ignore
    if result is not None:
        _echo_json(result)


@indexer_app.command("backfill")
def backfill(
    chain: str = typer.Option(..., "--chain", help="Chain id or short name."),
    from_block: str = typer.Option(..., "--from-block", help='Block number or "next".'),
    to_block: str = typer.Option(..., "--to-block", help='Block number or "latest".'),
    analytics: bool = typer.Option(True, "--analytics/--no-analytics"),
) -> None:
    """Ingest one block range, then refresh wallet analytics."""
    asyncio.run(
        ingest_block_range_task(
            chain_id=chain,
            from_block=_parse_block(from_block),
            to_block=_parse_block(to_block),
            analytics=analytics,
        )
    )


@indexer_app.command("live")
def live(
    chain: Optional[list[str]] = typer.Option(None, "--chain", help="Repeatable; default all chains."),
) -> None:
    """Follow the confirmed head of the selected chains."""
    try:
        asyncio.run(live_tail_task(chains=chain or None))
    except KeyboardInterrupt:
        typer.echo("Stopped.")


@indexer_app.command("analytics")
def analytics(
    chain: str = typer.Option(..., "--chain", help="Chain id or short name."),
    to_block: str = typer.Option("latest", "--to-block"),
) -> None:
    """Recompute positions, PnL and scores for a chain."""
    asyncio.run(wallet_analytics_task(chain_id=chain, to_block=_parse_block(to_block)))


# -----------------------------------------------------------------------------
# smart-money
# -----------------------------------------------------------------------------


def _run_view(view: str, **kwargs: Any) -> None:
    try:
        payload = asyncio.run(smart_money_task(view=view, **kwargs))  # type: ignore[arg-type]
    except ValueError as e:
        raise typer.BadParameter(str(e))
    _echo_json(payload)


_WINDOW_HELP = f"One of {', '.join(WINDOW_SECONDS)}."


@smart_money_app.command("clusters")
def clusters(
    chain: Optional[list[str]] = typer.Option(None, "--chain"),
    window: str = typer.Option(DEFAULT_WINDOW, "--window", help=_WINDOW_HELP),
    min_score: int = typer.Option(DEFAULT_MIN_SCORE, "--min-score"),
    min_usd: float = typer.Option(DEFAULT_MIN_USD, "--min-usd"),
    dex: Optional[list[str]] = typer.Option(None, "--dex"),
    search: str = typer.Option("", "--search"),
    hide_stable: bool = typer.Option(True, "--hide-stable/--show-stable"),
    only_new: bool = typer.Option(False, "--only-new"),
    only_verified: bool = typer.Option(False, "--only-verified"),
    group_by_token: bool = typer.Option(True, "--group/--no-group"),
) -> None:
    _run_view(
        "clusters",
        chains=chain or (),
        window=window,
        min_score=min_score,
        min_usd=min_usd,
        dexes=dex or (),
        search=search,
        hide_stable=hide_stable,
        only_new=only_new,
        only_verified=only_verified,
        group_by_token=group_by_token,
    )


@smart_money_app.command("feed")
def feed(
    chain: Optional[list[str]] = typer.Option(None, "--chain"),
    window: str = typer.Option(DEFAULT_WINDOW, "--window", help=_WINDOW_HELP),
    min_score: int = typer.Option(DEFAULT_MIN_SCORE, "--min-score"),
    min_usd: float = typer.Option(DEFAULT_MIN_USD, "--min-usd"),
    dex: Optional[list[str]] = typer.Option(None, "--dex"),
    search: str = typer.Option("", "--search"),
    cursor: Optional[str] = typer.Option(None, "--cursor", help='"timestamp:log_index" from the previous page.'),
    limit: int = typer.Option(FEED_PAGE_LIMIT, "--limit"),
) -> None:
    _run_view(
        "feed",
        chains=chain or (),
        window=window,
        min_score=min_score,
        min_usd=min_usd,
        dexes=dex or (),
        search=search,
        cursor=cursor,
        limit=limit,
    )


@smart_money_app.command("summary")
def summary(
    chain: Optional[list[str]] = typer.Option(None, "--chain"),
    window: str = typer.Option(DEFAULT_WINDOW, "--window", help=_WINDOW_HELP),
    min_score: int = typer.Option(DEFAULT_MIN_SCORE, "--min-score"),
) -> None:
    _run_view("summary", chains=chain or (), window=window, min_score=min_score)


@smart_money_app.command("top")
def top(
    chain: Optional[list[str]] = typer.Option(None, "--chain"),
    window: str = typer.Option("30d", "--window"),
    min_score: int = typer.Option(0, "--min-score"),
    limit: int = typer.Option(50, "--limit", help="Clamped to 1..200."),
) -> None:
    _run_view("top", chains=chain or (), window=window, min_score=min_score, limit=limit)


if __name__ == "__main__":
    LOGO = r"""

      ___                _     __  __
     / __|_ __  __ _ _ _| |_  |  \/  |___ _ _  ___ _  _
     \__ \ '  \/ _` | '_|  _| | |\/| / _ \ ' \/ -_) || |
     |___/_|_|_\__,_|_|  \__| |_|  |_\___/_||_\___|\_, |
                                                   |__/

      --- Smart Money Indexer CLI ---
    """
    typer.echo(LOGO)
    app()
