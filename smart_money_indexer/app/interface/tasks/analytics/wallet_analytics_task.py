from __future__ import annotations

from smart_money_indexer.app.application.services.analytics.update_wallet_analytics import (
    update_wallet_analytics,
)
from smart_money_indexer.app.application.services.block_bounds import last_ingested_block
from smart_money_indexer.app.domain.errors import ConfigurationError
from smart_money_indexer.app.infrastructure.db.engine import create_app_async_engine
from smart_money_indexer.app.infrastructure.factories.analytics.wallet_analytics_factory import (
    wallet_analytics_factory,
)
from smart_money_indexer.app.registry.chains import find_chain


async def wallet_analytics_task(
    *,
    chain_id: int | str,
    to_block: int | str = "latest",
    backend: str = "sqlalchemy",
) -> None:
    """
    Task: bring wallet_positions forward to `to_block` ("latest" = last
    ingested block), then recompute wallet_token_pnl and wallet_scores.
    """
    chain = find_chain(chain_id)
    if chain is None:
        raise ConfigurationError(f"Unknown chain {chain_id!r}")

    engine = create_app_async_engine()
    try:
        if isinstance(to_block, str):
            if to_block.strip().lower() not in ("", "latest"):
                raise ValueError(f"Unsupported to_block value: {to_block!r}")
            resolved_to_block = await last_ingested_block(engine=engine, chain_id=chain.chain_id)
        else:
            resolved_to_block = to_block

        indexers = wallet_analytics_factory(backend=backend, engine=engine)
        await update_wallet_analytics(
            positions=indexers.positions,
            pnl=indexers.pnl,
            scores=indexers.scores,
            chain_id=chain.chain_id,
            to_block=resolved_to_block,
        )
    finally:
        await engine.dispose()
