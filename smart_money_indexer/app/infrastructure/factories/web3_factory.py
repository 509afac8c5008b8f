from __future__ import annotations

from web3 import AsyncHTTPProvider, AsyncWeb3

from smart_money_indexer.app.config import Settings, get_settings
from smart_money_indexer.app.registry.chains import ChainConfig, resolve_rpc_url


def create_async_web3(chain: ChainConfig, settings: Settings | None = None) -> AsyncWeb3:
    """AsyncWeb3 bound to the first configured RPC URL of the chain."""
    settings = settings or get_settings()
    rpc_url = resolve_rpc_url(chain, settings)
    return AsyncWeb3(
        AsyncHTTPProvider(
            rpc_url,
            request_kwargs={"timeout": settings.rpc_timeout_seconds},
        )
    )
