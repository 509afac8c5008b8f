from __future__ import annotations

from dataclasses import dataclass, field

from smart_money_indexer.app.config import Settings, get_settings
from smart_money_indexer.app.domain.errors import ConfigurationError


@dataclass(frozen=True)
class DexConfig:
    """Known AMM deployment on a chain (informational, used for labelling)."""

    name: str
    factory: str
    router: str | None = None


@dataclass(frozen=True)
class ChainConfig:
    """
    Static per-chain configuration.

    Addresses are lowercase 0x-hex. `public_rpc_urls` are used only when no
    env override or Alchemy key is configured for the chain.
    """

    chain_id: int
    name: str
    short_name: str
    native_symbol: str
    llama_prefix: str
    price_id: str
    public_rpc_urls: tuple[str, ...]
    stablecoins: frozenset[str]
    confirmations: int
    alchemy_base_url: str | None = None
    dexes: tuple[DexConfig, ...] = field(default_factory=tuple)

    def rpc_urls(self, settings: Settings | None = None) -> list[str]:
        """Ordered RPC candidates: env override, Alchemy, public fallbacks."""
        settings = settings or get_settings()
        urls: list[str] = []

        override = settings.rpc_override(self.chain_id)
        if override:
            urls.append(override)

        if self.alchemy_base_url and settings.alchemy_api_key is not None:
            key = settings.alchemy_api_key.get_secret_value().strip()
            if key:
                urls.append(f"{self.alchemy_base_url}{key}")

        urls.extend(self.public_rpc_urls)
        return urls


_CHAINS: tuple[ChainConfig, ...] = (
    ChainConfig(
        chain_id=1,
        name="Ethereum",
        short_name="eth",
        native_symbol="ETH",
        llama_prefix="ethereum",
        price_id="coingecko:ethereum",
        alchemy_base_url="https://eth-mainnet.g.alchemy.com/v2/",
        public_rpc_urls=("https://cloudflare-eth.com", "https://rpc.ankr.com/eth"),
        stablecoins=frozenset(
            {
                "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48",  # USDC
                "0xdac17f958d2ee523a2206206994597c13d831ec7",  # USDT
                "0x6b175474e89094c44da98b954eedeac495271d0f",  # DAI
            }
        ),
        confirmations=12,
        dexes=(
            DexConfig(
                name="uniswap-v2",
                factory="0x5c69bee701ef814a2b6a3edd4b1652cb9cc5aa6f",
                router="0x7a250d5630b4cf539739df2c5dacb4c659f2488d",
            ),
            DexConfig(
                name="uniswap-v3",
                factory="0x1f98431c8ad98523631ae4a59f267346ea31f984",
                router="0xe592427a0aece92de3edee1f18e0157c05861564",
            ),
        ),
    ),
    ChainConfig(
        chain_id=42161,
        name="Arbitrum",
        short_name="arb",
        native_symbol="ETH",
        llama_prefix="arbitrum",
        price_id="coingecko:ethereum",
        alchemy_base_url="https://arb-mainnet.g.alchemy.com/v2/",
        public_rpc_urls=("https://arb1.arbitrum.io/rpc", "https://rpc.ankr.com/arbitrum"),
        stablecoins=frozenset(
            {
                "0xaf88d065e77c8cc2239327c5edb3a432268e5831",  # USDC
                "0xff970a61a04b1ca14834a43f5de4533ebddb5cc8",  # USDC.e
                "0xfd086bc7cd5c481dcc9c85ebe478a1c0b69fcbb9",  # USDT
                "0xda10009cbd5d07dd0cecc66161fc93d7c9000da1",  # DAI
            }
        ),
        confirmations=20,
        dexes=(
            DexConfig(
                name="uniswap-v3",
                factory="0x1f98431c8ad98523631ae4a59f267346ea31f984",
                router="0xe592427a0aece92de3edee1f18e0157c05861564",
            ),
        ),
    ),
    ChainConfig(
        chain_id=8453,
        name="Base",
        short_name="base",
        native_symbol="ETH",
        llama_prefix="base",
        price_id="coingecko:ethereum",
        alchemy_base_url="https://base-mainnet.g.alchemy.com/v2/",
        public_rpc_urls=("https://mainnet.base.org", "https://base-rpc.publicnode.com"),
        stablecoins=frozenset(
            {
                "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913",  # USDC
                "0xd9aaec86b65d86f6a7b5b1b0c42ffa531710b6ca",  # USDbC
                "0x50c5725949a6f0c72e6c4a641f24049a917db0cb",  # DAI
            }
        ),
        confirmations=10,
        dexes=(
            DexConfig(name="uniswap-v2", factory="0x8909dc15e40173ff4699343b6eb8132c65e18ec6"),
            DexConfig(name="uniswap-v3", factory="0x33128a8fc17869897dce68ed026d694621f6fdfd"),
        ),
    ),
    ChainConfig(
        chain_id=56,
        name="BNB Chain",
        short_name="bsc",
        native_symbol="BNB",
        llama_prefix="bsc",
        price_id="coingecko:binancecoin",
        public_rpc_urls=("https://bsc-dataseed.binance.org", "https://rpc.ankr.com/bsc"),
        stablecoins=frozenset(
            {
                "0x55d398326f99059ff775485246999027b3197955",  # USDT
                "0x8ac76a51cc950d9822d68b83fe1ad97b32cd580d",  # USDC
                "0xe9e7cea3dedca5984780bafc599bd69add087d56",  # BUSD
            }
        ),
        confirmations=15,
        dexes=(
            DexConfig(
                name="pancakeswap-v2",
                factory="0xca143ce32fe78f1f7019d7d551a6402fc5350c73",
                router="0x10ed43c718714eb63d5aa57b78b54704e256024e",
            ),
            DexConfig(name="pancakeswap-v3", factory="0x0bfbcf9fa4f9c56b0f40a671ad40e0805a091865"),
        ),
    ),
)

_CHAINS_BY_ID: dict[int, ChainConfig] = {c.chain_id: c for c in _CHAINS}


def list_chains() -> list[ChainConfig]:
    return list(_CHAINS)


def get_chain_config(chain_id: int) -> ChainConfig | None:
    return _CHAINS_BY_ID.get(chain_id)


def require_chain_config(chain_id: int) -> ChainConfig:
    chain = get_chain_config(chain_id)
    if chain is None:
        raise ConfigurationError(f"Unknown chain {chain_id}")
    return chain


def find_chain(value: str | int) -> ChainConfig | None:
    """Look a chain up by numeric id or short name (e.g. "eth", "1")."""
    if isinstance(value, int):
        return get_chain_config(value)

    token = value.strip().lower()
    for chain in _CHAINS:
        if chain.short_name == token:
            return chain
    if token.isdigit():
        return get_chain_config(int(token))
    return None


def resolve_rpc_url(chain: ChainConfig, settings: Settings | None = None) -> str:
    urls = chain.rpc_urls(settings)
    if not urls:
        raise ConfigurationError(f"Missing RPC URL for {chain.name}")
    return urls[0]


def stablecoins_for(chain_id: int) -> frozenset[str]:
    chain = get_chain_config(chain_id)
    return chain.stablecoins if chain is not None else frozenset()


def is_stablecoin(chain_id: int, address: str) -> bool:
    return address.lower() in stablecoins_for(chain_id)
