from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

ABI_DIR = Path(__file__).resolve().parent / "abi"

ERC20_ABI = "ERC20.json"
UNISWAP_V2_PAIR_ABI = "UniswapV2Pair.json"
UNISWAP_V3_POOL_ABI = "UniswapV3Pool.json"


@lru_cache(maxsize=None)
def load_abi(file_name: str) -> tuple[dict[str, Any], ...]:
    """Load an ABI list (or a build artifact with an "abi" key) from registry/abi/."""
    abi_path = ABI_DIR / file_name
    if not abi_path.exists():
        raise FileNotFoundError(f"ABI file not found: {abi_path}")
    data = json.loads(abi_path.read_text(encoding="utf-8"))

    # Common formats:
    # - [ ... ] (ABI list)
    # - { "abi": [ ... ] } (artifact)
    if isinstance(data, list):
        abi = data
    elif isinstance(data, dict) and isinstance(data.get("abi"), list):
        abi = data["abi"]
    else:
        raise ValueError(
            f"Unsupported ABI JSON format in {abi_path}. Expected list or dict with 'abi' list."
        )

    return tuple(x for x in abi if isinstance(x, dict))
