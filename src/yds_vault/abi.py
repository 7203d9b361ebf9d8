from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path

ABIS_DIR = Path(__file__).parent / "abis"

VAULT_ABI_PATH = ABIS_DIR / "YDSVault.json"
ERC20_ABI_PATH = ABIS_DIR / "ERC20.json"
YIELD_ADAPTER_ABI_PATH = ABIS_DIR / "MockYieldAdapter.json"


@lru_cache(maxsize=None)
def load_abi(path: str | Path) -> list[dict]:
    """Load an ABI from a JSON file and return its "abi" field.

    Args:
        path: Path to the JSON file containing an "abi" field.

    Returns:
        ABI as a list of dictionaries.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
        KeyError: If the JSON does not contain an "abi" field.
    """
    p = Path(path)
    with p.open() as f:
        data = json.load(f)
    return data["abi"]


def load_vault_abi() -> list[dict]:
    """Load the YDS vault ABI."""
    return load_abi(VAULT_ABI_PATH)


def load_erc20_abi() -> list[dict]:
    """Load the mintable ERC20 (USDC mock) ABI."""
    return load_abi(ERC20_ABI_PATH)


def load_yield_adapter_abi() -> list[dict]:
    """Load the mock yield adapter ABI."""
    return load_abi(YIELD_ADAPTER_ABI_PATH)