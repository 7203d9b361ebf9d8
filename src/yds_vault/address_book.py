"""Static mapping of logical contract names to deployed addresses."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator
from web3 import Web3

from .constants import LOCALHOST_CONTRACTS


class AddressBook(BaseModel):
    """Contract addresses for one network. Loaded once and never mutated."""

    usdc_mock: str = Field(alias="USDC_MOCK")
    yds_vault: str = Field(alias="YDS_VAULT")
    donation_router: str = Field(alias="DONATION_ROUTER")
    aave_adapter: str = Field(alias="AAVE_ADAPTER")
    mock_yield_adapter: str | None = Field(default=None, alias="MOCK_YIELD_ADAPTER")

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    @field_validator(
        "usdc_mock", "yds_vault", "donation_router", "aave_adapter", "mock_yield_adapter"
    )
    @classmethod
    def checksum(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return Web3.to_checksum_address(v)

    @property
    def yield_adapter(self) -> str:
        """Adapter accepting ``simulateYield``; the Aave adapter unless a mock is deployed."""
        return self.mock_yield_adapter or self.aave_adapter


@lru_cache(maxsize=None)
def load_address_book(path: Path | None, network: str = "localhost") -> AddressBook:
    """Load the address book for ``network``.

    The file follows the deploy script's layout, ``{"<network>": {"USDC_MOCK":
    ..., "YDS_VAULT": ..., ...}}``. Without a file the built-in localhost
    deployment is used.

    Raises:
        FileNotFoundError: If ``path`` is given but does not exist.
        KeyError: If the file has no entry for ``network``.
    """
    if path is None:
        if network != "localhost":
            raise KeyError(f"No built-in addresses for network '{network}'")
        return AddressBook.model_validate(LOCALHOST_CONTRACTS)

    with Path(path).open() as f:
        data = json.load(f)

    if network not in data:
        raise KeyError(
            f"Address book {path} has no '{network}' entry. "
            f"Available: {', '.join(sorted(data))}"
        )
    return AddressBook.model_validate(data[network])
