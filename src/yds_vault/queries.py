from __future__ import annotations

from dataclasses import dataclass, field

from .abi import load_erc20_abi, load_vault_abi
from .address_book import AddressBook
from .constants import ASSET_DECIMALS, DONATION_RECIPIENTS, SHARE_DECIMALS
from .domain import OperationKind
from .reader import ContractReader, QueryKey


@dataclass(frozen=True)
class VaultQueries:
    """The reads the client keeps fresh, keyed for reconciliation."""

    total_assets: QueryKey
    total_supply: QueryKey
    watermark: QueryKey
    asset_balance: QueryKey
    share_balance: QueryKey
    allowance: QueryKey
    recipient_balances: dict[str, QueryKey] = field(default_factory=dict)

    @property
    def position(self) -> frozenset[QueryKey]:
        return frozenset({self.asset_balance, self.share_balance, self.allowance})

    @property
    def vault_totals(self) -> frozenset[QueryKey]:
        return frozenset({self.total_assets, self.total_supply})

    def affected_by(self, kind: OperationKind) -> frozenset[QueryKey]:
        """Queries whose value a confirmed ``kind`` write can change."""
        if kind is OperationKind.APPROVE:
            return frozenset({self.allowance})
        if kind is OperationKind.DEPOSIT:
            return self.position | self.vault_totals
        if kind in (OperationKind.WITHDRAW, OperationKind.REDEEM):
            return frozenset({self.asset_balance, self.share_balance}) | self.vault_totals
        if kind is OperationKind.HARVEST:
            return (
                frozenset({self.watermark, *self.recipient_balances.values()})
                | self.vault_totals
            )
        if kind is OperationKind.MINT:
            return frozenset({self.asset_balance})
        if kind is OperationKind.SIMULATE_YIELD:
            return frozenset({self.total_assets})
        raise ValueError(f"Unknown operation kind: {kind}")


def track_vault_queries(
    reader: ContractReader,
    book: AddressBook,
    account: str | None,
) -> VaultQueries:
    """Register the vault's contracts with ``reader`` and track every read.

    Without an ``account`` the per-user reads are tracked but disabled.
    """
    token = reader.register_contract(book.usdc_mock, load_erc20_abi())
    vault = reader.register_contract(book.yds_vault, load_vault_abi())

    return VaultQueries(
        total_assets=reader.track(vault, "totalAssets", scale=ASSET_DECIMALS),
        total_supply=reader.track(vault, "totalSupply", scale=SHARE_DECIMALS),
        watermark=reader.track(vault, "lastRecordedAssets", scale=ASSET_DECIMALS),
        asset_balance=reader.track(token, "balanceOf", account, scale=ASSET_DECIMALS),
        share_balance=reader.track(vault, "balanceOf", account, scale=SHARE_DECIMALS),
        allowance=reader.track(token, "allowance", account, vault, scale=ASSET_DECIMALS),
        recipient_balances={
            recipient["address"]: reader.track(
                token, "balanceOf", recipient["address"], scale=ASSET_DECIMALS
            )
            for recipient in DONATION_RECIPIENTS
        },
    )
