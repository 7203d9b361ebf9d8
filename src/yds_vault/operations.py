"""Vault write actions, each with its own transaction tracker."""

from __future__ import annotations

from typing import Any, Callable

from web3 import Web3

from .abi import load_erc20_abi, load_vault_abi, load_yield_adapter_abi
from .address_book import AddressBook
from .checks.base import CheckResult
from .checks.preflight import (
    check_allowance,
    check_balance,
    check_connected,
    check_harvest,
    check_positive,
    check_withdraw,
    first_failure,
)
from .constants import ASSET_DECIMALS, MINT_GAS_LIMIT, SHARE_DECIMALS, SIMULATE_YIELD_GAS_LIMIT
from .domain import NOT_YET_LOADED, LifecycleState, Loadable, OperationKind, PendingOperation, SharePrice
from .exceptions import InvalidAddress
from .logger import get_logger
from .processors import compute_available_profit, compute_share_price, preview_shares
from .queries import VaultQueries
from .reader import ContractReader
from .reconciliation import ReconciliationScheduler
from .transactions import TransactionTracker
from .units import DecimalAmount
from .wallet import BaseWallet

logger = get_logger(__name__)


class VaultOperations:
    """Pre-flight checked write actions against the token, vault and yield adapter.

    Every action raises its pre-flight error before touching the network and
    otherwise returns the tracker's terminal ``PendingOperation``. Confirmed
    writes trigger reconciliation of the queries they affect.
    """

    def __init__(
        self,
        *,
        wallet: BaseWallet,
        reader: ContractReader,
        queries: VaultQueries,
        book: AddressBook,
        trackers: dict[OperationKind, TransactionTracker],
        reconciler: ReconciliationScheduler,
    ) -> None:
        self.wallet = wallet
        self.reader = reader
        self.queries = queries
        self.book = book
        self.trackers = trackers
        self.reconciler = reconciler

        w3 = reader.w3
        self._token = w3.eth.contract(
            address=w3.to_checksum_address(book.usdc_mock), abi=load_erc20_abi()
        )
        self._vault = w3.eth.contract(
            address=w3.to_checksum_address(book.yds_vault), abi=load_vault_abi()
        )
        self._yield_adapter = w3.eth.contract(
            address=w3.to_checksum_address(book.yield_adapter),
            abi=load_yield_adapter_abi(),
        )

    # --- derived reads -----------------------------------------------------

    def value(self, key_name: str) -> Loadable[DecimalAmount]:
        return self.reader.current_value(getattr(self.queries, key_name))

    @property
    def share_price(self) -> SharePrice:
        return compute_share_price(self.value("total_assets"), self.value("total_supply"))

    @property
    def available_profit(self) -> Loadable[DecimalAmount]:
        total_assets = self.value("total_assets")
        watermark = self.value("watermark")
        if total_assets is NOT_YET_LOADED or watermark is NOT_YET_LOADED:
            return NOT_YET_LOADED
        return compute_available_profit(total_assets, watermark)

    def is_busy(self, kind: OperationKind) -> bool:
        return self.trackers[kind].is_busy

    # --- pre-flight ---------------------------------------------------------

    def check_approve(self, amount: DecimalAmount) -> CheckResult:
        return first_failure(check_connected(self.wallet.address), check_positive(amount))

    def check_deposit(self, amount: DecimalAmount, *, require_allowance: bool = True) -> CheckResult:
        results = [
            check_connected(self.wallet.address),
            check_positive(amount),
            check_balance(amount, self.value("asset_balance")),
        ]
        if require_allowance:
            results.append(check_allowance(amount, self.value("allowance")))
        return first_failure(*results)

    def check_withdraw(self, amount: DecimalAmount) -> CheckResult:
        return first_failure(
            check_connected(self.wallet.address),
            check_positive(amount),
            check_withdraw(amount, self.value("share_balance"), self.share_price),
        )

    def check_redeem(self, shares: DecimalAmount) -> CheckResult:
        return first_failure(
            check_connected(self.wallet.address),
            check_positive(shares, "Shares"),
            check_balance(shares, self.value("share_balance"), "Vault shares"),
        )

    def check_harvest(self) -> CheckResult:
        return first_failure(check_connected(self.wallet.address), check_harvest(self.available_profit))

    def check_mint(self, amount: DecimalAmount) -> CheckResult:
        return first_failure(check_connected(self.wallet.address), check_positive(amount))

    def check_simulate_yield(self, amount: DecimalAmount) -> CheckResult:
        return first_failure(check_connected(self.wallet.address), check_positive(amount, "Yield amount"))

    # --- actions ------------------------------------------------------------

    def resolve_address(self, address: str | None) -> str | None:
        """Checksum ``address``, defaulting to the connected account.

        Raises:
            InvalidAddress: If ``address`` is not a 20-byte hex address.
        """
        if address is None:
            return self.wallet.address
        try:
            return Web3.to_checksum_address(address)
        except (TypeError, ValueError) as e:
            raise InvalidAddress(address) from e

    async def _run(
        self,
        kind: OperationKind,
        build: Callable[[], Any],
        *,
        gas: int | None = None,
    ) -> PendingOperation:
        # Argument validation happens when the call is built, so a malformed
        # call surfaces as a failed submission on the tracker.
        async def _send() -> Any:
            return await self.wallet.send(build(), gas=gas)

        tracker = self.trackers[kind]
        result = await tracker.submit(_send)
        if result.state is LifecycleState.CONFIRMED:
            self.reconciler.on_operation_confirmed(self.queries.affected_by(kind))
        return result

    async def approve(self, amount: DecimalAmount) -> PendingOperation:
        """Allow the vault to pull ``amount`` of the asset token."""
        self.check_approve(amount).raise_for_failure()
        raw = amount.rescale(ASSET_DECIMALS).raw
        return await self._run(
            OperationKind.APPROVE,
            lambda: self._token.functions.approve(self._vault.address, raw),
        )

    async def deposit(
        self,
        amount: DecimalAmount,
        receiver: str | None = None,
        *,
        require_allowance: bool = True,
    ) -> PendingOperation:
        """Deposit ``amount`` of the asset and mint shares to ``receiver``.

        ``require_allowance=False`` skips the allowance pre-flight, for use
        right after an approval whose effect the reader may not show yet.
        """
        self.check_deposit(amount, require_allowance=require_allowance).raise_for_failure()
        receiver = self.resolve_address(receiver)
        raw = amount.rescale(ASSET_DECIMALS).raw
        return await self._run(
            OperationKind.DEPOSIT,
            lambda: self._vault.functions.deposit(raw, receiver),
        )

    async def withdraw(
        self,
        amount: DecimalAmount,
        receiver: str | None = None,
        owner: str | None = None,
    ) -> PendingOperation:
        """Withdraw ``amount`` of the asset, burning the owner's shares."""
        self.check_withdraw(amount).raise_for_failure()
        receiver = self.resolve_address(receiver)
        owner = self.resolve_address(owner)
        raw = amount.rescale(ASSET_DECIMALS).raw
        return await self._run(
            OperationKind.WITHDRAW,
            lambda: self._vault.functions.withdraw(raw, receiver, owner),
        )

    async def redeem(
        self,
        shares: DecimalAmount,
        receiver: str | None = None,
        owner: str | None = None,
    ) -> PendingOperation:
        """Burn ``shares`` for their asset value."""
        self.check_redeem(shares).raise_for_failure()
        receiver = self.resolve_address(receiver)
        owner = self.resolve_address(owner)
        raw = shares.rescale(SHARE_DECIMALS).raw
        return await self._run(
            OperationKind.REDEEM,
            lambda: self._vault.functions.redeem(raw, receiver, owner),
        )

    def shares_for_withdrawal(self, amount: DecimalAmount) -> DecimalAmount:
        """Shares to redeem for ``amount`` of assets, capped at the share balance."""
        shares = preview_shares(amount, self.share_price)
        balance = self.value("share_balance")
        if balance is not NOT_YET_LOADED and shares > balance:
            return balance.rescale(SHARE_DECIMALS)
        return shares

    async def withdraw_via_redeem(self, amount: DecimalAmount) -> PendingOperation:
        """Withdraw an asset amount by redeeming the equivalent share count."""
        self.check_withdraw(amount).raise_for_failure()
        shares = self.shares_for_withdrawal(amount)
        logger.info("Redeeming %s shares for %s assets", shares, amount)
        return await self.redeem(shares)

    async def harvest(self) -> PendingOperation:
        """Route profit above the watermark to the donation recipients."""
        self.check_harvest().raise_for_failure()
        return await self._run(OperationKind.HARVEST, lambda: self._vault.functions.harvest())

    async def mint_usdc(self, amount: DecimalAmount, recipient: str | None = None) -> PendingOperation:
        """Mint test stablecoin to ``recipient`` (the connected account by default)."""
        self.check_mint(amount).raise_for_failure()
        recipient = self.resolve_address(recipient)
        raw = amount.rescale(ASSET_DECIMALS).raw
        return await self._run(
            OperationKind.MINT,
            lambda: self._token.functions.mint(recipient, raw),
            gas=MINT_GAS_LIMIT,
        )

    async def simulate_yield(self, amount: DecimalAmount) -> PendingOperation:
        """Credit ``amount`` of yield to the vault through the yield adapter."""
        self.check_simulate_yield(amount).raise_for_failure()
        raw = amount.rescale(ASSET_DECIMALS).raw
        return await self._run(
            OperationKind.SIMULATE_YIELD,
            lambda: self._yield_adapter.functions.simulateYield(raw),
            gas=SIMULATE_YIELD_GAS_LIMIT,
        )
