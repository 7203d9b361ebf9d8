"""Session container wiring the vault client's components together."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from eth_typing import URI
from web3 import AsyncWeb3

from .checks.node_probe import NodeProbe
from .domain import (
    NOT_YET_LOADED,
    Loadable,
    NetworkState,
    NodeStatus,
    OperationKind,
    PendingOperation,
    SharePrice,
    VaultGlobalState,
    VaultPosition,
)
from .exceptions import VaultClientError
from .logger import get_logger
from .network import NetworkReconciler
from .operations import VaultOperations
from .orchestrator import ApprovalDepositOrchestrator, DepositFlowSnapshot, DepositFlowState
from .processors import DonationMetrics, compute_donation_metrics, preview_assets, suggest_yield
from .queries import VaultQueries, track_vault_queries
from .reader import ContractReader
from .reconciliation import ReconciliationScheduler
from .scheduler import RetryPolicy, Scheduler
from .settings import VaultSettings
from .transactions import build_trackers
from .units import DecimalAmount
from .wallet import BaseWallet, build_wallet

logger = get_logger(__name__)


@dataclass(frozen=True)
class VaultSnapshot:
    """Everything a presentation layer needs to render one frame."""

    account: str | None
    position: VaultPosition
    vault: VaultGlobalState
    share_price: SharePrice
    position_value: Loadable[DecimalAmount]
    available_profit: Loadable[DecimalAmount]
    donations: DonationMetrics
    operations: Mapping[OperationKind, PendingOperation]
    deposit_flow: DepositFlowSnapshot
    network: NetworkState
    node_status: NodeStatus


class VaultSession:
    """Owns the reader, trackers, orchestrators and probe of one client session.

    Use as an async context manager. Entering performs a first read of every
    query and, with ``poll=True``, starts interval polling and the node
    probe. Leaving cancels every timer the session created, on every exit
    path.

    Example:
        async with VaultSession(settings) as session:
            await session.deposit(asset_amount(100_000_000))
            print(session.snapshot().position)
    """

    def __init__(
        self,
        settings: VaultSettings,
        *,
        w3: AsyncWeb3 | None = None,
        wallet: BaseWallet | None = None,
        poll: bool = True,
    ) -> None:
        self.settings = settings
        self._poll = poll
        self.w3 = w3 or AsyncWeb3(
            AsyncWeb3.AsyncHTTPProvider(
                URI(settings.rpc_url),
                request_kwargs={"timeout": settings.rpc_timeout},
            )
        )
        self.scheduler = Scheduler()
        self.book = settings.address_book

        if wallet is None:
            private_key = settings.private_key.get_secret_value() if settings.private_key else None
            wallet = build_wallet(
                self.w3, private_key=private_key, address=settings.account_address
            )
        self.wallet = wallet

        retry_policy = RetryPolicy(
            max_tries=settings.rpc_max_tries,
            interval=settings.rpc_retry_interval,
        )
        self.reader = ContractReader(
            self.w3,
            self.scheduler,
            poll_interval=settings.poll_interval,
            retry_policy=retry_policy,
        )
        self.queries: VaultQueries = track_vault_queries(self.reader, self.book, wallet.address)
        self.trackers = build_trackers(
            self.w3,
            self.scheduler,
            receipt_timeout=settings.receipt_timeout,
            poll_latency=settings.receipt_poll_latency,
            grace_period=settings.terminal_grace_period,
        )
        self.reconciler = ReconciliationScheduler(
            self.reader, self.scheduler, settings.reconcile_offsets
        )
        self.operations = VaultOperations(
            wallet=wallet,
            reader=self.reader,
            queries=self.queries,
            book=self.book,
            trackers=self.trackers,
            reconciler=self.reconciler,
        )
        self.deposit_flow = ApprovalDepositOrchestrator(
            self.operations,
            self.scheduler,
            settle_delay=settings.approve_settle_delay,
            clear_delay=settings.deposit_clear_delay,
        )
        self.network = NetworkReconciler(
            wallet,
            self.scheduler,
            target_chain_id=settings.target_chain_id,
            switch_delay=settings.network_switch_delay,
        )
        self.probe = NodeProbe(
            self.scheduler,
            rpc_url=settings.rpc_url,
            expected_chain_id=settings.target_chain_id,
            interval=settings.probe_interval,
            failure_threshold=settings.probe_failure_threshold,
            timeout=settings.rpc_timeout,
            retry_policy=retry_policy,
        )
        self._opened = False

    # --- lifecycle ----------------------------------------------------------

    async def open(self) -> "VaultSession":
        if self._opened:
            return self
        self._opened = True
        logger.debug("Opening session against %s", self.settings.rpc_url)

        await self.reader.refetch()
        if self._poll:
            self.reader.subscribe()
            self.probe.subscribe()

        if self.wallet.is_connected:
            try:
                await self.network.on_connected()
            except Exception as e:
                logger.warning("Could not read wallet chain id: %s", e)
        return self

    async def close(self) -> None:
        """Cancel every timer and release the provider. Safe to call twice."""
        self.deposit_flow.cancel()
        self.network.close()
        await self.scheduler.close()
        provider = self.w3.provider
        disconnect = getattr(provider, "disconnect", None)
        if disconnect is not None:
            try:
                await disconnect()
            except Exception as e:
                logger.debug("Provider disconnect failed: %s", e)
        logger.debug("Session closed")

    async def __aenter__(self) -> "VaultSession":
        try:
            return await self.open()
        except BaseException:
            await self.close()
            raise

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # --- state --------------------------------------------------------------

    def _value(self, key_name: str) -> Loadable[DecimalAmount]:
        return self.operations.value(key_name)

    @property
    def position_value(self) -> Loadable[DecimalAmount]:
        """Asset value of the account's shares at the current share price."""
        shares = self._value("share_balance")
        if shares is NOT_YET_LOADED:
            return NOT_YET_LOADED
        return preview_assets(shares, self.operations.share_price)

    def snapshot(self) -> VaultSnapshot:
        position = VaultPosition(
            asset_balance=self._value("asset_balance"),
            share_balance=self._value("share_balance"),
            allowance=self._value("allowance"),
        )
        vault = VaultGlobalState(
            total_assets=self._value("total_assets"),
            total_supply=self._value("total_supply"),
            watermark=self._value("watermark"),
        )
        donations = compute_donation_metrics(
            vault.total_assets,
            vault.watermark,
            {
                address: self.reader.current_value(key)
                for address, key in self.queries.recipient_balances.items()
            },
        )
        return VaultSnapshot(
            account=self.wallet.address,
            position=position,
            vault=vault,
            share_price=self.operations.share_price,
            position_value=self.position_value,
            available_profit=self.operations.available_profit,
            donations=donations,
            operations=MappingProxyType(
                {kind: tracker.snapshot for kind, tracker in self.trackers.items()}
            ),
            deposit_flow=self.deposit_flow.snapshot,
            network=self.network.state,
            node_status=self.probe.status,
        )

    # --- actions ------------------------------------------------------------

    async def refresh(self) -> None:
        """Re-read every tracked query now."""
        await self.reader.refetch()

    async def approve(self, amount: DecimalAmount) -> PendingOperation:
        return await self.operations.approve(amount)

    async def deposit(self, amount: DecimalAmount, receiver: str | None = None) -> DepositFlowState:
        """Approve if needed, then deposit. Returns the flow's terminal state."""
        return await self.deposit_flow.start(amount, receiver)

    async def withdraw(self, amount: DecimalAmount, *, via_redeem: bool = False) -> PendingOperation:
        if via_redeem:
            return await self.operations.withdraw_via_redeem(amount)
        return await self.operations.withdraw(amount)

    async def redeem(self, shares: DecimalAmount) -> PendingOperation:
        return await self.operations.redeem(shares)

    async def harvest(self) -> PendingOperation:
        return await self.operations.harvest()

    async def mint_usdc(self, amount: DecimalAmount) -> PendingOperation:
        return await self.operations.mint_usdc(amount)

    def suggested_yield(self, base: DecimalAmount | None = None) -> DecimalAmount:
        """Yield to simulate: 10% of ``base``, or of the position's value."""
        if base is None:
            value = self.position_value
            if value is NOT_YET_LOADED or value.is_zero:
                raise VaultClientError(
                    "No position to base a yield amount on; pass an explicit amount"
                )
            base = value
        return suggest_yield(base)

    async def simulate_yield(self, amount: DecimalAmount | None = None) -> PendingOperation:
        return await self.operations.simulate_yield(
            amount if amount is not None else self.suggested_yield()
        )

    async def switch_to_local(self) -> bool:
        return await self.network.switch_to_local()
