"""Approve-then-deposit as a single user action."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum

from .checks.base import CheckResult
from .domain import NOT_YET_LOADED, LifecycleState, OperationKind, PendingOperation
from .exceptions import VaultClientError
from .logger import get_logger
from .operations import VaultOperations
from .scheduler import Scheduler, Subscription
from .units import DecimalAmount

logger = get_logger(__name__)


class DepositFlowState(str, Enum):
    READY = "ready"
    APPROVE_SUBMITTED = "approve_submitted"
    APPROVE_CONFIRMED = "approve_confirmed"
    DEPOSIT_SUBMITTED = "deposit_submitted"
    DEPOSIT_CONFIRMED = "deposit_confirmed"
    FAILED = "failed"


_BUSY_STATES = frozenset(
    {
        DepositFlowState.APPROVE_SUBMITTED,
        DepositFlowState.APPROVE_CONFIRMED,
        DepositFlowState.DEPOSIT_SUBMITTED,
    }
)


@dataclass(frozen=True)
class DepositFlowSnapshot:
    state: DepositFlowState
    amount: DecimalAmount | None
    receiver: str | None
    error: Exception | None


class ApprovalDepositOrchestrator:
    """State machine sequencing ``approve`` and ``deposit``.

    ``READY -> APPROVE_SUBMITTED -> APPROVE_CONFIRMED -> DEPOSIT_SUBMITTED ->
    DEPOSIT_CONFIRMED``, with ``FAILED`` reachable from every submitted
    state. When the allowance already covers the amount the flow goes from
    ``READY`` straight to ``DEPOSIT_SUBMITTED``.

    Transitions happen only in this class. The deposit that follows an
    approval is triggered at most once per attempt, after ``settle_delay``
    seconds, no matter how many confirmation events arrive.
    """

    def __init__(
        self,
        operations: VaultOperations,
        scheduler: Scheduler,
        *,
        settle_delay: float,
        clear_delay: float,
    ) -> None:
        self._operations = operations
        self._scheduler = scheduler
        self._settle_delay = settle_delay
        self._clear_delay = clear_delay

        self.state = DepositFlowState.READY
        self.amount: DecimalAmount | None = None
        self.receiver: str | None = None
        self.error: Exception | None = None

        self._deposit_triggered = False
        self._done: asyncio.Future[DepositFlowState] | None = None
        self._pending_deposit: Subscription | None = None

        operations.trackers[OperationKind.APPROVE].add_listener(self._on_approve_update)

    @property
    def snapshot(self) -> DepositFlowSnapshot:
        return DepositFlowSnapshot(
            state=self.state,
            amount=self.amount,
            receiver=self.receiver,
            error=self.error,
        )

    def is_busy(self) -> bool:
        return (
            self.state in _BUSY_STATES
            or self._operations.is_busy(OperationKind.APPROVE)
            or self._operations.is_busy(OperationKind.DEPOSIT)
        )

    def needs_approval(self, amount: DecimalAmount) -> bool:
        """True unless the loaded allowance covers ``amount``."""
        allowance = self._operations.value("allowance")
        return allowance is NOT_YET_LOADED or allowance < amount

    def preflight(self, amount: DecimalAmount) -> CheckResult:
        return self._operations.check_deposit(amount, require_allowance=False)

    def _transition(self, state: DepositFlowState) -> None:
        logger.debug("Deposit flow %s -> %s", self.state.value, state.value)
        self.state = state

    def _settle(self, state: DepositFlowState) -> None:
        if self._done is not None and not self._done.done():
            self._done.set_result(state)

    def _fail(self, error: Exception | None) -> None:
        self.error = error
        self._transition(DepositFlowState.FAILED)
        logger.error("Deposit flow failed: %s", error)
        self._settle(DepositFlowState.FAILED)

    async def start(self, amount: DecimalAmount, receiver: str | None = None) -> DepositFlowState:
        """Run approve (if needed) and deposit for ``amount``.

        Returns the flow's terminal state, or the current state without
        submitting anything when a previous attempt is still in flight.

        Raises:
            VaultClientError: If the pre-flight check fails or the receiver is
                malformed; nothing is submitted.
        """
        if self.is_busy():
            logger.warning("Deposit flow already in progress (%s); ignoring trigger", self.state.value)
            return self.state

        self.preflight(amount).raise_for_failure()
        receiver = self._operations.resolve_address(receiver)

        # Everything up to the first await runs atomically on the event loop,
        # so a second trigger sees the busy state set here.
        self.amount = amount
        self.receiver = receiver
        self.error = None
        self._deposit_triggered = False
        self._done = asyncio.get_running_loop().create_future()

        if self.needs_approval(amount):
            logger.info("Allowance below %s; approving before deposit", amount)
            self._transition(DepositFlowState.APPROVE_SUBMITTED)
            try:
                result = await self._operations.approve(amount)
            except Exception as e:
                self._fail(e)
                return self.state
            if result.state is LifecycleState.FAILED:
                self._fail(result.error)
                return self.state
        else:
            self._deposit_triggered = True
            await self._submit_deposit()

        return await self._done

    def _on_approve_update(self, operation: PendingOperation) -> None:
        if operation.state is LifecycleState.CONFIRMED:
            self.handle_approve_confirmed()

    def handle_approve_confirmed(self) -> None:
        """React to an approval confirmation by scheduling the deposit once."""
        if self.state not in (
            DepositFlowState.APPROVE_SUBMITTED,
            DepositFlowState.APPROVE_CONFIRMED,
        ):
            logger.debug("Approval confirmed outside a deposit flow (%s)", self.state.value)
            return
        if self._deposit_triggered:
            logger.debug("Deposit already triggered for this attempt")
            return

        self._deposit_triggered = True
        self._transition(DepositFlowState.APPROVE_CONFIRMED)
        logger.info("Approval confirmed; depositing in %.1fs", self._settle_delay)
        self._pending_deposit = self._scheduler.call_later(
            self._settle_delay, self._submit_deposit, name="auto-deposit"
        )

    async def _submit_deposit(self) -> None:
        self._pending_deposit = None
        if self.amount is None:
            self._fail(VaultClientError("No deposit amount"))
            return

        self._transition(DepositFlowState.DEPOSIT_SUBMITTED)
        try:
            # The approval just confirmed; the cached allowance may still be stale.
            result = await self._operations.deposit(
                self.amount, self.receiver, require_allowance=False
            )
        except Exception as e:
            self._fail(e)
            return

        if self.state is not DepositFlowState.DEPOSIT_SUBMITTED:
            logger.debug("Deposit finished after the flow was cancelled")
            return
        if result.state is not LifecycleState.CONFIRMED:
            self._fail(result.error)
            return

        self._transition(DepositFlowState.DEPOSIT_CONFIRMED)
        self._scheduler.call_later(self._clear_delay, self._clear, name="deposit-clear")
        self._settle(DepositFlowState.DEPOSIT_CONFIRMED)

    def _clear(self) -> None:
        if self.state is DepositFlowState.DEPOSIT_CONFIRMED:
            self.amount = None
            self.receiver = None
            self._deposit_triggered = False
            self._transition(DepositFlowState.READY)

    def cancel(self) -> None:
        """Abandon a flow whose timers are being torn down."""
        if self._pending_deposit is not None:
            self._pending_deposit.cancel()
            self._pending_deposit = None
        if self.state in _BUSY_STATES:
            self._fail(VaultClientError("Deposit flow cancelled"))
