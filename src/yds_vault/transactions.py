"""Write-call lifecycle tracking, one tracker per operation kind."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from hexbytes import HexBytes
from web3 import AsyncWeb3
from web3.exceptions import ContractLogicError, TimeExhausted

from .domain import LifecycleState, OperationKind, PendingOperation
from .exceptions import OperationInFlightError, SubmissionRejected, TransactionFailed
from .logger import get_logger
from .scheduler import Scheduler, Subscription

logger = get_logger(__name__)

SendFn = Callable[[], Awaitable[Any]]
Listener = Callable[[PendingOperation], None]


def _to_hex(tx_hash: Any) -> str:
    if isinstance(tx_hash, str):
        return tx_hash if tx_hash.startswith("0x") else f"0x{tx_hash}"
    return HexBytes(tx_hash).to_0x_hex()


def _receipt_field(receipt: Any, name: str) -> Any:
    if isinstance(receipt, dict):
        return receipt.get(name)
    return getattr(receipt, name, None)


class TransactionTracker:
    """Lifecycle of a single write slot.

    ``IDLE -> SUBMITTING -> AWAITING_CONFIRMATION -> CONFIRMED`` or
    ``... -> FAILED``. Only one submission may be in flight; a second
    ``submit`` while busy raises ``OperationInFlightError``. Terminal states
    stay observable for ``grace_period`` seconds before resetting to idle.
    """

    def __init__(
        self,
        kind: OperationKind,
        w3: AsyncWeb3,
        scheduler: Scheduler,
        *,
        receipt_timeout: float,
        poll_latency: float,
        grace_period: float,
    ) -> None:
        self.kind = kind
        self.w3 = w3
        self._scheduler = scheduler
        self._receipt_timeout = receipt_timeout
        self._poll_latency = poll_latency
        self._grace_period = grace_period
        self._snapshot = PendingOperation(kind=kind)
        self._listeners: list[Listener] = []
        self._reset_timer: Subscription | None = None

    @property
    def snapshot(self) -> PendingOperation:
        return self._snapshot

    @property
    def state(self) -> LifecycleState:
        return self._snapshot.state

    @property
    def is_busy(self) -> bool:
        return self._snapshot.state.is_in_flight

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with every new snapshot. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _transition(self, state: LifecycleState, **changes: Any) -> None:
        self._snapshot = PendingOperation(
            kind=self.kind,
            state=state,
            tx_hash=changes.get("tx_hash", self._snapshot.tx_hash),
            error=changes.get("error"),
            block_number=changes.get("block_number"),
        )
        logger.debug("%s -> %s", self.kind.value, state.value)
        for listener in list(self._listeners):
            try:
                listener(self._snapshot)
            except Exception:
                logger.exception("Listener for %s raised", self.kind.value)

    def _finish(self, state: LifecycleState, **changes: Any) -> PendingOperation:
        self._transition(state, **changes)
        if not self._scheduler.closed:
            self._reset_timer = self._scheduler.call_later(
                self._grace_period, self.reset, name=f"{self.kind.value}-reset"
            )
        return self._snapshot

    def reset(self) -> None:
        """Return a terminal tracker to idle. In-flight trackers are left alone."""
        if self._reset_timer is not None:
            self._reset_timer.cancel()
            self._reset_timer = None
        if self._snapshot.state.is_terminal:
            self._transition(LifecycleState.IDLE, tx_hash=None)

    async def submit(self, send: SendFn) -> PendingOperation:
        """Issue a write through ``send`` and wait for its receipt.

        Args:
            send: Coroutine function that submits the transaction and returns
                its hash. Raising means the signer rejected it.

        Returns:
            The terminal snapshot. Submission and confirmation failures are
            reported through the snapshot's ``error``, never raised.

        Raises:
            OperationInFlightError: If this kind already has a pending submission.
        """
        if self.is_busy:
            raise OperationInFlightError(self.kind.value)

        if self._reset_timer is not None:
            self._reset_timer.cancel()
            self._reset_timer = None
        self._transition(LifecycleState.SUBMITTING, tx_hash=None)

        try:
            tx_hash = await send()
        except asyncio.CancelledError:
            self._finish(
                LifecycleState.FAILED,
                error=SubmissionRejected("Submission cancelled", action=self.kind.value),
            )
            raise
        except Exception as e:
            error = (
                e
                if isinstance(e, SubmissionRejected)
                else SubmissionRejected(
                    f"{self.kind.value} submission rejected: {e}",
                    action=self.kind.value,
                    details={"error": str(e)},
                )
            )
            logger.warning("Submission of %s rejected: %s", self.kind.value, error.message)
            return self._finish(LifecycleState.FAILED, error=error)

        tx_hex = _to_hex(tx_hash)
        logger.info("Transaction sent for action=%s hash=%s", self.kind.value, tx_hex)
        self._transition(LifecycleState.AWAITING_CONFIRMATION, tx_hash=tx_hex)

        try:
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hex,
                timeout=self._receipt_timeout,
                poll_latency=self._poll_latency,
            )
        except asyncio.CancelledError:
            self._finish(
                LifecycleState.FAILED,
                error=TransactionFailed("Confirmation wait cancelled", tx_hash=tx_hex),
            )
            raise
        except TimeExhausted:
            logger.error(
                "Transaction %s for %s not mined within %.0fs",
                tx_hex,
                self.kind.value,
                self._receipt_timeout,
            )
            return self._finish(
                LifecycleState.FAILED,
                error=TransactionFailed(
                    f"Transaction not mined within {self._receipt_timeout:.0f}s; it may have been dropped",
                    tx_hash=tx_hex,
                ),
            )
        except Exception as e:
            logger.error("Could not confirm %s transaction %s: %s", self.kind.value, tx_hex, e)
            return self._finish(
                LifecycleState.FAILED,
                error=TransactionFailed(
                    f"Could not confirm transaction: {e}", tx_hash=tx_hex
                ),
            )

        block_number = _receipt_field(receipt, "blockNumber")
        if _receipt_field(receipt, "status") == 0:
            reason = await self._revert_reason(tx_hex, block_number)
            logger.error(
                "Transaction reverted for action=%s hash=%s reason=%s",
                self.kind.value,
                tx_hex,
                reason,
            )
            return self._finish(
                LifecycleState.FAILED,
                block_number=block_number,
                error=TransactionFailed(
                    f"Transaction reverted{f': {reason}' if reason else ''}",
                    tx_hash=tx_hex,
                    revert_reason=reason,
                ),
            )

        logger.info(
            "Transaction confirmed for action=%s hash=%s block=%s",
            self.kind.value,
            tx_hex,
            block_number,
        )
        return self._finish(LifecycleState.CONFIRMED, block_number=block_number)

    async def _revert_reason(self, tx_hex: str, block_number: int | None) -> str | None:
        """Replay a reverted transaction as a call to recover its reason."""
        try:
            tx = await self.w3.eth.get_transaction(tx_hex)
            replay = {
                "from": tx["from"],
                "to": tx["to"],
                "data": tx["input"],
                "value": tx.get("value", 0),
            }
            await self.w3.eth.call(replay, block_identifier=block_number or "latest")
        except ContractLogicError as e:
            return e.message or str(e)
        except Exception as e:
            logger.debug("Revert reason unavailable for %s: %s", tx_hex, e)
        return None


def build_trackers(
    w3: AsyncWeb3,
    scheduler: Scheduler,
    *,
    receipt_timeout: float,
    poll_latency: float,
    grace_period: float,
) -> dict[OperationKind, TransactionTracker]:
    """One independent tracker per operation kind."""
    return {
        kind: TransactionTracker(
            kind,
            w3,
            scheduler,
            receipt_timeout=receipt_timeout,
            poll_latency=poll_latency,
            grace_period=grace_period,
        )
        for kind in OperationKind
    }
