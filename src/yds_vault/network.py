"""Keeps the wallet on the target chain."""

from __future__ import annotations

from .constants import network_name
from .domain import NetworkState, NetworkStatus
from .exceptions import ChainSwitchRejected
from .logger import get_logger
from .scheduler import Scheduler, Subscription
from .wallet import BaseWallet

logger = get_logger(__name__)


class NetworkReconciler:
    """Detects a wallet/target chain mismatch and requests a switch.

    ``is_correct_network`` follows the latest chain-id event immediately. An
    automatic switch is scheduled ``switch_delay`` seconds after a mismatch
    is detected and is issued at most once per mismatched chain id: repeated
    events for the same chain, or a failed switch, do not re-issue it until
    the wallet reports a different chain.
    """

    def __init__(
        self,
        wallet: BaseWallet,
        scheduler: Scheduler,
        *,
        target_chain_id: int,
        switch_delay: float,
    ) -> None:
        self._wallet = wallet
        self._scheduler = scheduler
        self._switch_delay = switch_delay
        self._state = NetworkState(current_chain_id=None, target_chain_id=target_chain_id)
        self._pending_switch: Subscription | None = None
        self._attempted_for: int | None = None
        self.last_error: ChainSwitchRejected | None = None
        self._unsubscribe = wallet.on_chain_changed(self.on_chain_changed)

    @property
    def state(self) -> NetworkState:
        return self._state

    @property
    def status(self) -> NetworkStatus:
        return self._state.status

    @property
    def is_correct_network(self) -> bool:
        return self._state.is_correct_network

    @property
    def current_network_name(self) -> str:
        return network_name(self._state.current_chain_id)

    def _set(self, **changes: object) -> None:
        self._state = NetworkState(
            current_chain_id=changes.get("current_chain_id", self._state.current_chain_id),  # type: ignore[arg-type]
            target_chain_id=self._state.target_chain_id,
            is_switching=changes.get("is_switching", self._state.is_switching),  # type: ignore[arg-type]
        )

    def _cancel_pending(self) -> None:
        if self._pending_switch is not None:
            self._pending_switch.cancel()
            self._pending_switch = None

    async def on_connected(self) -> None:
        """Read the wallet's chain once a session connects."""
        self.on_chain_changed(await self._wallet.chain_id())

    def on_chain_changed(self, chain_id: int) -> None:
        changed = chain_id != self._state.current_chain_id
        self._set(current_chain_id=chain_id)

        if self._state.is_correct_network:
            self._cancel_pending()
            self._attempted_for = None
            self.last_error = None
            return

        if changed:
            # A new mismatch: the previous chain's timer and attempt no longer apply
            self._cancel_pending()
            self._attempted_for = None
            logger.warning(
                "Wallet on %s, expected %s",
                network_name(chain_id),
                network_name(self._state.target_chain_id),
            )

        if (
            self._pending_switch is not None
            or self._state.is_switching
            or self._attempted_for == chain_id
            or not self._wallet.is_connected
        ):
            return

        self._attempted_for = chain_id
        self._pending_switch = self._scheduler.call_later(
            self._switch_delay, self._auto_switch, name="auto-switch-network"
        )

    async def _auto_switch(self) -> None:
        self._pending_switch = None
        if self._state.is_correct_network:
            return
        await self._switch()

    async def _switch(self) -> bool:
        target = self._state.target_chain_id
        self._set(is_switching=True)
        logger.info("Requesting switch to %s", network_name(target))
        try:
            await self._wallet.switch_chain(target)
        except ChainSwitchRejected as e:
            self.last_error = e
            logger.error("Network switch rejected: %s", e.message)
            return False
        finally:
            self._set(is_switching=False)
        self.last_error = None
        return True

    async def switch_to_local(self) -> bool:
        """Manually request a switch to the target chain. Returns success."""
        self._cancel_pending()
        if self._state.is_switching:
            logger.info("Network switch already in progress")
            return False
        return await self._switch()

    def close(self) -> None:
        self._cancel_pending()
        self._unsubscribe()
