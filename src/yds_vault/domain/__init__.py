"""Domain models for the vault client."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal, TypeVar, Union

from ..units import DecimalAmount

T = TypeVar("T")


class _Sentinel(Enum):
    NOT_YET_LOADED = "not_yet_loaded"

    def __repr__(self) -> str:
        return "NOT_YET_LOADED"

    def __bool__(self) -> bool:
        return False


NOT_YET_LOADED = _Sentinel.NOT_YET_LOADED
NotYetLoaded = Literal[_Sentinel.NOT_YET_LOADED]
Loadable = Union[T, NotYetLoaded]


class OperationKind(str, Enum):
    APPROVE = "approve"
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    REDEEM = "redeem"
    HARVEST = "harvest"
    MINT = "mint"
    SIMULATE_YIELD = "simulate_yield"


class LifecycleState(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    CONFIRMED = "confirmed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (LifecycleState.CONFIRMED, LifecycleState.FAILED)

    @property
    def is_in_flight(self) -> bool:
        return self in (
            LifecycleState.SUBMITTING,
            LifecycleState.AWAITING_CONFIRMATION,
        )


@dataclass(frozen=True)
class PendingOperation:
    """Snapshot of one operation kind's write lifecycle."""

    kind: OperationKind
    state: LifecycleState = LifecycleState.IDLE
    tx_hash: str | None = None
    error: Exception | None = None
    block_number: int | None = None

    @property
    def error_message(self) -> str | None:
        if self.error is None:
            return None
        return getattr(self.error, "message", None) or str(self.error)


class SharePriceSource(str, Enum):
    COMPUTED = "computed"
    DEFAULT_NO_SUPPLY = "default_no_supply"
    NOT_YET_LOADED = "not_yet_loaded"
    OUT_OF_RANGE = "out_of_range"


@dataclass(frozen=True)
class SharePrice:
    """Asset units per share, and whether that number was actually derived."""

    value: DecimalAmount
    source: SharePriceSource

    @property
    def is_default(self) -> bool:
        return self.source is not SharePriceSource.COMPUTED


@dataclass(frozen=True)
class VaultPosition:
    asset_balance: Loadable[DecimalAmount]
    share_balance: Loadable[DecimalAmount]
    allowance: Loadable[DecimalAmount]


@dataclass(frozen=True)
class VaultGlobalState:
    total_assets: Loadable[DecimalAmount]
    total_supply: Loadable[DecimalAmount]
    watermark: Loadable[DecimalAmount]


class NetworkStatus(str, Enum):
    CORRECT = "correct"
    WRONG = "wrong"
    SWITCHING = "switching"


@dataclass(frozen=True)
class NetworkState:
    current_chain_id: int | None
    target_chain_id: int
    is_switching: bool = False

    @property
    def is_correct_network(self) -> bool:
        return self.current_chain_id == self.target_chain_id

    @property
    def status(self) -> NetworkStatus:
        if self.is_switching:
            return NetworkStatus.SWITCHING
        if self.is_correct_network:
            return NetworkStatus.CORRECT
        return NetworkStatus.WRONG


class NodeStatus(str, Enum):
    CHECKING = "checking"
    RUNNING = "running"
    WRONG_CHAIN = "wrong_chain"
    UNREACHABLE = "unreachable"


__all__ = [
    "NOT_YET_LOADED",
    "Loadable",
    "LifecycleState",
    "NetworkState",
    "NetworkStatus",
    "NodeStatus",
    "NotYetLoaded",
    "OperationKind",
    "PendingOperation",
    "SharePrice",
    "SharePriceSource",
    "VaultGlobalState",
    "VaultPosition",
]
