"""Exception hierarchy for the vault client."""

from typing import Any


class VaultClientError(Exception):
    """Base exception for all vault client errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidAmount(VaultClientError):
    """Raised when a user supplied amount is malformed, negative or over-precise."""

    def __init__(
        self,
        message: str,
        value: Any | None = None,
        scale: int | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.value = value
        self.scale = scale


class InvalidAddress(VaultClientError):
    """Raised when a user supplied address is not a valid hex address."""

    def __init__(self, address: Any, details: dict | None = None):
        super().__init__(f"Invalid address {address!r}", details)
        self.address = address


class InsufficientFunds(VaultClientError):
    """Raised before submission when a balance cannot cover the request."""

    def __init__(
        self,
        message: str,
        required: int | None = None,
        available: int | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.required = required
        self.available = available


class InsufficientAllowance(InsufficientFunds):
    """Raised before submission when the vault allowance cannot cover the request."""


class SubmissionRejected(VaultClientError):
    """The signer declined the transaction or the call could not be built."""

    def __init__(
        self,
        message: str,
        action: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.action = action


class TransactionFailed(VaultClientError):
    """A submitted transaction reverted or was dropped."""

    def __init__(
        self,
        message: str,
        tx_hash: str | None = None,
        revert_reason: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.tx_hash = tx_hash
        self.revert_reason = revert_reason


class RpcUnreachable(VaultClientError):
    """The RPC endpoint could not be reached or answered unexpectedly."""

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.endpoint = endpoint


class OperationInFlightError(VaultClientError):
    """A submission for this operation kind is already pending."""

    def __init__(self, kind: str):
        super().__init__(f"A '{kind}' operation is already in flight")
        self.kind = kind


class ChainSwitchRejected(VaultClientError):
    """The wallet refused to switch chains or does not know the target chain."""

    def __init__(
        self,
        message: str,
        chain_id: int | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.chain_id = chain_id
