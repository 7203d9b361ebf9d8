"""Client-side pre-flight checks run before any write is submitted.

Each check returns a ``CheckResult`` so an action can be shown disabled with
an explanation instead of submitting a call that is certain to revert.
"""

from __future__ import annotations

from ..domain import NOT_YET_LOADED, Loadable, SharePrice
from ..exceptions import (
    InsufficientAllowance,
    InsufficientFunds,
    InvalidAmount,
    SubmissionRejected,
    VaultClientError,
)
from ..processors import preview_assets
from ..units import DecimalAmount, format_amount
from .base import PASSED, CheckResult


def _fail(error: VaultClientError) -> CheckResult:
    return CheckResult(passed=False, message=error.message, error=error)


def _not_loaded(what: str) -> CheckResult:
    return CheckResult(
        passed=False,
        message=f"{what} not loaded yet",
        retry_recommended=True,
    )


def check_connected(address: str | None) -> CheckResult:
    if address is None:
        return _fail(SubmissionRejected("No connected account"))
    return PASSED


def check_positive(amount: DecimalAmount, what: str = "Amount") -> CheckResult:
    if amount.is_zero:
        return _fail(
            InvalidAmount(f"{what} must be greater than zero", value=str(amount), scale=amount.scale)
        )
    return PASSED


def check_balance(
    amount: DecimalAmount,
    balance: Loadable[DecimalAmount],
    what: str = "Wallet balance",
) -> CheckResult:
    if balance is NOT_YET_LOADED:
        return _not_loaded(what)
    if balance < amount:
        return _fail(
            InsufficientFunds(
                f"{what} {format_amount(balance, 6)} is below requested {format_amount(amount, 6)}",
                required=amount.raw,
                available=balance.rescale(amount.scale).raw,
            )
        )
    return PASSED


def check_allowance(amount: DecimalAmount, allowance: Loadable[DecimalAmount]) -> CheckResult:
    if allowance is NOT_YET_LOADED:
        return _not_loaded("Allowance")
    if allowance < amount:
        return _fail(
            InsufficientAllowance(
                f"Vault allowance {format_amount(allowance, 6)} is below requested "
                f"{format_amount(amount, 6)}; approve first",
                required=amount.raw,
                available=allowance.rescale(amount.scale).raw,
            )
        )
    return PASSED


def check_withdraw(
    amount: DecimalAmount,
    share_balance: Loadable[DecimalAmount],
    share_price: SharePrice,
) -> CheckResult:
    """The requested asset amount must be covered by the position's value."""
    if share_balance is NOT_YET_LOADED:
        return _not_loaded("Vault shares")
    if share_balance.is_zero:
        return _fail(InsufficientFunds("No vault shares to withdraw", required=amount.raw, available=0))
    return check_balance(amount, preview_assets(share_balance, share_price), "Maximum withdrawal")


def check_harvest(profit: Loadable[DecimalAmount]) -> CheckResult:
    if profit is NOT_YET_LOADED:
        return _not_loaded("Vault state")
    if profit.is_zero:
        return _fail(
            InsufficientFunds("No profit available to harvest", required=1, available=0)
        )
    return PASSED


def first_failure(*results: CheckResult) -> CheckResult:
    """The first failed result, or ``PASSED``."""
    for result in results:
        if not result.passed:
            return result
    return PASSED
