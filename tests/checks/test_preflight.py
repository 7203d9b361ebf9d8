from __future__ import annotations

from yds_vault.checks.preflight import (
    check_allowance,
    check_balance,
    check_connected,
    check_harvest,
    check_positive,
    check_withdraw,
    first_failure,
)
from yds_vault.domain import NOT_YET_LOADED
from yds_vault.exceptions import InsufficientAllowance, InsufficientFunds, InvalidAmount
from yds_vault.processors import compute_share_price
from yds_vault.units import asset_amount, share_amount


def test_not_loaded_values_recommend_retry():
    result = check_balance(asset_amount(1), NOT_YET_LOADED)
    assert not result.passed
    assert result.retry_recommended
    assert result.error is None


def test_balance_and_allowance_errors():
    balance = check_balance(asset_amount(10), asset_amount(5))
    assert isinstance(balance.error, InsufficientFunds)
    assert balance.error.required == 10
    assert balance.error.available == 5

    allowance = check_allowance(asset_amount(10), asset_amount(5))
    assert isinstance(allowance.error, InsufficientAllowance)
    assert "approve first" in allowance.message


def test_positive_and_connected():
    assert isinstance(check_positive(asset_amount(0)).error, InvalidAmount)
    assert check_positive(asset_amount(1)).passed
    assert not check_connected(None).passed


def test_withdraw_bounded_by_share_value():
    price = compute_share_price(asset_amount(2_000), share_amount(1_000 * 10**12))
    assert check_withdraw(asset_amount(2_000), share_amount(1_000 * 10**12), price).passed
    assert not check_withdraw(asset_amount(2_001), share_amount(1_000 * 10**12), price).passed
    assert not check_withdraw(asset_amount(1), share_amount(0), price).passed


def test_harvest_needs_profit():
    assert not check_harvest(asset_amount(0)).passed
    assert check_harvest(NOT_YET_LOADED).retry_recommended
    assert check_harvest(asset_amount(1)).passed


def test_first_failure_returns_first_failed():
    failed = check_connected(None)
    assert first_failure(check_positive(asset_amount(1)), failed, check_positive(asset_amount(0))) is failed
    assert first_failure(check_positive(asset_amount(1))).passed
