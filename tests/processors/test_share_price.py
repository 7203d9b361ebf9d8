from __future__ import annotations

from yds_vault.domain import NOT_YET_LOADED, SharePriceSource
from yds_vault.processors import (
    DEFAULT_SHARE_PRICE,
    compute_share_price,
    preview_assets,
    preview_shares,
)
from yds_vault.units import DecimalAmount, asset_amount, share_amount


def test_price_is_one_when_no_shares_exist():
    price = compute_share_price(asset_amount(0), share_amount(0))
    assert price.value == DEFAULT_SHARE_PRICE
    assert price.source is SharePriceSource.DEFAULT_NO_SUPPLY
    assert price.is_default


def test_price_is_placeholder_until_both_totals_load():
    price = compute_share_price(NOT_YET_LOADED, share_amount(10**18))
    assert price.value == DEFAULT_SHARE_PRICE
    assert price.source is SharePriceSource.NOT_YET_LOADED


def test_price_truncates_to_four_digits():
    # 1050 USDC backing 1000 shares
    price = compute_share_price(asset_amount(1_050 * 10**6), share_amount(1_000 * 10**18))
    assert price.value == DecimalAmount(10_500, 4)
    assert price.source is SharePriceSource.COMPUTED

    price = compute_share_price(asset_amount(2 * 10**6), share_amount(3 * 10**18))
    assert price.value == DecimalAmount(6_666, 4)


def test_price_above_ceiling_falls_back_to_one():
    price = compute_share_price(asset_amount(10**13 * 10**6), share_amount(1))
    assert price.value == DEFAULT_SHARE_PRICE
    assert price.source is SharePriceSource.OUT_OF_RANGE


def test_preview_shares_at_one_to_one():
    price = compute_share_price(asset_amount(0), share_amount(0))
    assert preview_shares(asset_amount(100 * 10**6), price) == share_amount(100 * 10**18)


def test_preview_shares_truncates():
    price = compute_share_price(asset_amount(3 * 10**6), share_amount(2 * 10**18))
    # 1 USDC at 1.5 per share
    assert preview_shares(asset_amount(10**6), price) == share_amount(666_666_666_666_666_666)


def test_preview_assets_uses_share_price():
    price = compute_share_price(asset_amount(1_050 * 10**6), share_amount(1_000 * 10**18))
    assert preview_assets(share_amount(100 * 10**18), price) == asset_amount(105 * 10**6)
