from __future__ import annotations

from fractions import Fraction

from ..constants import ASSET_DECIMALS, PRICE_DECIMALS, SHARE_DECIMALS, SHARE_PRICE_CEILING
from ..domain import NOT_YET_LOADED, Loadable, SharePrice, SharePriceSource
from ..units import DecimalAmount

DEFAULT_SHARE_PRICE = DecimalAmount(10**PRICE_DECIMALS, PRICE_DECIMALS)


def _default(source: SharePriceSource) -> SharePrice:
    return SharePrice(value=DEFAULT_SHARE_PRICE, source=source)


def compute_share_price(
    total_assets: Loadable[DecimalAmount],
    total_supply: Loadable[DecimalAmount],
) -> SharePrice:
    """Derive asset units per share from the vault totals.

    The 1.0 placeholder is returned, tagged with why, when a total is not
    loaded yet, when no shares exist, or when the ratio exceeds
    ``SHARE_PRICE_CEILING``. Otherwise the ratio is truncated to
    ``PRICE_DECIMALS`` fractional digits.
    """
    if total_assets is NOT_YET_LOADED or total_supply is NOT_YET_LOADED:
        return _default(SharePriceSource.NOT_YET_LOADED)
    if total_supply.is_zero:
        return _default(SharePriceSource.DEFAULT_NO_SUPPLY)

    # Bring both sides to a common scale before dividing raw magnitudes
    common = max(total_assets.scale, total_supply.scale)
    assets_raw = total_assets.rescale(common).raw
    supply_raw = total_supply.rescale(common).raw

    price_raw = assets_raw * 10**PRICE_DECIMALS // supply_raw
    if price_raw > SHARE_PRICE_CEILING * 10**PRICE_DECIMALS:
        return _default(SharePriceSource.OUT_OF_RANGE)

    return SharePrice(
        value=DecimalAmount(price_raw, PRICE_DECIMALS),
        source=SharePriceSource.COMPUTED,
    )


def _usable_price(share_price: SharePrice) -> DecimalAmount:
    # A computed price of 0.0000 (dust assets against real supply) cannot be
    # divided by; previews fall back to the 1:1 placeholder instead.
    if share_price.value.is_zero:
        return DEFAULT_SHARE_PRICE
    return share_price.value


def preview_shares(asset_amount: DecimalAmount, share_price: SharePrice) -> DecimalAmount:
    """Shares obtained for (or needed to withdraw) ``asset_amount``.

    Divides by the displayed share price, which is itself truncated to four
    digits, then truncates to share precision. The result can therefore
    slightly exceed the exact share count for ``asset_amount``; callers that
    redeem cap it at the share balance.
    """
    price = _usable_price(share_price)
    value = Fraction(asset_amount.raw, 10**asset_amount.scale) / Fraction(
        price.raw, 10**price.scale
    )
    return DecimalAmount(int(value * 10**SHARE_DECIMALS), SHARE_DECIMALS)


def preview_assets(share_amount: DecimalAmount, share_price: SharePrice) -> DecimalAmount:
    """Asset value of ``share_amount`` at ``share_price``, truncated to asset precision."""
    price = share_price.value
    value = Fraction(share_amount.raw, 10**share_amount.scale) * Fraction(
        price.raw, 10**price.scale
    )
    return DecimalAmount(int(value * 10**ASSET_DECIMALS), ASSET_DECIMALS)
