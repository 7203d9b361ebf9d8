from __future__ import annotations

from dataclasses import dataclass, field

from ..constants import ASSET_DECIMALS, DONATION_RECIPIENTS, SIMULATED_YIELD_BPS, DonationRecipient
from ..domain import NOT_YET_LOADED, Loadable
from ..units import DecimalAmount, asset_amount

BPS_DENOMINATOR = 10_000


def compute_available_profit(
    total_assets: DecimalAmount, watermark: DecimalAmount
) -> DecimalAmount:
    """Harvestable profit: ``max(0, total_assets - watermark)`` in asset units."""
    assets = total_assets.rescale(ASSET_DECIMALS)
    mark = watermark.rescale(ASSET_DECIMALS)
    if assets <= mark:
        return asset_amount(0)
    return assets - mark


@dataclass(frozen=True)
class RecipientDonation:
    name: str
    address: str
    bps: int
    received: DecimalAmount

    @property
    def allocation(self) -> str:
        return f"{self.bps * 100 // BPS_DENOMINATOR}%"


@dataclass(frozen=True)
class DonationMetrics:
    """Summary of what has been donated and what the next harvest would route."""

    total_donated: DecimalAmount
    current_profit: DecimalAmount
    recipients: list[RecipientDonation] = field(default_factory=list)


def _or_zero(value: Loadable[DecimalAmount]) -> DecimalAmount:
    if value is NOT_YET_LOADED:
        return asset_amount(0)
    return value.rescale(ASSET_DECIMALS)


def compute_donation_metrics(
    total_assets: Loadable[DecimalAmount],
    watermark: Loadable[DecimalAmount],
    recipient_balances: dict[str, Loadable[DecimalAmount]],
    recipients: list[DonationRecipient] | None = None,
) -> DonationMetrics:
    """Aggregate recipient balances and current profit for display.

    Recipient token balances stand in for "total donated". Values that are
    not loaded yet count as zero here; this is a summary, not a pre-flight.
    """
    recipients = DONATION_RECIPIENTS if recipients is None else recipients

    donations = [
        RecipientDonation(
            name=recipient["name"],
            address=recipient["address"],
            bps=recipient["bps"],
            received=_or_zero(
                recipient_balances.get(recipient["address"], NOT_YET_LOADED)
            ),
        )
        for recipient in recipients
    ]

    total = asset_amount(sum(d.received.raw for d in donations))
    profit = compute_available_profit(_or_zero(total_assets), _or_zero(watermark))

    return DonationMetrics(
        total_donated=total,
        current_profit=profit,
        recipients=donations,
    )


def split_profit(
    profit: DecimalAmount,
    recipients: list[DonationRecipient] | None = None,
) -> list[tuple[DonationRecipient, DecimalAmount]]:
    """Preview how ``profit`` would be routed by basis points (truncated)."""
    recipients = DONATION_RECIPIENTS if recipients is None else recipients
    return [
        (
            recipient,
            DecimalAmount(profit.raw * recipient["bps"] // BPS_DENOMINATOR, profit.scale),
        )
        for recipient in recipients
    ]


def suggest_yield(base_amount: DecimalAmount) -> DecimalAmount:
    """Yield to simulate for a position: 10% of ``base_amount`` in asset units."""
    base = base_amount.rescale(ASSET_DECIMALS)
    return asset_amount(base.raw * SIMULATED_YIELD_BPS // BPS_DENOMINATOR)
