from __future__ import annotations

from .profit import (
    DonationMetrics,
    RecipientDonation,
    compute_available_profit,
    compute_donation_metrics,
    split_profit,
    suggest_yield,
)
from .share_price import (
    DEFAULT_SHARE_PRICE,
    compute_share_price,
    preview_assets,
    preview_shares,
)

__all__ = [
    "DEFAULT_SHARE_PRICE",
    "DonationMetrics",
    "RecipientDonation",
    "compute_available_profit",
    "compute_donation_metrics",
    "compute_share_price",
    "preview_assets",
    "preview_shares",
    "split_profit",
    "suggest_yield",
]
