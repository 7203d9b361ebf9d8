from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal
from fractions import Fraction

from .constants import ASSET_DECIMALS, SHARE_DECIMALS
from .exceptions import InvalidAmount

_USER_AMOUNT_RE = re.compile(r"^(?:(\d+)(?:\.(\d*))?|\.(\d+))$")

MAX_UINT256 = 2**256 - 1
MAX_UINT256_DIGITS = len(str(MAX_UINT256))


@dataclass(frozen=True, eq=False)
class DecimalAmount:
    """Non-negative fixed-point amount: ``raw`` units of ``10**-scale``.

    Equality and ordering compare the represented value, so amounts at
    different scales are rescaled (losslessly, upwards) before comparison.
    Addition and subtraction require equal scales.
    """

    raw: int
    scale: int

    def __post_init__(self) -> None:
        if self.scale < 0:
            raise ValueError(f"scale must be non-negative, got {self.scale}")
        if self.raw < 0:
            raise ValueError(f"amount must be non-negative, got {self.raw}")

    def rescale(self, target_scale: int) -> DecimalAmount:
        return rescale(self, target_scale)

    def to_decimal(self) -> Decimal:
        return to_display_number(self)

    @property
    def is_zero(self) -> bool:
        return self.raw == 0

    def _aligned(self, other: DecimalAmount) -> tuple[int, int]:
        if not isinstance(other, DecimalAmount):
            raise TypeError(f"cannot compare DecimalAmount with {type(other)!r}")
        scale = max(self.scale, other.scale)
        return rescale(self, scale).raw, rescale(other, scale).raw

    def _same_scale(self, other: DecimalAmount) -> None:
        if not isinstance(other, DecimalAmount):
            raise TypeError(f"unsupported operand {type(other)!r}")
        if other.scale != self.scale:
            raise ValueError(
                f"scale mismatch ({self.scale} vs {other.scale}); rescale first"
            )

    def __add__(self, other: DecimalAmount) -> DecimalAmount:
        self._same_scale(other)
        return DecimalAmount(self.raw + other.raw, self.scale)

    def __sub__(self, other: DecimalAmount) -> DecimalAmount:
        self._same_scale(other)
        return DecimalAmount(self.raw - other.raw, self.scale)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DecimalAmount):
            return NotImplemented
        left, right = self._aligned(other)
        return left == right

    def __hash__(self) -> int:
        return hash(Fraction(self.raw, 10**self.scale))

    def __lt__(self, other: DecimalAmount) -> bool:
        left, right = self._aligned(other)
        return left < right

    def __le__(self, other: DecimalAmount) -> bool:
        left, right = self._aligned(other)
        return left <= right

    def __gt__(self, other: DecimalAmount) -> bool:
        left, right = self._aligned(other)
        return left > right

    def __ge__(self, other: DecimalAmount) -> bool:
        left, right = self._aligned(other)
        return left >= right

    def __str__(self) -> str:
        return format(to_display_number(self), "f")


def to_decimal_amount(raw: int, scale: int) -> DecimalAmount:
    """Wrap a raw on-chain integer at the given decimal scale."""
    return DecimalAmount(int(raw), scale)


def asset_amount(raw: int) -> DecimalAmount:
    return DecimalAmount(int(raw), ASSET_DECIMALS)


def share_amount(raw: int) -> DecimalAmount:
    return DecimalAmount(int(raw), SHARE_DECIMALS)


def to_display_number(amount: DecimalAmount) -> Decimal:
    """Exact decimal value of ``amount``."""
    return Decimal(amount.raw).scaleb(-amount.scale)


def rescale(amount: DecimalAmount, target_scale: int) -> DecimalAmount:
    """Move ``amount`` to ``target_scale``.

    Increasing the scale is exact. Decreasing it truncates toward zero, so
    the result never exceeds the original value.
    """
    if target_scale < 0:
        raise ValueError(f"target scale must be non-negative, got {target_scale}")
    if target_scale == amount.scale:
        return amount
    if target_scale > amount.scale:
        return DecimalAmount(amount.raw * 10 ** (target_scale - amount.scale), target_scale)
    return DecimalAmount(amount.raw // 10 ** (amount.scale - target_scale), target_scale)


def parse_user_input(text: str, scale: int) -> DecimalAmount:
    """Parse a user typed amount into a ``DecimalAmount`` at ``scale``.

    Only plain non-negative decimals are accepted ("100", "100.5", ".5").
    Signs, exponents, separators, ``inf`` and ``nan`` are rejected.
    Fractional digits beyond ``scale`` are truncated.

    Raises:
        InvalidAmount: If the text is not a plain non-negative decimal or
            does not fit in a uint256 at ``scale``.
    """
    if not isinstance(text, str):
        raise InvalidAmount("Amount must be text", value=text, scale=scale)

    candidate = text.strip()
    match = _USER_AMOUNT_RE.match(candidate)
    if match is None:
        raise InvalidAmount(
            f"Invalid amount {text!r}: expected a plain non-negative decimal",
            value=text,
            scale=scale,
        )

    whole, fraction, bare_fraction = match.groups()
    if bare_fraction is not None:
        whole, fraction = "0", bare_fraction
    whole = whole.lstrip("0") or "0"
    fraction = (fraction or "")[:scale].ljust(scale, "0")

    if len(whole) + scale > MAX_UINT256_DIGITS:
        raise InvalidAmount("Amount exceeds the uint256 range", value=text, scale=scale)
    raw = int(whole) * 10**scale + int(fraction or "0")
    if raw > MAX_UINT256:
        raise InvalidAmount("Amount exceeds the uint256 range", value=text, scale=scale)
    return DecimalAmount(raw, scale)


def format_amount(amount: DecimalAmount, places: int = 2) -> str:
    """Format with thousands separators, truncated to ``places`` digits."""
    value = to_display_number(amount).quantize(Decimal(1).scaleb(-places), ROUND_DOWN)
    return f"{value:,.{places}f}"


def format_compact(amount: DecimalAmount) -> str:
    """Format large amounts compactly (``1.2M``, ``3.4K``, ``12.00``)."""
    value = to_display_number(amount)
    if value >= 1_000_000:
        return f"{value / 1_000_000:.1f}M"
    if value >= 1_000:
        return f"{value / 1_000:.1f}K"
    return f"{value:.2f}"
