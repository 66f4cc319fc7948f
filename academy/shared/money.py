"""Money helpers.

Amounts are kept as ``Decimal`` dollars quantized to cents everywhere in the
domain; gateways receive integer cents.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def quantize_money(amount: Decimal | int | str) -> Decimal:
    """Round to cents with half-up rounding."""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(amount: Decimal) -> int:
    """Convert dollars to integer cents."""
    return int((quantize_money(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    """Convert integer cents to dollars."""
    return quantize_money(Decimal(cents) / 100)
