"""Jurisdiction tax rule."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from academy.core.config import get_settings
from academy.shared.money import ZERO, quantize_money


@dataclass(frozen=True, slots=True)
class TaxBreakdown:
    tax: Decimal
    total: Decimal
    included: bool


class TaxService(Protocol):
    """Protocol for tax providers."""

    async def compute_tax(self, jurisdiction: str | None, amount: Decimal, included: bool) -> TaxBreakdown:
        """Return tax for amount and the resulting total."""


class FlatRateTaxService:
    """Single rate per jurisdiction, configured through TAX_RATES."""

    def __init__(self, rates: dict[str, Decimal]) -> None:
        self._rates = {key.upper(): Decimal(value) for key, value in rates.items()}

    def rate_for(self, jurisdiction: str | None) -> Decimal:
        if not jurisdiction:
            return Decimal(0)
        return self._rates.get(jurisdiction.strip().upper(), Decimal(0))

    async def compute_tax(self, jurisdiction: str | None, amount: Decimal, included: bool) -> TaxBreakdown:
        amount = quantize_money(amount)
        rate = self.rate_for(jurisdiction)
        if rate == 0 or amount == ZERO:
            return TaxBreakdown(tax=ZERO, total=amount, included=included)
        if included:
            # Price already contains tax: back it out of the gross amount.
            tax = quantize_money(amount - amount / (Decimal(1) + rate))
            return TaxBreakdown(tax=tax, total=amount, included=True)
        tax = quantize_money(amount * rate)
        return TaxBreakdown(tax=tax, total=amount + tax, included=False)


def get_tax_service() -> TaxService:
    """Return tax service for configured rates."""
    return FlatRateTaxService(get_settings().tax_rates)
