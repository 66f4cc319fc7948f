"""Price quoter: subtotal, discount, tax and total for a reservation or cart."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.database import get_db_session
from academy.core.enums import OfferingKindEnum, PaymentOptionEnum
from academy.modules.catalog.adapters import OfferingTerms, get_offering_adapter
from academy.modules.catalog.repository import CatalogRepository
from academy.modules.catalog.service import CatalogService
from academy.modules.pricing.tax import TaxService, get_tax_service
from academy.modules.promotions.service import PromotionsService, build_promotions_service
from academy.shared.exceptions import OfferingConfigurationException, ValidationException
from academy.shared.money import ZERO, quantize_money
from academy.shared.utils import normalize_code, utc_now


@dataclass(frozen=True, slots=True)
class Quote:
    """Price breakdown at one point in time. Never persisted as such."""

    subtotal: Decimal
    discount_amount: Decimal
    tax: Decimal
    total: Decimal
    tax_included: bool
    currency: str
    payment_option: PaymentOptionEnum
    promo_code: str | None = None

    @property
    def free_settlement(self) -> bool:
        return self.total == ZERO


@dataclass(frozen=True, slots=True)
class CartLine:
    offering_id: UUID
    quantity: int = 1


@dataclass(frozen=True, slots=True)
class CartLineQuote:
    offering_id: UUID
    title: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    discount_amount: Decimal
    tax: Decimal
    total: Decimal


@dataclass(frozen=True, slots=True)
class CartQuote:
    lines: tuple[CartLineQuote, ...]
    subtotal: Decimal
    discount_amount: Decimal
    tax: Decimal
    total: Decimal
    tax_included: bool
    currency: str
    promo_code: str | None = None

    @property
    def payment_option(self) -> PaymentOptionEnum:
        # Store orders are always paid in full.
        return PaymentOptionEnum.FULL

    @property
    def free_settlement(self) -> bool:
        return self.total == ZERO


def base_unit_amount(terms: OfferingTerms, payment_option: PaymentOptionEnum) -> Decimal:
    """Unit amount charged now: full price or deposit."""
    if payment_option == PaymentOptionEnum.FULL:
        return terms.unit_price
    deposit = terms.deposit_amount
    if deposit is None:
        raise OfferingConfigurationException(f"'{terms.title}' does not accept deposits")
    if deposit <= ZERO or deposit >= terms.unit_price:
        raise OfferingConfigurationException(
            f"Deposit for '{terms.title}' must be positive and less than the full price",
        )
    return deposit


def allocate_discount(discount: Decimal, subtotals: list[Decimal]) -> list[Decimal]:
    """Split a cart discount across lines in proportion to their subtotals."""
    total = sum(subtotals, ZERO)
    if discount == ZERO or total == ZERO:
        return [ZERO for _ in subtotals]
    shares: list[Decimal] = []
    allocated = ZERO
    for index, subtotal in enumerate(subtotals):
        if index == len(subtotals) - 1:
            share = discount - allocated
        else:
            share = quantize_money(discount * subtotal / total)
        shares.append(share)
        allocated += share
    return shares


class PriceQuoter:
    """Computes quotes; promo codes go through the discount service."""

    def __init__(
        self,
        promotions_service: PromotionsService,
        tax_service: TaxService,
        catalog_service: CatalogService | None = None,
    ) -> None:
        self.promotions_service = promotions_service
        self.tax_service = tax_service
        self.catalog_service = catalog_service

    async def quote(
        self,
        terms: OfferingTerms,
        payment_option: PaymentOptionEnum,
        quantity: int = 1,
        promo_code: str | None = None,
    ) -> Quote:
        """Quote one offering line. Invalid promo codes raise a field-scoped error."""
        subtotal = quantize_money(base_unit_amount(terms, payment_option) * quantity)

        discount = ZERO
        normalized_code = normalize_code(promo_code) if promo_code else None
        if normalized_code:
            validation = await self.promotions_service.validate_code(
                normalized_code,
                terms.offering_id,
                subtotal,
            )
            if not validation.is_valid:
                raise ValidationException({"promo_code": str(validation.rejection)})
            discount = validation.discount_amount

        breakdown = await self.tax_service.compute_tax(
            terms.tax_jurisdiction,
            subtotal - discount,
            terms.tax_included,
        )
        return Quote(
            subtotal=subtotal,
            discount_amount=discount,
            tax=breakdown.tax,
            total=breakdown.total,
            tax_included=breakdown.included,
            currency=terms.currency,
            payment_option=payment_option,
            promo_code=normalized_code,
        )

    async def quote_offering(
        self,
        offering_id: UUID,
        schedule_id: UUID | None,
        payment_option: PaymentOptionEnum,
        quantity: int,
        promo_code: str | None,
    ) -> Quote:
        """Price preview straight from the catalog."""
        _, _, terms = await self.catalog_service.load_terms(offering_id, schedule_id)
        get_offering_adapter(terms.kind).validate_quantity(quantity)
        return await self.quote(terms, payment_option, quantity, promo_code)

    async def quote_cart(self, lines: list[CartLine], promo_code: str | None = None) -> CartQuote:
        """Quote a multi-line store cart at current prices."""
        if not lines:
            raise ValidationException({"lines": "Cart is empty"})

        offerings = await self.catalog_service.repository.get_offerings_by_ids(
            list({line.offering_id for line in lines}),
        )
        now = utc_now()
        resolved: list[tuple[CartLine, OfferingTerms]] = []
        errors: dict[str, str] = {}
        for index, line in enumerate(lines):
            offering = offerings.get(line.offering_id)
            if offering is None or not offering.is_published:
                errors[f"lines.{index}.offering_id"] = "Product not found"
                continue
            if offering.kind != OfferingKindEnum.MERCHANDISE:
                errors[f"lines.{index}.offering_id"] = "Only store products can be added to the cart"
                continue
            adapter = get_offering_adapter(offering.kind)
            try:
                adapter.validate_quantity(line.quantity)
            except ValidationException as exc:
                errors[f"lines.{index}.quantity"] = exc.fields["quantity"]
                continue
            resolved.append((line, adapter.resolve_terms(offering, None, now)))
        if errors:
            raise ValidationException(errors)

        currencies = {terms.currency for _, terms in resolved}
        if len(currencies) > 1:
            raise ValidationException({"lines": "All cart items must use the same currency"})

        subtotals = [quantize_money(terms.unit_price * line.quantity) for line, terms in resolved]
        subtotal = sum(subtotals, ZERO)

        discount = ZERO
        normalized_code = normalize_code(promo_code) if promo_code else None
        if normalized_code:
            validation = await self.promotions_service.validate_for_offerings(
                normalized_code,
                [terms.offering_id for _, terms in resolved],
                subtotal,
            )
            if not validation.is_valid:
                raise ValidationException({"promo_code": str(validation.rejection)})
            discount = validation.discount_amount

        line_quotes: list[CartLineQuote] = []
        for (line, terms), line_subtotal, line_discount in zip(
            resolved,
            subtotals,
            allocate_discount(discount, subtotals),
        ):
            breakdown = await self.tax_service.compute_tax(
                terms.tax_jurisdiction,
                line_subtotal - line_discount,
                terms.tax_included,
            )
            line_quotes.append(
                CartLineQuote(
                    offering_id=terms.offering_id,
                    title=terms.title,
                    quantity=line.quantity,
                    unit_price=terms.unit_price,
                    subtotal=line_subtotal,
                    discount_amount=line_discount,
                    tax=breakdown.tax,
                    total=breakdown.total,
                ),
            )

        return CartQuote(
            lines=tuple(line_quotes),
            subtotal=subtotal,
            discount_amount=discount,
            tax=sum((item.tax for item in line_quotes), ZERO),
            total=sum((item.total for item in line_quotes), ZERO),
            tax_included=all(terms.tax_included for _, terms in resolved),
            currency=currencies.pop(),
            promo_code=normalized_code,
        )


def build_price_quoter(session: AsyncSession) -> PriceQuoter:
    return PriceQuoter(
        promotions_service=build_promotions_service(session),
        tax_service=get_tax_service(),
        catalog_service=CatalogService(CatalogRepository(session)),
    )


async def get_price_quoter(session: AsyncSession = Depends(get_db_session)) -> PriceQuoter:
    """Dependency provider for price quoter."""
    return build_price_quoter(session)
