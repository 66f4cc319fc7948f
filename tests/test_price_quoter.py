from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from academy.core.enums import DiscountTypeEnum, OfferingKindEnum, PaymentOptionEnum
from academy.modules.catalog.adapters import OfferingTerms, effective_unit_price
from academy.modules.pricing.service import CartLine, PriceQuoter, allocate_discount
from academy.modules.pricing.tax import FlatRateTaxService
from academy.modules.promotions.service import PromotionsService
from academy.shared.exceptions import OfferingConfigurationException, ValidationException
from tests.fakes import FakeOffering, FakePromoCode, FakePromotionsRepository, make_course, make_harness, make_product


def course_terms(**overrides) -> OfferingTerms:
    fields = {
        "offering_id": uuid4(),
        "schedule_id": uuid4(),
        "kind": OfferingKindEnum.COURSE,
        "title": "Defensive Pistol Fundamentals",
        "capacity": 12,
        "unit_price": Decimal("249.00"),
        "deposit_amount": Decimal("50.00"),
        "currency": "USD",
        "tax_jurisdiction": None,
        "tax_included": False,
    }
    fields.update(overrides)
    return OfferingTerms(**fields)


def make_quoter(promos: list[FakePromoCode] | None = None, rates: dict[str, Decimal] | None = None) -> PriceQuoter:
    return PriceQuoter(
        promotions_service=PromotionsService(FakePromotionsRepository(promos)),  # type: ignore[arg-type]
        tax_service=FlatRateTaxService(rates or {}),
    )


@pytest.mark.asyncio
async def test_full_price_quote_without_tax_or_promo() -> None:
    quote = await make_quoter().quote(course_terms(), PaymentOptionEnum.FULL)

    assert quote.subtotal == Decimal("249.00")
    assert quote.discount_amount == Decimal("0.00")
    assert quote.tax == Decimal("0.00")
    assert quote.total == Decimal("249.00")
    assert quote.free_settlement is False


@pytest.mark.asyncio
async def test_additive_tax_is_added_to_total() -> None:
    quoter = make_quoter(rates={"us-tx": Decimal("0.0825")})

    quote = await quoter.quote(course_terms(tax_jurisdiction="US-TX"), PaymentOptionEnum.FULL)

    assert quote.tax == Decimal("20.54")
    assert quote.total == Decimal("269.54")
    assert quote.tax_included is False


@pytest.mark.asyncio
async def test_included_tax_is_backed_out_of_price() -> None:
    quoter = make_quoter(rates={"US-TX": Decimal("0.0825")})
    terms = course_terms(
        kind=OfferingKindEnum.MERCHANDISE,
        schedule_id=None,
        unit_price=Decimal("64.99"),
        deposit_amount=None,
        tax_jurisdiction="US-TX",
        tax_included=True,
    )

    quote = await quoter.quote(terms, PaymentOptionEnum.FULL)

    assert quote.tax == Decimal("4.95")
    assert quote.total == Decimal("64.99")
    assert quote.tax_included is True


@pytest.mark.asyncio
async def test_deposit_quote_uses_deposit_amount() -> None:
    quote = await make_quoter().quote(course_terms(), PaymentOptionEnum.DEPOSIT)

    assert quote.subtotal == Decimal("50.00")
    assert quote.total == Decimal("50.00")
    assert quote.payment_option == PaymentOptionEnum.DEPOSIT


@pytest.mark.asyncio
@pytest.mark.parametrize("deposit", [None, Decimal("0.00"), Decimal("249.00"), Decimal("300.00")])
async def test_deposit_must_be_positive_and_below_price(deposit: Decimal | None) -> None:
    with pytest.raises(OfferingConfigurationException):
        await make_quoter().quote(course_terms(deposit_amount=deposit), PaymentOptionEnum.DEPOSIT)


@pytest.mark.asyncio
async def test_promo_discount_is_taken_before_tax() -> None:
    promo = FakePromoCode(code="SAVE10", discount_type=DiscountTypeEnum.PERCENT, value=Decimal("10"))
    quoter = make_quoter([promo], rates={"US-TX": Decimal("0.0825")})

    quote = await quoter.quote(course_terms(tax_jurisdiction="US-TX"), PaymentOptionEnum.FULL, 1, "save10")

    assert quote.discount_amount == Decimal("24.90")
    assert quote.tax == Decimal("18.49")
    assert quote.total == Decimal("242.59")
    assert quote.promo_code == "SAVE10"


@pytest.mark.asyncio
async def test_fixed_discount_never_exceeds_subtotal() -> None:
    promo = FakePromoCode(code="RANGE300", discount_type=DiscountTypeEnum.FIXED_AMOUNT, value=Decimal("300"))

    quote = await make_quoter([promo]).quote(course_terms(), PaymentOptionEnum.FULL, 1, "RANGE300")

    assert quote.discount_amount == Decimal("249.00")
    assert quote.total == Decimal("0.00")
    assert quote.free_settlement is True


@pytest.mark.asyncio
async def test_rejected_promo_is_a_field_error() -> None:
    with pytest.raises(ValidationException) as exc_info:
        await make_quoter().quote(course_terms(), PaymentOptionEnum.FULL, 1, "NOPE")

    assert exc_info.value.fields == {"promo_code": "not_found"}


def test_sale_price_applies_only_inside_window() -> None:
    now = datetime(2026, 10, 17, 12, 0, tzinfo=UTC)
    offering = FakeOffering(
        id=uuid4(),
        kind=OfferingKindEnum.COURSE,
        title="Concealed Carry",
        unit_price=Decimal("249.00"),
        sale_price=Decimal("199.00"),
        sale_starts_at=now - timedelta(days=1),
        sale_ends_at=now + timedelta(days=1),
    )

    assert effective_unit_price(offering, now) == Decimal("199.00")
    assert effective_unit_price(offering, now + timedelta(days=1)) == Decimal("249.00")
    assert effective_unit_price(offering, now - timedelta(days=2)) == Decimal("249.00")


def test_allocate_discount_puts_rounding_remainder_on_last_line() -> None:
    shares = allocate_discount(Decimal("10.00"), [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")])

    assert shares == [Decimal("3.33"), Decimal("3.33"), Decimal("3.34")]
    assert sum(shares) == Decimal("10.00")


@pytest.mark.asyncio
async def test_cart_quote_splits_promo_across_lines() -> None:
    bag = make_product(price="64.99")
    ear_pro = make_product(price="20.00")
    ear_pro.title = "Electronic Ear Protection"
    promo = FakePromoCode(code="SAVE10", discount_type=DiscountTypeEnum.PERCENT, value=Decimal("10"))
    harness = make_harness([bag, ear_pro], promos=[promo])

    cart = await harness.quoter.quote_cart(
        [CartLine(offering_id=bag.id, quantity=2), CartLine(offering_id=ear_pro.id, quantity=1)],
        "save10",
    )

    assert cart.subtotal == Decimal("149.98")
    assert cart.discount_amount == Decimal("15.00")
    assert [line.discount_amount for line in cart.lines] == [Decimal("13.00"), Decimal("2.00")]
    assert cart.total == Decimal("134.98")
    assert cart.tax_included is True
    assert cart.promo_code == "SAVE10"


@pytest.mark.asyncio
async def test_cart_rejects_courses_and_bad_quantities() -> None:
    bag = make_product()
    course = make_course()
    harness = make_harness([bag, course])

    with pytest.raises(ValidationException) as exc_info:
        await harness.quoter.quote_cart(
            [CartLine(offering_id=course.id), CartLine(offering_id=bag.id, quantity=0), CartLine(offering_id=uuid4())],
        )

    assert exc_info.value.fields == {
        "lines.0.offering_id": "Only store products can be added to the cart",
        "lines.1.quantity": "Quantity must be at least 1",
        "lines.2.offering_id": "Product not found",
    }


@pytest.mark.asyncio
async def test_cart_requires_single_currency() -> None:
    bag = make_product()
    patch = make_product(price="8.00")
    patch.currency = "EUR"
    harness = make_harness([bag, patch])

    with pytest.raises(ValidationException) as exc_info:
        await harness.quoter.quote_cart([CartLine(offering_id=bag.id), CartLine(offering_id=patch.id)])

    assert "lines" in exc_info.value.fields


@pytest.mark.asyncio
async def test_empty_cart_is_rejected() -> None:
    harness = make_harness([])

    with pytest.raises(ValidationException) as exc_info:
        await harness.quoter.quote_cart([])

    assert exc_info.value.fields == {"lines": "Cart is empty"}
