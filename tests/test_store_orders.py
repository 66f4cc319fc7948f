from __future__ import annotations

from decimal import Decimal

import pytest

from academy.core.enums import (
    DiscountTypeEnum,
    GatewayIntentStatusEnum,
    PaymentOptionEnum,
    ReservationStatusEnum,
)
from academy.modules.pricing.schemas import CartLineRequest
from academy.modules.reservations.schemas import CartOrderCreate, PurchaserInfo
from academy.shared.exceptions import OfferingConfigurationException, ValidationException
from tests.fakes import FakePromoCode, make_course, make_harness, make_product


def purchaser() -> PurchaserInfo:
    return PurchaserInfo(
        first_name="Jordan",
        last_name="Lee",
        email="jordan@example.com",
        phone="+1 512 555 0188",
        accepted_terms=True,
    )


def order_payload(*lines, **overrides) -> CartOrderCreate:
    fields = {
        "lines": [CartLineRequest(offering_id=offering.id, quantity=quantity) for offering, quantity in lines],
        "purchaser": purchaser(),
    }
    fields.update(overrides)
    return CartOrderCreate(**fields)


def store(*, bag_stock: int = 5, glove_stock: int = 4):
    bag = make_product(stock=bag_stock, price="64.99")
    gloves = make_product(stock=glove_stock, price="24.50")
    gloves.title = "Shooting Gloves"
    return bag, gloves


@pytest.mark.asyncio
async def test_store_order_reserves_pays_and_confirms_every_line() -> None:
    bag, gloves = store()
    harness = make_harness([bag, gloves], auto_succeed=False)

    draft = await harness.service.create_store_order(order_payload((bag, 1), (gloves, 2)), None)
    assert draft.status == ReservationStatusEnum.DRAFT
    assert [(line.offering_id, line.quantity) for line in draft.lines] == [(bag.id, 1), (gloves.id, 2)]

    result = await harness.service.quote_and_reserve(draft.id, None)

    reservation = result.reservation
    assert reservation.status == ReservationStatusEnum.PENDING_PAYMENT
    assert reservation.amount_due == Decimal("113.99")
    assert len(harness.gateway.intents) == 1
    assert harness.gateway.intents[reservation.payment_intent_id].amount_cents == 11399
    assert reservation.lines[1].unit_price == Decimal("24.50")
    assert reservation.lines[1].subtotal_amount == Decimal("49.00")
    assert await harness.capacity.available_spots(bag.id, None, 5) == 4
    assert await harness.capacity.available_spots(gloves.id, None, 4) == 2

    harness.gateway.set_status(reservation.payment_intent_id, GatewayIntentStatusEnum.SUCCEEDED)
    confirmed = await harness.service.confirm(reservation.id, reservation.payment_intent_id, None, None)

    assert confirmed.status == ReservationStatusEnum.CONFIRMED
    assert len(harness.payments.payments) == 1
    assert harness.payments.payments[0].amount == Decimal("113.99")
    event = harness.audit.events[-1]
    assert event["event_type"] == "reservation.confirmed"
    assert event["payload"]["lines"] == [
        {"offering_id": str(bag.id), "quantity": 1},
        {"offering_id": str(gloves.id), "quantity": 2},
    ]


@pytest.mark.asyncio
async def test_store_order_with_short_line_claims_nothing() -> None:
    bag, gloves = store(glove_stock=1)
    harness = make_harness([bag, gloves])
    draft = await harness.service.create_store_order(order_payload((bag, 1), (gloves, 2)), None)

    with pytest.raises(ValidationException) as exc_info:
        await harness.service.quote_and_reserve(draft.id, None)

    assert exc_info.value.fields == {"lines.1.quantity": "Only 1 left"}
    assert draft.status == ReservationStatusEnum.DRAFT
    assert harness.gateway.intents == {}
    assert harness.waitlist.entries == []
    assert await harness.capacity.available_spots(bag.id, None, 5) == 5


@pytest.mark.asyncio
async def test_store_order_reports_sold_out_product() -> None:
    bag, gloves = store(glove_stock=1)
    harness = make_harness([bag, gloves])
    first = await harness.service.create_store_order(order_payload((gloves, 1)), None)
    await harness.service.quote_and_reserve(first.id, None)
    second = await harness.service.create_store_order(order_payload((bag, 2), (gloves, 1)), None)

    with pytest.raises(ValidationException) as exc_info:
        await harness.service.quote_and_reserve(second.id, None)

    assert exc_info.value.fields == {"lines.1.quantity": "Sold out"}
    assert second.status == ReservationStatusEnum.DRAFT


@pytest.mark.asyncio
async def test_store_order_merges_repeated_products() -> None:
    bag, gloves = store()
    harness = make_harness([bag, gloves])

    draft = await harness.service.create_store_order(order_payload((bag, 1), (gloves, 1), (bag, 2)), None)

    assert [(line.offering_id, line.quantity) for line in draft.lines] == [(bag.id, 3), (gloves.id, 1)]
    assert draft.offering_id == bag.id
    assert draft.quantity == 3


@pytest.mark.asyncio
async def test_store_order_rejects_courses_before_writing() -> None:
    bag, _ = store()
    course = make_course()
    harness = make_harness([bag, course])

    with pytest.raises(ValidationException) as exc_info:
        await harness.service.create_store_order(order_payload((bag, 1), (course, 1)), None)

    assert exc_info.value.fields == {"lines.1.offering_id": "Only store products can be added to the cart"}
    assert harness.reservations.reservations == {}


@pytest.mark.asyncio
async def test_promo_reprices_whole_store_order() -> None:
    bag, gloves = store()
    harness = make_harness(
        [bag, gloves],
        promos=[FakePromoCode(code="SAVE10", discount_type=DiscountTypeEnum.PERCENT, value=Decimal("10"))],
    )
    draft = await harness.service.create_store_order(order_payload((bag, 1), (gloves, 2)), None)
    reserved = await harness.service.quote_and_reserve(draft.id, None)
    first_intent = reserved.reservation.payment_intent_id

    discounted = await harness.service.apply_promo(draft.id, "save10", None)

    reservation = discounted.reservation
    assert reservation.promo_code == "SAVE10"
    assert reservation.discount_amount == Decimal("11.40")
    assert reservation.amount_due == Decimal("102.59")
    assert sum(line.discount_amount for line in reservation.lines) == Decimal("11.40")
    assert harness.gateway.intents[reservation.payment_intent_id].amount_cents == 10259
    assert harness.gateway.cancelled == [first_intent]

    restored = await harness.service.remove_promo(draft.id, None)
    assert restored.reservation.amount_due == Decimal("113.99")
    assert all(line.discount_amount == Decimal("0.00") for line in restored.reservation.lines)


@pytest.mark.asyncio
async def test_store_order_cannot_switch_to_deposit() -> None:
    bag, gloves = store()
    harness = make_harness([bag, gloves])
    draft = await harness.service.create_store_order(order_payload((bag, 1), (gloves, 1)), None)
    reserved = await harness.service.quote_and_reserve(draft.id, None)
    intent_id = reserved.reservation.payment_intent_id

    with pytest.raises(OfferingConfigurationException):
        await harness.service.change_payment_option(draft.id, PaymentOptionEnum.DEPOSIT, None)

    assert reserved.reservation.payment_option == PaymentOptionEnum.FULL
    assert reserved.reservation.payment_intent_id == intent_id


@pytest.mark.asyncio
async def test_cancelled_store_order_returns_stock_for_every_line() -> None:
    bag, gloves = store(bag_stock=1, glove_stock=1)
    harness = make_harness([bag, gloves])
    draft = await harness.service.create_store_order(order_payload((bag, 1), (gloves, 1)), None)
    await harness.service.quote_and_reserve(draft.id, None)
    assert await harness.capacity.available_spots(gloves.id, None, 1) == 0

    await harness.service.cancel(draft.id, None, None)

    assert await harness.capacity.available_spots(bag.id, None, 1) == 1
    assert await harness.capacity.available_spots(gloves.id, None, 1) == 1
