from __future__ import annotations

from urllib.parse import parse_qs

import httpx
import pytest
from prometheus_client import REGISTRY

from academy.core.enums import GatewayIntentStatusEnum
from academy.modules.payments.gateway import FakePaymentGateway, StripePaymentGateway, map_stripe_status
from academy.shared.exceptions import GatewayUnavailableException, IntegrityViolationException


def gateway_for(handler) -> StripePaymentGateway:
    return StripePaymentGateway(
        api_key="sk_test_academy",
        api_base="https://stripe.test",
        transport=httpx.MockTransport(handler),
    )


def gateway_errors(operation: str) -> float:
    return REGISTRY.get_sample_value("academy_gateway_errors_total", {"operation": operation}) or 0.0


@pytest.mark.asyncio
async def test_create_intent_posts_amount_in_cents_with_reservation_metadata() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "pi_123", "client_secret": "pi_123_secret_abc"})

    intent = await gateway_for(handler).create_intent(24900, "USD", {"reservation_id": "r-1"})

    assert intent.intent_id == "pi_123"
    assert intent.client_secret == "pi_123_secret_abc"
    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/v1/payment_intents"
    assert request.headers["Authorization"] == "Bearer sk_test_academy"
    form = parse_qs(request.content.decode())
    assert form["amount"] == ["24900"]
    assert form["currency"] == ["usd"]
    assert form["metadata[reservation_id]"] == ["r-1"]


@pytest.mark.asyncio
async def test_get_intent_reads_authoritative_state() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "id": "pi_123",
                "status": "succeeded",
                "amount": 24900,
                "currency": "usd",
                "metadata": {"reservation_id": "r-1"},
                "client_secret": "pi_123_secret_abc",
            },
        )

    state = await gateway_for(handler).get_intent("pi_123")

    assert state.status == GatewayIntentStatusEnum.SUCCEEDED
    assert state.amount_cents == 24900
    assert state.currency == "USD"
    assert state.metadata == {"reservation_id": "r-1"}


@pytest.mark.parametrize(
    ("payload", "expected"),
    [
        ({"status": "succeeded"}, (GatewayIntentStatusEnum.SUCCEEDED, None)),
        ({"status": "requires_action"}, (GatewayIntentStatusEnum.REQUIRES_ACTION, None)),
        ({"status": "processing"}, (GatewayIntentStatusEnum.REQUIRES_ACTION, None)),
        ({"status": "requires_payment_method"}, (GatewayIntentStatusEnum.REQUIRES_ACTION, None)),
        (
            {"status": "requires_payment_method", "last_payment_error": {"message": "Your card was declined."}},
            (GatewayIntentStatusEnum.FAILED, "Your card was declined."),
        ),
        (
            {"status": "canceled", "cancellation_reason": "abandoned"},
            (GatewayIntentStatusEnum.FAILED, "abandoned"),
        ),
    ],
)
def test_map_stripe_status(payload: dict, expected: tuple) -> None:
    assert map_stripe_status(payload) == expected


@pytest.mark.asyncio
async def test_server_error_is_gateway_unavailable_and_counted() -> None:
    before = gateway_errors("get_intent")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="bad gateway")

    with pytest.raises(GatewayUnavailableException):
        await gateway_for(handler).get_intent("pi_123")

    assert gateway_errors("get_intent") == before + 1


@pytest.mark.asyncio
async def test_transport_error_is_gateway_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(GatewayUnavailableException):
        await gateway_for(handler).create_intent(100, "usd", {})


@pytest.mark.asyncio
async def test_unknown_intent_is_integrity_violation() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"error": {"message": "No such payment_intent"}})

    with pytest.raises(IntegrityViolationException):
        await gateway_for(handler).get_intent("pi_missing")


@pytest.mark.asyncio
async def test_rejected_cancel_is_only_logged(caplog: pytest.LogCaptureFixture) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"message": "already succeeded"}})

    await gateway_for(handler).cancel_intent("pi_123")

    assert "already succeeded" in caplog.text


@pytest.mark.asyncio
async def test_fake_gateway_cancel_marks_intent_failed() -> None:
    gateway = FakePaymentGateway(auto_succeed=False)
    intent = await gateway.create_intent(5000, "usd", {"reservation_id": "r-1"})

    await gateway.cancel_intent(intent.intent_id)
    state = await gateway.get_intent(intent.intent_id)

    assert state.status == GatewayIntentStatusEnum.FAILED
    assert state.currency == "USD"
    assert gateway.cancelled == [intent.intent_id]
