"""Payment gateway adapters.

The core only ever talks to the processor through ``PaymentGateway``:
create an intent for an amount, read an intent's authoritative status,
and cancel an intent that a changed quote made obsolete. Card collection
and 3-D Secure happen client-side against the processor directly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol
from uuid import uuid4

import httpx

from academy.core.config import Settings, get_settings
from academy.core.enums import GatewayIntentStatusEnum
from academy.core.metrics import record_gateway_error
from academy.shared.exceptions import GatewayUnavailableException, IntegrityViolationException

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class GatewayIntent:
    intent_id: str
    client_secret: str


@dataclass(frozen=True, slots=True)
class GatewayIntentState:
    intent_id: str
    status: GatewayIntentStatusEnum
    amount_cents: int
    currency: str
    metadata: dict[str, str] = field(default_factory=dict)
    decline_reason: str | None = None
    client_secret: str | None = None


class PaymentGateway(Protocol):
    """Narrow interface to the external payment processor."""

    async def create_intent(self, amount_cents: int, currency: str, metadata: dict[str, str]) -> GatewayIntent:
        """Create a payment intent for amount."""

    async def get_intent(self, intent_id: str) -> GatewayIntentState:
        """Read intent status from the processor's own record."""

    async def cancel_intent(self, intent_id: str) -> None:
        """Cancel an intent that will not be paid."""


@dataclass(slots=True)
class _FakeIntent:
    amount_cents: int
    currency: str
    metadata: dict[str, str]
    client_secret: str
    status: GatewayIntentStatusEnum
    decline_reason: str | None = None


class FakePaymentGateway:
    """In-process gateway for development and tests."""

    def __init__(self, *, auto_succeed: bool = True) -> None:
        self.auto_succeed = auto_succeed
        self.intents: dict[str, _FakeIntent] = {}
        self.cancelled: list[str] = []

    async def create_intent(self, amount_cents: int, currency: str, metadata: dict[str, str]) -> GatewayIntent:
        intent_id = f"pi_fake_{uuid4().hex}"
        client_secret = f"{intent_id}_secret_{uuid4().hex[:12]}"
        status = GatewayIntentStatusEnum.SUCCEEDED if self.auto_succeed else GatewayIntentStatusEnum.REQUIRES_ACTION
        self.intents[intent_id] = _FakeIntent(
            amount_cents=amount_cents,
            currency=currency.upper(),
            metadata=dict(metadata),
            client_secret=client_secret,
            status=status,
        )
        return GatewayIntent(intent_id=intent_id, client_secret=client_secret)

    async def get_intent(self, intent_id: str) -> GatewayIntentState:
        intent = self.intents.get(intent_id)
        if intent is None:
            raise IntegrityViolationException(f"Unknown payment intent {intent_id}")
        return GatewayIntentState(
            intent_id=intent_id,
            status=intent.status,
            amount_cents=intent.amount_cents,
            currency=intent.currency,
            metadata=dict(intent.metadata),
            decline_reason=intent.decline_reason,
            client_secret=intent.client_secret,
        )

    async def cancel_intent(self, intent_id: str) -> None:
        intent = self.intents.get(intent_id)
        if intent is None:
            return
        intent.status = GatewayIntentStatusEnum.FAILED
        intent.decline_reason = "canceled"
        self.cancelled.append(intent_id)

    def set_status(
        self,
        intent_id: str,
        status: GatewayIntentStatusEnum,
        decline_reason: str | None = None,
    ) -> None:
        """Simulate the purchaser finishing (or failing) payment client-side."""
        intent = self.intents[intent_id]
        intent.status = status
        intent.decline_reason = decline_reason


_STRIPE_SUCCEEDED = {"succeeded"}
_STRIPE_REQUIRES_ACTION = {"requires_action", "requires_confirmation", "processing", "requires_capture"}


def map_stripe_status(payload: dict[str, Any]) -> tuple[GatewayIntentStatusEnum, str | None]:
    """Collapse Stripe PaymentIntent status into succeeded / requires_action / failed."""
    status = payload.get("status")
    if status in _STRIPE_SUCCEEDED:
        return GatewayIntentStatusEnum.SUCCEEDED, None
    if status in _STRIPE_REQUIRES_ACTION:
        return GatewayIntentStatusEnum.REQUIRES_ACTION, None
    last_error = payload.get("last_payment_error") or {}
    if status == "requires_payment_method" and not last_error:
        # Nothing attempted yet.
        return GatewayIntentStatusEnum.REQUIRES_ACTION, None
    reason = last_error.get("message") or payload.get("cancellation_reason")
    return GatewayIntentStatusEnum.FAILED, reason


class StripePaymentGateway:
    """Stripe PaymentIntents over REST."""

    def __init__(
        self,
        *,
        api_key: str,
        api_base: str = "https://api.stripe.com",
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._api_base = api_base.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._api_base,
            timeout=self._timeout_seconds,
            headers={"Authorization": f"Bearer {self._api_key}"},
            transport=self._transport,
        )

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        data: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            async with self._client() as client:
                response = await client.request(method, path, data=data)
        except httpx.HTTPError as exc:
            record_gateway_error(operation)
            raise GatewayUnavailableException(f"Stripe {operation} failed: {exc}") from exc
        if response.status_code >= 500:
            record_gateway_error(operation)
            raise GatewayUnavailableException(f"Stripe {operation} returned {response.status_code}")
        return response

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return str(response.json().get("error", {}).get("message", response.text))
        except ValueError:
            return response.text

    async def create_intent(self, amount_cents: int, currency: str, metadata: dict[str, str]) -> GatewayIntent:
        data = {
            "amount": str(amount_cents),
            "currency": currency.lower(),
            "automatic_payment_methods[enabled]": "true",
        }
        for key, value in metadata.items():
            data[f"metadata[{key}]"] = value
        response = await self._request("create_intent", "POST", "/v1/payment_intents", data)
        if response.status_code >= 400:
            record_gateway_error("create_intent")
            raise GatewayUnavailableException(f"Stripe rejected intent creation: {self._error_message(response)}")
        payload = response.json()
        return GatewayIntent(intent_id=payload["id"], client_secret=payload["client_secret"])

    async def get_intent(self, intent_id: str) -> GatewayIntentState:
        response = await self._request("get_intent", "GET", f"/v1/payment_intents/{intent_id}")
        if response.status_code == 404:
            raise IntegrityViolationException(f"Unknown payment intent {intent_id}")
        if response.status_code >= 400:
            record_gateway_error("get_intent")
            raise GatewayUnavailableException(f"Stripe intent lookup failed: {self._error_message(response)}")
        payload = response.json()
        status, reason = map_stripe_status(payload)
        return GatewayIntentState(
            intent_id=payload["id"],
            status=status,
            amount_cents=int(payload["amount"]),
            currency=str(payload["currency"]).upper(),
            metadata={str(key): str(value) for key, value in (payload.get("metadata") or {}).items()},
            decline_reason=reason,
            client_secret=payload.get("client_secret"),
        )

    async def cancel_intent(self, intent_id: str) -> None:
        response = await self._request("cancel_intent", "POST", f"/v1/payment_intents/{intent_id}/cancel")
        if response.status_code >= 400:
            logger.warning("Stripe refused to cancel %s: %s", intent_id, self._error_message(response))


_payment_gateway: PaymentGateway | None = None
_payment_gateway_signature: tuple[str, str | None, str] | None = None


def _build_payment_gateway(settings: Settings) -> PaymentGateway:
    if settings.payment_gateway_backend == "stripe":
        return StripePaymentGateway(
            api_key=settings.stripe_api_key or "",
            api_base=settings.stripe_api_base,
            timeout_seconds=settings.gateway_timeout_seconds,
        )
    return FakePaymentGateway()


def get_payment_gateway() -> PaymentGateway:
    """Return shared gateway instance for configured backend."""
    global _payment_gateway, _payment_gateway_signature
    settings = get_settings()
    signature = (settings.payment_gateway_backend, settings.stripe_api_key, settings.stripe_api_base)
    if _payment_gateway is None or _payment_gateway_signature != signature:
        _payment_gateway = _build_payment_gateway(settings)
        _payment_gateway_signature = signature
    return _payment_gateway
