"""Reservation lifecycle: draft -> pending_payment -> confirmed, with waitlist and cancel exits."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.config import get_settings
from academy.core.database import get_db_session
from academy.core.enums import GatewayIntentStatusEnum, PaymentOptionEnum, ReservationStatusEnum, RoleEnum
from academy.core.metrics import record_reservation_outcome
from academy.modules.audit.repository import AuditRepository
from academy.modules.capacity.service import CapacityService, ReserveResult, build_capacity_service
from academy.modules.catalog.adapters import OfferingTerms, get_offering_adapter
from academy.modules.catalog.models import Offering
from academy.modules.catalog.repository import CatalogRepository
from academy.modules.catalog.service import CatalogService
from academy.modules.identity.models import User
from academy.modules.identity.repository import IdentityRepository
from academy.modules.identity.service import IdentityService
from academy.modules.identity.validation import PurchaserDetails, validate_purchaser
from academy.modules.payments.gateway import GatewayIntent, GatewayIntentState, PaymentGateway, get_payment_gateway
from academy.modules.payments.repository import PaymentsRepository
from academy.modules.pricing.service import CartLine, CartQuote, PriceQuoter, Quote, build_price_quoter
from academy.modules.promotions.service import PromotionsService, build_promotions_service
from academy.modules.reservations.models import Reservation
from academy.modules.reservations.repository import ReservationRepository
from academy.modules.reservations.schemas import CartOrderCreate, PurchaserInfo, ReservationCreate
from academy.modules.waitlist.models import WaitlistEntry
from academy.modules.waitlist.service import WaitlistService, build_waitlist_service
from academy.shared.exceptions import (
    ConflictException,
    GatewayUnavailableException,
    IntegrityViolationException,
    NotFoundException,
    OfferingConfigurationException,
    PaymentDeclinedException,
    PaymentRequiresActionException,
    ScheduleSoldOutException,
    StaleQuoteException,
    UnauthorizedException,
    ValidationException,
)
from academy.shared.money import ZERO, from_cents, quantize_money, to_cents
from academy.shared.utils import normalize_code, utc_now

settings = get_settings()
logger = logging.getLogger(__name__)

_MUTABLE_STATUSES = (ReservationStatusEnum.DRAFT, ReservationStatusEnum.PENDING_PAYMENT)


@dataclass(slots=True)
class CheckoutResult:
    reservation: Reservation
    quote: Quote | None = None
    client_secret: str | None = None
    waitlist_entry: WaitlistEntry | None = None

    @property
    def free_settlement(self) -> bool:
        return self.quote is not None and self.quote.free_settlement


@dataclass(frozen=True, slots=True)
class ExpireResult:
    expired: int = 0
    confirmed: int = 0
    skipped: int = 0


class ReservationService:
    """Order/enrollment state machine shared by courses, online courses and store orders."""

    def __init__(
        self,
        reservation_repository: ReservationRepository,
        catalog_service: CatalogService,
        capacity_service: CapacityService,
        price_quoter: PriceQuoter,
        promotions_service: PromotionsService,
        payments_repository: PaymentsRepository,
        waitlist_service: WaitlistService,
        identity_service: IdentityService,
        audit_repository: AuditRepository,
        gateway: PaymentGateway,
    ) -> None:
        self.reservation_repository = reservation_repository
        self.catalog_service = catalog_service
        self.capacity_service = capacity_service
        self.price_quoter = price_quoter
        self.promotions_service = promotions_service
        self.payments_repository = payments_repository
        self.waitlist_service = waitlist_service
        self.identity_service = identity_service
        self.audit_repository = audit_repository
        self.gateway = gateway

    def _validate_actor_access(self, reservation: Reservation, actor: User | None) -> None:
        # Guest reservations are reachable by id alone; owned ones need their owner or an admin.
        if actor is not None and actor.role.name == RoleEnum.ADMIN:
            return
        if reservation.purchaser_id is None:
            return
        if actor is None:
            raise UnauthorizedException("Sign in to manage this reservation")
        if reservation.purchaser_id != actor.id:
            raise UnauthorizedException("You cannot manage this reservation")

    async def _get_locked(self, reservation_id: UUID, actor: User | None) -> Reservation:
        reservation = await self.reservation_repository.get_reservation_for_update(reservation_id)
        if reservation is None:
            raise NotFoundException("Reservation not found")
        self._validate_actor_access(reservation, actor)
        return reservation

    @staticmethod
    def _is_store_order(reservation: Reservation) -> bool:
        return len(reservation.lines) > 1

    async def _resolve_lines(
        self,
        reservation: Reservation,
        schedule_id: UUID | None = None,
    ) -> tuple[Offering, list[tuple[OfferingTerms, int]]]:
        """Current terms and quantity of every line; the offering returned is the first line's."""
        if not self._is_store_order(reservation):
            offering, _, terms = await self.catalog_service.load_terms(
                reservation.offering_id,
                schedule_id or reservation.schedule_id,
            )
            return offering, [(terms, reservation.quantity)]

        first_offering: Offering | None = None
        resolved: list[tuple[OfferingTerms, int]] = []
        for line in reservation.lines:
            offering, _, terms = await self.catalog_service.load_terms(line.offering_id, None)
            first_offering = first_offering or offering
            resolved.append((terms, line.quantity))
        return first_offering, resolved

    async def _price(
        self,
        reservation: Reservation,
        lines: list[tuple[OfferingTerms, int]],
        payment_option: PaymentOptionEnum,
        promo_code: str | None,
    ) -> Quote | CartQuote:
        if not self._is_store_order(reservation):
            terms, quantity = lines[0]
            return await self.price_quoter.quote(terms, payment_option, quantity, promo_code)
        if payment_option != PaymentOptionEnum.FULL:
            raise OfferingConfigurationException("Store orders do not accept deposits")
        return await self.price_quoter.quote_cart(
            [CartLine(offering_id=terms.offering_id, quantity=quantity) for terms, quantity in lines],
            promo_code,
        )

    @staticmethod
    def _ensure_mutable(reservation: Reservation) -> None:
        if reservation.status not in _MUTABLE_STATUSES:
            raise ConflictException(f"Reservation is already {reservation.status}")

    @staticmethod
    def _apply_quote(reservation: Reservation, quote: Quote | CartQuote) -> None:
        reservation.payment_option = quote.payment_option
        reservation.promo_code = quote.promo_code
        reservation.subtotal_amount = quote.subtotal
        reservation.discount_amount = quote.discount_amount
        reservation.tax_amount = quote.tax
        reservation.tax_included = quote.tax_included
        reservation.amount_due = quote.total
        reservation.currency = quote.currency

        if isinstance(quote, CartQuote):
            for line, line_quote in zip(reservation.lines, quote.lines):
                line.unit_price = line_quote.unit_price
                line.subtotal_amount = line_quote.subtotal
                line.discount_amount = line_quote.discount_amount
                line.tax_amount = line_quote.tax
                line.total_amount = line_quote.total
            return
        for line in reservation.lines:
            line.unit_price = quantize_money(quote.subtotal / line.quantity)
            line.subtotal_amount = quote.subtotal
            line.discount_amount = quote.discount_amount
            line.tax_amount = quote.tax
            line.total_amount = quote.total

    def _event_payload(self, reservation: Reservation, **extra) -> dict:
        offering = reservation.offering
        payload = {
            "reservation_id": str(reservation.id),
            "offering_id": str(reservation.offering_id),
            "offering_title": offering.title if offering is not None else None,
            "offering_kind": str(offering.kind) if offering is not None else None,
            "schedule_id": str(reservation.schedule_id) if reservation.schedule_id else None,
            "user_id": str(reservation.purchaser_id) if reservation.purchaser_id else None,
            "email": reservation.email,
            "first_name": reservation.first_name,
            "lines": [
                {"offering_id": str(line.offering_id), "quantity": line.quantity} for line in reservation.lines
            ],
        }
        payload.update(extra)
        return payload

    async def _open_intent(self, reservation: Reservation, quote: Quote | CartQuote) -> GatewayIntent:
        """Create a gateway intent for quote.total. The reservation is not touched."""
        intent = await self.gateway.create_intent(
            to_cents(quote.total),
            quote.currency,
            {"reservation_id": str(reservation.id)},
        )
        logger.info("Issued intent %s for reservation %s (%s %s)", intent.intent_id, reservation.id, quote.total, quote.currency)
        return intent

    async def _discard_intent(self, intent_id: str) -> None:
        try:
            await self.gateway.cancel_intent(intent_id)
        except GatewayUnavailableException:
            # The reservation no longer references it, so confirm will reject it anyway.
            logger.warning("Could not cancel superseded payment intent %s", intent_id)

    async def _replace_pricing(self, reservation: Reservation, quote: Quote | CartQuote) -> CheckoutResult:
        """Store a new quote; a pending reservation gets a fresh intent for the new total.

        The replacement intent is created before anything is written, and the
        previous intent is cancelled only after the reservation points at its
        replacement. A gateway failure part way leaves the reservation on an
        intent that can still be paid.
        """
        intent: GatewayIntent | None = None
        if reservation.status == ReservationStatusEnum.PENDING_PAYMENT and not quote.free_settlement:
            intent = await self._open_intent(reservation, quote)

        previous_intent_id = reservation.payment_intent_id
        self._apply_quote(reservation, quote)
        reservation.payment_intent_id = intent.intent_id if intent is not None else None
        await self.reservation_repository.save(reservation)

        if previous_intent_id is not None and previous_intent_id != reservation.payment_intent_id:
            await self._discard_intent(previous_intent_id)
        return CheckoutResult(
            reservation=reservation,
            quote=quote,
            client_secret=intent.client_secret if intent is not None else None,
        )

    @staticmethod
    def _shortfall_fields(reservation: Reservation, result: ReserveResult) -> dict[str, str]:
        positions = {line.offering_id: index for index, line in enumerate(reservation.lines)}
        fields: dict[str, str] = {}
        for shortfall in result.shortfalls:
            message = "Sold out" if shortfall.available == 0 else f"Only {shortfall.available} left"
            fields[f"lines.{positions.get(shortfall.offering_id, 0)}.quantity"] = message
        return fields

    async def _handle_sold_out(
        self,
        reservation: Reservation,
        offering: Offering,
        result: ReserveResult,
    ) -> CheckoutResult:
        """Waitlist a fully sold-out offering; otherwise say what is still available."""
        if self._is_store_order(reservation):
            raise ValidationException(self._shortfall_fields(reservation, result))
        if not await self.capacity_service.is_sold_out(offering):
            if reservation.schedule_id is not None:
                raise ScheduleSoldOutException("This date is sold out. Choose another date with open spots.")
            available = result.shortfalls[0].available if result.shortfalls else 0
            raise ValidationException({"quantity": f"Only {available} left"})

        entry = await self.waitlist_service.add_for_reservation(reservation, offering)
        reservation.status = ReservationStatusEnum.WAITLISTED
        await self.reservation_repository.save(reservation)
        await self.audit_repository.create_outbox_event(
            aggregate_type="reservation",
            aggregate_id=str(reservation.id),
            event_type="reservation.waitlisted",
            payload=self._event_payload(reservation, waitlist_entry_id=str(entry.id), position=entry.position),
        )
        record_reservation_outcome("waitlisted")
        return CheckoutResult(reservation=reservation, waitlist_entry=entry)

    def _update_contact(self, reservation: Reservation, purchaser: PurchaserInfo) -> None:
        details = validate_purchaser(
            first_name=purchaser.first_name or reservation.first_name,
            last_name=purchaser.last_name or reservation.last_name,
            email=purchaser.email or reservation.email,
            phone=purchaser.phone or reservation.phone,
        )
        reservation.first_name = details.first_name
        reservation.last_name = details.last_name
        reservation.email = details.email
        reservation.phone = details.phone

    async def _mark_confirmed(self, reservation: Reservation, actor: User | None, amount_paid: Decimal) -> None:
        reservation.status = ReservationStatusEnum.CONFIRMED
        reservation.confirmed_at = utc_now()
        await self.reservation_repository.save(reservation)

        if reservation.promo_code:
            await self.promotions_service.record_redemption(reservation.promo_code)

        await self.audit_repository.create_outbox_event(
            aggregate_type="reservation",
            aggregate_id=str(reservation.id),
            event_type="reservation.confirmed",
            payload=self._event_payload(
                reservation,
                amount_paid=str(amount_paid),
                currency=reservation.currency,
                payment_option=str(reservation.payment_option),
            ),
        )
        await self.audit_repository.create_audit_log(
            actor_id=actor.id if actor is not None else reservation.purchaser_id,
            action="reservation.confirm",
            entity_type="reservation",
            entity_id=str(reservation.id),
            payload={
                "payment_intent_id": reservation.payment_intent_id,
                "amount_paid": str(amount_paid),
                "promo_code": reservation.promo_code,
            },
        )
        await self.capacity_service.invalidate_lines(reservation)
        record_reservation_outcome("confirmed")
        logger.info("Reservation %s confirmed", reservation.id)

    async def _settle_paid(
        self,
        reservation: Reservation,
        state: GatewayIntentState,
        actor: User | None,
    ) -> None:
        """Confirm against the gateway's own record of the intent."""
        if state.metadata.get("reservation_id") != str(reservation.id):
            raise IntegrityViolationException(
                f"Intent {state.intent_id} does not belong to reservation {reservation.id}",
            )
        if state.status == GatewayIntentStatusEnum.FAILED:
            raise PaymentDeclinedException(state.decline_reason or "Your payment was declined")
        if state.status == GatewayIntentStatusEnum.REQUIRES_ACTION:
            raise PaymentRequiresActionException("Your payment needs additional confirmation before it can complete")
        if (
            reservation.amount_due is None
            or state.amount_cents != to_cents(reservation.amount_due)
            or state.currency.upper() != reservation.currency.upper()
        ):
            raise StaleQuoteException("The amount paid no longer matches the current price. Please review your order.")

        existing = await self.payments_repository.get_by_external_reference(state.intent_id)
        if existing is not None and existing.reservation_id != reservation.id:
            raise IntegrityViolationException(f"Intent {state.intent_id} already settled another reservation")
        amount_paid = from_cents(state.amount_cents)
        if existing is None:
            await self.payments_repository.create_payment(
                reservation_id=reservation.id,
                amount=amount_paid,
                currency=state.currency.upper(),
                external_reference=state.intent_id,
                paid_at=utc_now(),
            )
        await self._mark_confirmed(reservation, actor, amount_paid)

    async def _cancel(
        self,
        reservation: Reservation,
        *,
        reason: str,
        event_type: str,
        actor: User | None,
    ) -> None:
        was_occupying = reservation.status == ReservationStatusEnum.PENDING_PAYMENT
        if reservation.payment_intent_id is not None:
            await self._discard_intent(reservation.payment_intent_id)

        reservation.status = ReservationStatusEnum.CANCELLED
        reservation.cancelled_at = utc_now()
        reservation.cancellation_reason = reason
        await self.reservation_repository.save(reservation)

        await self.audit_repository.create_outbox_event(
            aggregate_type="reservation",
            aggregate_id=str(reservation.id),
            event_type=event_type,
            payload=self._event_payload(reservation, reason=reason),
        )
        await self.audit_repository.create_audit_log(
            actor_id=actor.id if actor is not None else None,
            action=event_type,
            entity_type="reservation",
            entity_id=str(reservation.id),
            payload={"reason": reason},
        )
        if was_occupying:
            await self.capacity_service.release(reservation)
        record_reservation_outcome(event_type.rsplit(".", 1)[-1])

    @staticmethod
    def _validate_new_purchaser(info: PurchaserInfo, create_account: bool) -> PurchaserDetails:
        return validate_purchaser(
            first_name=info.first_name,
            last_name=info.last_name,
            email=info.email,
            phone=info.phone,
            accepted_terms=info.accepted_terms,
            create_account=create_account,
            password=info.password,
            password_confirmation=info.password_confirmation,
        )

    async def _draft_purchaser_id(
        self,
        actor: User | None,
        create_account: bool,
        details: PurchaserDetails,
        info: PurchaserInfo,
    ) -> UUID | None:
        if not create_account:
            return actor.id if actor is not None else None
        user = await self.identity_service.create_inline_account(
            email=details.email,
            password=info.password or "",
            first_name=details.first_name,
            last_name=details.last_name,
            phone=details.phone,
        )
        return user.id

    async def create_draft(self, payload: ReservationCreate, actor: User | None) -> Reservation:
        """Create a draft after checking purchaser fields and the offering choice."""
        create_account = payload.create_account and actor is None
        details = self._validate_new_purchaser(payload.purchaser, create_account)

        _, _, terms = await self.catalog_service.load_terms(payload.offering_id, payload.schedule_id)
        get_offering_adapter(terms.kind).validate_quantity(payload.quantity)

        purchaser_id = await self._draft_purchaser_id(actor, create_account, details, payload.purchaser)
        reservation = await self.reservation_repository.create_reservation(
            offering_id=terms.offering_id,
            schedule_id=terms.schedule_id,
            purchaser_id=purchaser_id,
            first_name=details.first_name,
            last_name=details.last_name,
            email=details.email,
            phone=details.phone,
            quantity=payload.quantity,
            status=ReservationStatusEnum.DRAFT,
            payment_option=payload.payment_option,
            currency=terms.currency,
            promo_code=normalize_code(payload.promo_code) if payload.promo_code else None,
        )
        await self.audit_repository.create_audit_log(
            actor_id=purchaser_id,
            action="reservation.draft.create",
            entity_type="reservation",
            entity_id=str(reservation.id),
            payload={
                "offering_id": str(terms.offering_id),
                "schedule_id": str(terms.schedule_id) if terms.schedule_id else None,
                "quantity": payload.quantity,
                "inline_account": create_account,
            },
        )
        record_reservation_outcome("draft")
        return reservation

    async def create_store_order(self, payload: CartOrderCreate, actor: User | None) -> Reservation:
        """Create a draft store order holding one line per product.

        Repeated products are merged into one line. The cart is priced once up
        front so unknown products, bad quantities and mixed currencies are
        rejected before anything is written.
        """
        create_account = payload.create_account and actor is None
        details = self._validate_new_purchaser(payload.purchaser, create_account)

        requested = [CartLine(offering_id=line.offering_id, quantity=line.quantity) for line in payload.lines]
        preview = await self.price_quoter.quote_cart(requested)

        merged: dict[UUID, int] = {}
        for line in requested:
            merged[line.offering_id] = merged.get(line.offering_id, 0) + line.quantity
        lines = list(merged.items())
        first_offering_id, first_quantity = lines[0]

        purchaser_id = await self._draft_purchaser_id(actor, create_account, details, payload.purchaser)
        reservation = await self.reservation_repository.create_reservation(
            lines=lines,
            offering_id=first_offering_id,
            schedule_id=None,
            purchaser_id=purchaser_id,
            first_name=details.first_name,
            last_name=details.last_name,
            email=details.email,
            phone=details.phone,
            quantity=first_quantity,
            status=ReservationStatusEnum.DRAFT,
            payment_option=PaymentOptionEnum.FULL,
            currency=preview.currency,
            promo_code=normalize_code(payload.promo_code) if payload.promo_code else None,
        )
        await self.audit_repository.create_audit_log(
            actor_id=purchaser_id,
            action="reservation.draft.create",
            entity_type="reservation",
            entity_id=str(reservation.id),
            payload={
                "lines": [{"offering_id": str(offering_id), "quantity": quantity} for offering_id, quantity in lines],
                "inline_account": create_account,
            },
        )
        record_reservation_outcome("draft")
        return reservation

    async def quote_and_reserve(self, reservation_id: UUID, actor: User | None) -> CheckoutResult:
        """Claim capacity, price the reservation and open a gateway intent when payment is due."""
        reservation = await self._get_locked(reservation_id, actor)
        if reservation.status == ReservationStatusEnum.PENDING_PAYMENT:
            return await self._refresh_pending(reservation)
        if reservation.status != ReservationStatusEnum.DRAFT:
            raise ConflictException(f"Reservation is already {reservation.status}")

        offering, lines = await self._resolve_lines(reservation)
        result = await self.capacity_service.try_reserve_lines(reservation, lines)
        if not result.reserved:
            return await self._handle_sold_out(reservation, offering, result)

        quote = await self._price(reservation, lines, reservation.payment_option, reservation.promo_code)
        checkout = await self._replace_pricing(reservation, quote)
        record_reservation_outcome("reserved")
        return checkout

    async def _refresh_pending(self, reservation: Reservation) -> CheckoutResult:
        _, lines = await self._resolve_lines(reservation)
        quote = await self._price(reservation, lines, reservation.payment_option, reservation.promo_code)
        if reservation.payment_intent_id is not None and quote.total == reservation.amount_due:
            state = await self.gateway.get_intent(reservation.payment_intent_id)
            if state.status != GatewayIntentStatusEnum.FAILED:
                return CheckoutResult(reservation=reservation, quote=quote, client_secret=state.client_secret)
            logger.info(
                "Intent %s of reservation %s can no longer be paid, issuing a new one",
                reservation.payment_intent_id,
                reservation.id,
            )
        elif reservation.payment_intent_id is None and quote.free_settlement:
            return CheckoutResult(reservation=reservation, quote=quote)
        return await self._replace_pricing(reservation, quote)

    async def change_payment_option(
        self,
        reservation_id: UUID,
        payment_option: PaymentOptionEnum,
        actor: User | None,
    ) -> CheckoutResult:
        """Switch between full payment and deposit; replaces any existing intent."""
        reservation = await self._get_locked(reservation_id, actor)
        self._ensure_mutable(reservation)
        _, lines = await self._resolve_lines(reservation)
        quote = await self._price(reservation, lines, payment_option, reservation.promo_code)
        return await self._replace_pricing(reservation, quote)

    async def apply_promo(self, reservation_id: UUID, code: str, actor: User | None) -> CheckoutResult:
        """Apply a promo code; an invalid code leaves the reservation untouched."""
        reservation = await self._get_locked(reservation_id, actor)
        self._ensure_mutable(reservation)
        _, lines = await self._resolve_lines(reservation)
        quote = await self._price(reservation, lines, reservation.payment_option, code)
        return await self._replace_pricing(reservation, quote)

    async def remove_promo(self, reservation_id: UUID, actor: User | None) -> CheckoutResult:
        """Drop the promo code and re-quote without it."""
        reservation = await self._get_locked(reservation_id, actor)
        self._ensure_mutable(reservation)
        _, lines = await self._resolve_lines(reservation)
        quote = await self._price(reservation, lines, reservation.payment_option, None)
        return await self._replace_pricing(reservation, quote)

    async def change_schedule(self, reservation_id: UUID, schedule_id: UUID, actor: User | None) -> CheckoutResult:
        """Pick another date while the reservation is still a draft."""
        reservation = await self._get_locked(reservation_id, actor)
        if reservation.status != ReservationStatusEnum.DRAFT:
            raise ConflictException("Schedule can only be changed before a seat is reserved")
        if self._is_store_order(reservation):
            raise ValidationException({"schedule_id": "Store orders are not sold by date"})
        _, lines = await self._resolve_lines(reservation, schedule_id)
        quote = await self._price(reservation, lines, reservation.payment_option, reservation.promo_code)
        reservation.schedule_id = lines[0][0].schedule_id
        return await self._replace_pricing(reservation, quote)

    async def confirm(
        self,
        reservation_id: UUID,
        payment_reference: str,
        purchaser: PurchaserInfo | None,
        actor: User | None,
    ) -> Reservation:
        """Confirm a paid reservation after the gateway itself reports success. Idempotent."""
        reservation = await self._get_locked(reservation_id, actor)
        if reservation.status == ReservationStatusEnum.CONFIRMED:
            if reservation.payment_intent_id == payment_reference:
                return reservation
            raise IntegrityViolationException(
                f"Reservation {reservation.id} is already confirmed with a different payment",
            )
        if reservation.status != ReservationStatusEnum.PENDING_PAYMENT:
            raise IntegrityViolationException(
                f"Reservation {reservation.id} cannot be confirmed from status {reservation.status}",
            )
        if reservation.payment_intent_id is None or reservation.payment_intent_id != payment_reference:
            raise IntegrityViolationException(
                f"Payment reference {payment_reference} is not the current intent of reservation {reservation.id}",
            )

        if purchaser is not None:
            self._update_contact(reservation, purchaser)
        state = await self.gateway.get_intent(payment_reference)
        await self._settle_paid(reservation, state, actor)
        return reservation

    async def confirm_free(
        self,
        reservation_id: UUID,
        purchaser: PurchaserInfo | None,
        actor: User | None,
    ) -> Reservation:
        """Confirm a zero-total reservation without contacting the gateway. Idempotent."""
        reservation = await self._get_locked(reservation_id, actor)
        if reservation.status == ReservationStatusEnum.CONFIRMED:
            if reservation.payment_intent_id is None and (reservation.amount_due or ZERO) == ZERO:
                return reservation
            raise IntegrityViolationException(f"Reservation {reservation.id} was confirmed with a payment")
        if reservation.status not in _MUTABLE_STATUSES:
            raise IntegrityViolationException(
                f"Reservation {reservation.id} cannot be confirmed from status {reservation.status}",
            )

        if purchaser is not None:
            self._update_contact(reservation, purchaser)
        offering, lines = await self._resolve_lines(reservation)
        quote = await self._price(reservation, lines, reservation.payment_option, reservation.promo_code)
        if not quote.free_settlement:
            raise StaleQuoteException("This order is no longer free. Please review the updated price.")

        if reservation.status == ReservationStatusEnum.DRAFT:
            result = await self.capacity_service.try_reserve_lines(reservation, lines)
            if not result.reserved:
                return (await self._handle_sold_out(reservation, offering, result)).reservation

        if reservation.payment_intent_id is not None:
            await self._discard_intent(reservation.payment_intent_id)
            reservation.payment_intent_id = None
        self._apply_quote(reservation, quote)
        await self._mark_confirmed(reservation, actor, ZERO)
        return reservation

    async def cancel(self, reservation_id: UUID, reason: str | None, actor: User | None) -> Reservation:
        """Cancel a draft or pending reservation and release its seat."""
        reservation = await self._get_locked(reservation_id, actor)
        if reservation.status not in _MUTABLE_STATUSES:
            raise ConflictException("Only draft or pending reservations can be cancelled")
        await self._cancel(
            reservation,
            reason=reason or "Cancelled by purchaser",
            event_type="reservation.cancelled",
            actor=actor,
        )
        return reservation

    async def expire_abandoned(self, actor: User) -> ExpireResult:
        """Reap stale drafts and pending reservations (admin task endpoint)."""
        if actor.role.name != RoleEnum.ADMIN:
            raise UnauthorizedException("Only admin can run reservation expiration")
        return await self.reap_abandoned()

    async def reap_abandoned(self, limit: int = 100) -> ExpireResult:
        """Cancel reservations older than the abandon window; settle any that were paid."""
        cutoff = utc_now() - timedelta(minutes=settings.reservation_abandon_minutes)
        candidates = await self.reservation_repository.find_abandoned(cutoff, limit)
        expired = confirmed = skipped = 0
        for reservation in candidates:
            if reservation.status == ReservationStatusEnum.PENDING_PAYMENT and reservation.payment_intent_id:
                try:
                    state = await self.gateway.get_intent(reservation.payment_intent_id)
                except GatewayUnavailableException:
                    logger.warning("Gateway unavailable, leaving reservation %s for the next run", reservation.id)
                    skipped += 1
                    continue
                except IntegrityViolationException:
                    # Unknown to the gateway, so it was never paid.
                    logger.warning(
                        "Gateway has no intent %s, expiring reservation %s",
                        reservation.payment_intent_id,
                        reservation.id,
                    )
                    state = None
                if state is not None and state.status == GatewayIntentStatusEnum.SUCCEEDED:
                    try:
                        await self._settle_paid(reservation, state, None)
                    except (StaleQuoteException, IntegrityViolationException):
                        logger.error("Paid reservation %s needs manual review", reservation.id, exc_info=True)
                        skipped += 1
                        continue
                    confirmed += 1
                    continue

            await self._cancel(
                reservation,
                reason="Abandoned before payment was completed",
                event_type="reservation.expired",
                actor=None,
            )
            expired += 1

        if candidates:
            logger.info("Reaped reservations: expired=%s confirmed=%s skipped=%s", expired, confirmed, skipped)
        return ExpireResult(expired=expired, confirmed=confirmed, skipped=skipped)

    async def handle_gateway_notification(self, intent_id: str) -> Reservation | None:
        """Webhook entry point. The payload is never trusted; the intent is re-read."""
        reservation = await self.reservation_repository.get_by_payment_intent_id(intent_id)
        if reservation is None:
            logger.info("Ignoring gateway notification for unknown intent %s", intent_id)
            return None
        if reservation.status == ReservationStatusEnum.CONFIRMED:
            return reservation
        if reservation.status != ReservationStatusEnum.PENDING_PAYMENT:
            logger.warning("Gateway notification for %s reservation %s", reservation.status, reservation.id)
            return reservation

        state = await self.gateway.get_intent(intent_id)
        if state.status != GatewayIntentStatusEnum.SUCCEEDED:
            return reservation
        await self._settle_paid(reservation, state, None)
        return reservation

    async def get_reservation(self, reservation_id: UUID, actor: User | None) -> Reservation:
        reservation = await self.reservation_repository.get_reservation_by_id(reservation_id)
        if reservation is None:
            raise NotFoundException("Reservation not found")
        self._validate_actor_access(reservation, actor)
        return reservation

    async def list_my_reservations(
        self,
        actor: User,
        limit: int,
        offset: int,
    ) -> tuple[list[Reservation], int]:
        return await self.reservation_repository.list_for_purchaser(actor.id, limit, offset)


def build_reservation_service(session: AsyncSession, gateway: PaymentGateway | None = None) -> ReservationService:
    """Wire the service against one DB session."""
    capacity_service = build_capacity_service(session)
    catalog_repository = CatalogRepository(session)
    return ReservationService(
        reservation_repository=ReservationRepository(session),
        catalog_service=CatalogService(catalog_repository),
        capacity_service=capacity_service,
        price_quoter=build_price_quoter(session),
        promotions_service=build_promotions_service(session),
        payments_repository=PaymentsRepository(session),
        waitlist_service=build_waitlist_service(session, capacity_service),
        identity_service=IdentityService(IdentityRepository(session)),
        audit_repository=AuditRepository(session),
        gateway=gateway or get_payment_gateway(),
    )


async def get_reservation_service(session: AsyncSession = Depends(get_db_session)) -> ReservationService:
    """Dependency provider for reservation service."""
    return build_reservation_service(session)
