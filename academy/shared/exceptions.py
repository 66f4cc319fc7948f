"""Custom exception hierarchy and handlers."""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

GENERIC_RETRY_MESSAGE = "Something went wrong while processing your payment. Please try again."


class AppException(Exception):
    """Base application exception."""

    status_code = 400
    code = "app_error"
    # When False the message is logged server-side and the purchaser gets a generic retry hint.
    expose_message = True

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def error_body(self) -> dict:
        message = self.message if self.expose_message else GENERIC_RETRY_MESSAGE
        return {"code": self.code, "message": message}


class NotFoundException(AppException):
    """Raised when entity is not found."""

    status_code = 404
    code = "not_found"


class ConflictException(AppException):
    """Raised when entity conflicts with current state."""

    status_code = 409
    code = "conflict"


class UnauthorizedException(AppException):
    """Raised when user has no rights for operation."""

    status_code = 403
    code = "forbidden"


class BusinessRuleException(AppException):
    """Raised when business rule validation fails."""

    status_code = 422
    code = "business_rule_violation"


class ScheduleSoldOutException(BusinessRuleException):
    """Chosen schedule is full while other dates of the offering still have spots."""

    status_code = 409
    code = "schedule_sold_out"


class ValidationException(AppException):
    """Field-scoped validation failure the purchaser can fix."""

    status_code = 422
    code = "validation_error"

    def __init__(self, fields: dict[str, str], message: str = "Some fields need attention") -> None:
        self.fields = fields
        super().__init__(message)

    def error_body(self) -> dict:
        body = super().error_body()
        body["fields"] = self.fields
        return body


class OfferingConfigurationException(AppException):
    """Offering data cannot produce a price (e.g. deposit option without deposit)."""

    status_code = 422
    code = "offering_misconfigured"


class StaleQuoteException(AppException):
    """Amount being paid no longer matches the current quote."""

    status_code = 409
    code = "stale_quote"


class PaymentDeclinedException(AppException):
    """Gateway declined the charge; message carries the gateway's reason."""

    status_code = 402
    code = "payment_declined"


class PaymentRequiresActionException(AppException):
    """Gateway needs further purchaser action (e.g. 3-D Secure)."""

    status_code = 402
    code = "payment_requires_action"


class GatewayUnavailableException(AppException):
    """Transient gateway failure; safe to retry."""

    status_code = 503
    code = "gateway_unavailable"
    expose_message = False


class IntegrityViolationException(AppException):
    """Operation contradicts the reservation's recorded state; not retried."""

    status_code = 409
    code = "integrity_violation"
    expose_message = False


async def app_exception_handler(_: Request, exc: AppException) -> JSONResponse:
    """Handle custom domain exceptions."""
    if not exc.expose_message:
        logger.warning("%s: %s", exc.code, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error_body()},
    )


async def request_validation_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    """Reshape FastAPI body validation errors into field-scoped errors."""
    fields: dict[str, str] = {}
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        fields[".".join(location) or "request"] = error.get("msg", "Invalid value")
    return JSONResponse(
        status_code=422,
        content={
            "error": {
                "code": ValidationException.code,
                "message": "Some fields need attention",
                "fields": fields,
            },
        },
    )


async def http_exception_handler(_: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTP exceptions in unified shape."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": "http_error", "message": str(exc.detail)}},
    )


async def unhandled_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception("Unhandled error: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"error": {"code": "internal_error", "message": "Internal server error"}},
    )


def register_exception_handlers(app) -> None:
    """Register global exception handlers."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
