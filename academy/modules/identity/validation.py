"""Field-scoped checks for purchaser contact details and inline accounts."""

from __future__ import annotations

from dataclasses import dataclass

from email_validator import EmailNotValidError, validate_email

from academy.core.config import get_settings
from academy.shared.exceptions import ValidationException
from academy.shared.utils import normalize_email

REQUIRED_MESSAGE = "This field is required"


@dataclass(frozen=True, slots=True)
class PurchaserDetails:
    first_name: str
    last_name: str
    email: str
    phone: str | None


def _clean(value: str | None) -> str:
    return (value or "").strip()


def validate_purchaser(
    *,
    first_name: str | None,
    last_name: str | None,
    email: str | None,
    phone: str | None,
    accepted_terms: bool | None = True,
    require_phone: bool = True,
    create_account: bool = False,
    password: str | None = None,
    password_confirmation: str | None = None,
) -> PurchaserDetails:
    """Collect every problem at once and raise them as one field map."""
    errors: dict[str, str] = {}

    first = _clean(first_name)
    last = _clean(last_name)
    raw_email = _clean(email)
    phone_value = _clean(phone) or None

    if not first:
        errors["first_name"] = REQUIRED_MESSAGE
    if not last:
        errors["last_name"] = REQUIRED_MESSAGE
    if not raw_email:
        errors["email"] = REQUIRED_MESSAGE
    else:
        try:
            validate_email(raw_email, check_deliverability=False)
        except EmailNotValidError:
            errors["email"] = "Enter a valid email address"
    if require_phone and phone_value is None:
        errors["phone"] = REQUIRED_MESSAGE
    if accepted_terms is not True:
        errors["accepted_terms"] = "You must accept the terms to continue"

    if create_account:
        min_length = get_settings().password_min_length
        if not password:
            errors["password"] = REQUIRED_MESSAGE
        elif len(password) < min_length:
            errors["password"] = f"Password must be at least {min_length} characters"
        if password != password_confirmation:
            errors["password_confirmation"] = "Passwords do not match"

    if errors:
        raise ValidationException(errors)

    return PurchaserDetails(
        first_name=first,
        last_name=last,
        email=normalize_email(raw_email),
        phone=phone_value,
    )
