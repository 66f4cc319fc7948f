from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError

from academy.core.config import Settings


def test_default_secret_key_allowed_in_development() -> None:
    settings = Settings(_env_file=None, app_env="development", secret_key="change-me")
    assert settings.secret_key == "change-me"
    assert settings.payment_gateway_backend == "fake"


def test_default_secret_key_rejected_in_production() -> None:
    with pytest.raises(ValidationError):
        Settings(
            _env_file=None,
            app_env="production",
            secret_key="change-me",
            payment_gateway_allow_fake_in_production=True,
        )


def test_placeholder_secret_key_prefix_rejected_in_production() -> None:
    with pytest.raises(ValidationError):
        Settings(
            _env_file=None,
            app_env="production",
            secret_key="change-me-in-production",
            payment_gateway_allow_fake_in_production=True,
        )


def test_fake_gateway_requires_explicit_ack_in_production() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, app_env="production", secret_key="super-secure-value")


def test_stripe_gateway_requires_api_key() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, payment_gateway_backend="stripe")


def test_stripe_gateway_allowed_in_production_with_key() -> None:
    settings = Settings(
        _env_file=None,
        app_env="production",
        secret_key="super-secure-value",
        payment_gateway_backend="STRIPE",
        stripe_api_key="sk_live_example",
    )
    assert settings.payment_gateway_backend == "stripe"


def test_redis_cache_backend_requires_url() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, availability_cache_backend="redis")


def test_tax_rates_parsed_from_json_string() -> None:
    settings = Settings(_env_file=None, tax_rates='{"us-tx": "0.0825", "EU-DE": 0.19}')
    assert settings.tax_rates == {"US-TX": Decimal("0.0825"), "EU-DE": Decimal("0.19")}


def test_tax_rate_of_one_hundred_percent_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, tax_rates={"US-TX": "1"})
