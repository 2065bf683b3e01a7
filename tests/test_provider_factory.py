from unittest.mock import MagicMock

import pytest

from storefront.core.config import Settings
from storefront.core.errors import PaymentNotConfiguredError
from storefront.services.payment.provider_factory import PaymentProviderFactory
from storefront.services.payment.providers import (
    CashfreeProvider,
    RazorpayProvider,
    StripeProvider,
)


def _settings(**overrides):
    values = {
        "RAZORPAY_KEY_ID": None,
        "RAZORPAY_KEY_SECRET": None,
        "CASHFREE_APP_ID": None,
        "CASHFREE_SECRET_KEY": None,
        "STRIPE_SECRET_KEY": None,
        "DEFAULT_PAYMENT_PROVIDER": None,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def test_builds_only_configured_providers():
    factory = PaymentProviderFactory(
        _settings(RAZORPAY_KEY_ID="rzp_key", RAZORPAY_KEY_SECRET="rzp_secret", STRIPE_SECRET_KEY="sk_test")
    )

    assert factory.available_providers() == ["razorpay", "stripe"]
    assert isinstance(factory.get_provider("razorpay"), RazorpayProvider)
    assert isinstance(factory.get_provider("stripe"), StripeProvider)
    assert factory.is_configured("cashfree") is False


def test_cashfree_mode_selects_api_base():
    settings = _settings(CASHFREE_APP_ID="app", CASHFREE_SECRET_KEY="secret", CASHFREE_MODE="PRODUCTION")
    factory = PaymentProviderFactory(settings)

    assert isinstance(factory.get_provider("cashfree"), CashfreeProvider)
    assert settings.CASHFREE_API_BASE == "https://api.cashfree.com/pg"


def test_no_credentials_means_no_providers():
    factory = PaymentProviderFactory(_settings())

    assert factory.available_providers() == []
    with pytest.raises(PaymentNotConfiguredError):
        factory.get_provider("razorpay")


def test_inr_routes_to_razorpay():
    razorpay, stripe = MagicMock(), MagicMock()
    factory = PaymentProviderFactory(_settings(), providers={"razorpay": razorpay, "stripe": stripe})

    assert factory.get_provider_for_currency("inr") is razorpay
    assert factory.get_provider_for_currency("USD") is stripe


def test_default_provider_before_fallback():
    cashfree, stripe = MagicMock(), MagicMock()
    factory = PaymentProviderFactory(
        _settings(DEFAULT_PAYMENT_PROVIDER="cashfree"),
        providers={"cashfree": cashfree, "stripe": stripe},
    )

    assert factory.get_provider_for_currency("INR") is cashfree
    assert factory.get_provider_for_currency("EUR") is cashfree


def test_buyer_preference_wins():
    razorpay, cashfree = MagicMock(), MagicMock()
    factory = PaymentProviderFactory(_settings(), providers={"razorpay": razorpay, "cashfree": cashfree})

    assert factory.get_provider_for_currency("INR", preferred="cashfree") is cashfree


def test_unconfigured_preference_fails():
    factory = PaymentProviderFactory(_settings(), providers={"razorpay": MagicMock()})
    with pytest.raises(PaymentNotConfiguredError):
        factory.get_provider_for_currency("INR", preferred="stripe")


def test_no_route_for_currency():
    factory = PaymentProviderFactory(_settings(), providers={"razorpay": MagicMock()})
    with pytest.raises(PaymentNotConfiguredError):
        factory.get_provider_for_currency("USD")
