# storefront/services/payment/provider_factory.py
import logging
from typing import Dict, List, Optional

from storefront.core.config import Settings
from storefront.core.errors import PaymentNotConfiguredError

from .provider_interface import PaymentProviderInterface
from .providers import (
    CashfreeConfig,
    CashfreeProvider,
    RazorpayConfig,
    RazorpayProvider,
    StripeConfig,
    StripeProvider,
)

logger = logging.getLogger(__name__)

# Currency to provider routing configuration
PROVIDER_ROUTING: Dict[str, str] = {
    "INR": "razorpay",
}

FALLBACK_PROVIDER = "stripe"
KNOWN_PROVIDERS = ("razorpay", "cashfree", "stripe")


class PaymentProviderFactory:
    """
    Builds the configured payment providers from settings and routes
    checkouts to one of them.

    One instance is created per application and handed to request
    handlers through a dependency.
    """

    def __init__(self, settings: Settings, providers: Optional[Dict[str, PaymentProviderInterface]] = None):
        self._settings = settings
        if providers is not None:
            self._providers = dict(providers)
        else:
            self._providers = {}
            self._initialize_providers()

    def _initialize_providers(self) -> None:
        s = self._settings

        if s.razorpay_configured:
            self._providers["razorpay"] = RazorpayProvider(
                RazorpayConfig(
                    key_id=s.RAZORPAY_KEY_ID,
                    key_secret=s.RAZORPAY_KEY_SECRET,
                    webhook_secret=s.RAZORPAY_WEBHOOK_SECRET,
                    api_base=s.RAZORPAY_API_BASE,
                )
            )
            logger.info("Razorpay payment provider initialized")

        if s.cashfree_configured:
            self._providers["cashfree"] = CashfreeProvider(
                CashfreeConfig(
                    app_id=s.CASHFREE_APP_ID,
                    secret_key=s.CASHFREE_SECRET_KEY,
                    api_base=s.CASHFREE_API_BASE,
                    api_version=s.CASHFREE_API_VERSION,
                )
            )
            logger.info(f"Cashfree payment provider initialized ({s.CASHFREE_MODE})")

        if s.stripe_configured:
            self._providers["stripe"] = StripeProvider(
                StripeConfig(
                    secret_key=s.STRIPE_SECRET_KEY,
                    publishable_key=s.STRIPE_PUBLISHABLE_KEY,
                    webhook_secret=s.STRIPE_WEBHOOK_SECRET,
                )
            )
            logger.info("Stripe payment provider initialized")

        if not self._providers:
            logger.warning("No payment provider configured: missing credentials")

    def is_configured(self, code: str) -> bool:
        return code in self._providers

    def available_providers(self) -> List[str]:
        return sorted(self._providers)

    def get_provider(self, code: str) -> PaymentProviderInterface:
        """
        Raises:
            PaymentNotConfiguredError: the provider has no credentials
        """
        provider = self._providers.get(code)
        if not provider:
            logger.error(f"Payment provider '{code}' requested but not configured")
            raise PaymentNotConfiguredError()
        return provider

    def get_provider_for_currency(
        self, currency: str, preferred: Optional[str] = None
    ) -> PaymentProviderInterface:
        """
        Selection order: the buyer's explicit choice, the currency route,
        the configured default, then Stripe.
        """
        if preferred:
            return self.get_provider(preferred)

        candidates = [
            PROVIDER_ROUTING.get(currency.upper()),
            self._settings.DEFAULT_PAYMENT_PROVIDER,
            FALLBACK_PROVIDER,
        ]
        for code in candidates:
            if code and code in self._providers:
                return self._providers[code]

        logger.error(f"No payment provider configured for currency {currency}")
        raise PaymentNotConfiguredError()
