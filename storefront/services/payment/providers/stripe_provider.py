# storefront/services/payment/providers/stripe_provider.py
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import stripe

from ..provider_interface import (
    CreateSessionParams,
    PaymentConfirmation,
    PaymentError,
    PaymentProviderInterface,
    PaymentSession,
    WebhookEvent,
    WebhookEventType,
    get_header,
)

logger = logging.getLogger(__name__)


@dataclass
class StripeConfig:
    """Configuration for Stripe provider."""
    secret_key: str
    publishable_key: Optional[str] = None
    webhook_secret: Optional[str] = None
    max_retries: int = 2


# Mapping from Stripe event types to our standardized event types
STRIPE_EVENT_MAP: Dict[str, WebhookEventType] = {
    "payment_intent.succeeded": WebhookEventType.PAYMENT_SUCCEEDED,
    "payment_intent.payment_failed": WebhookEventType.PAYMENT_FAILED,
    "payment_intent.canceled": WebhookEventType.PAYMENT_CANCELLED,
    "charge.refunded": WebhookEventType.REFUNDED,
}


class StripeProvider(PaymentProviderInterface):
    """
    Stripe PaymentIntents.

    SECURITY NOTES:
    - Never log full card details
    - Always verify webhook signatures
    - Use idempotency keys for all mutations
    """

    def __init__(self, config: StripeConfig, client: Optional[stripe.StripeClient] = None):
        self._config = config
        self._client = client or stripe.StripeClient(
            config.secret_key, max_network_retries=config.max_retries
        )

    @property
    def code(self) -> str:
        return "stripe"

    @property
    def name(self) -> str:
        return "Stripe"

    def get_publishable_key(self) -> Optional[str]:
        return self._config.publishable_key

    async def create_session(self, params: CreateSessionParams) -> PaymentSession:
        try:
            intent = self._client.payment_intents.create(
                params={
                    "amount": params.amount,
                    "currency": params.currency.lower(),
                    "description": params.description,
                    "receipt_email": params.customer_email,
                    "metadata": {
                        **params.metadata,
                        "order_id": params.order_id,
                        "customer_id": params.customer_id,
                    },
                    "automatic_payment_methods": {"enabled": True},
                },
                options={"idempotency_key": params.idempotency_key},
            )
        except stripe.RateLimitError as e:
            logger.error(f"Stripe rate limit creating payment intent: {e}")
            raise PaymentError("RATE_LIMIT", "Too many requests. Please try again.", retryable=True)
        except stripe.InvalidRequestError as e:
            logger.error(f"Invalid request creating payment intent: {e}")
            raise PaymentError("INVALID_REQUEST", str(e), retryable=False)
        except stripe.StripeError as e:
            logger.error(f"Stripe error creating payment intent: {e}")
            raise PaymentError(
                "PROVIDER_ERROR", "Payment service temporarily unavailable", retryable=True
            )

        return PaymentSession(
            session_ref=intent.id,
            client_session_token=intent.client_secret,
            public_key=self._config.publishable_key,
            provider_metadata={"livemode": intent.livemode},
        )

    async def confirm_payment(
        self,
        session_ref: str,
        verification: Optional[Dict[str, Any]] = None,
    ) -> PaymentConfirmation:
        try:
            intent = self._client.payment_intents.retrieve(session_ref)
        except stripe.StripeError as e:
            logger.error(f"Error retrieving payment intent {session_ref}: {e}")
            raise PaymentError(
                "PROVIDER_ERROR", "Could not retrieve payment status", retryable=True
            )

        if intent.status == "succeeded":
            return PaymentConfirmation(
                succeeded=True,
                confirmation_id=intent.latest_charge or intent.id,
                status=intent.status,
            )

        failure_message = None
        if intent.last_payment_error:
            failure_message = intent.last_payment_error.message
        return PaymentConfirmation(
            succeeded=False, status=intent.status, failure_message=failure_message
        )

    def verify_webhook_signature(self, payload: bytes, headers: Mapping[str, str]) -> bool:
        signature = get_header(headers, "Stripe-Signature")
        if not signature or not self._config.webhook_secret:
            return False
        try:
            self._client.construct_event(payload, signature, self._config.webhook_secret)
            return True
        except stripe.SignatureVerificationError:
            return False
        except ValueError as e:
            logger.error(f"Error verifying webhook signature: {e}")
            return False

    def parse_webhook_event(
        self, payload: bytes, headers: Optional[Mapping[str, str]] = None
    ) -> WebhookEvent:
        try:
            body = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise PaymentError("PARSE_ERROR", "Could not parse webhook event") from e

        provider_type = body.get("type", "")
        data_object = (body.get("data") or {}).get("object") or {}

        if data_object.get("object") == "charge":
            session_ref = data_object.get("payment_intent")
            confirmation_id = data_object.get("id")
        else:
            session_ref = data_object.get("id")
            confirmation_id = data_object.get("latest_charge")

        failure = data_object.get("last_payment_error") or {}

        return WebhookEvent(
            event_id=body.get("id") or "",
            event_type=STRIPE_EVENT_MAP.get(provider_type, WebhookEventType.UNKNOWN),
            provider_event_type=provider_type or "unknown",
            session_ref=session_ref,
            confirmation_id=confirmation_id,
            data={
                "status": data_object.get("status"),
                "amount": data_object.get("amount"),
                "failureMessage": failure.get("message"),
            },
            raw_payload=body,
        )
