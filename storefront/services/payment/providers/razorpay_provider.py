# storefront/services/payment/providers/razorpay_provider.py
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import httpx

from ..provider_interface import (
    CONFIRMATION_INVALID_SIGNATURE,
    CONFIRMATION_SESSION_MISMATCH,
    CreateSessionParams,
    PaymentConfirmation,
    PaymentError,
    PaymentProviderInterface,
    PaymentSession,
    WebhookEvent,
    WebhookEventType,
    get_header,
)
from ._http import GatewayHTTPClient

logger = logging.getLogger(__name__)

RAZORPAY_EVENT_MAP: Dict[str, WebhookEventType] = {
    "payment.captured": WebhookEventType.PAYMENT_SUCCEEDED,
    "order.paid": WebhookEventType.PAYMENT_SUCCEEDED,
    "payment.failed": WebhookEventType.PAYMENT_FAILED,
    "refund.processed": WebhookEventType.REFUNDED,
}


@dataclass
class RazorpayConfig:
    key_id: str
    key_secret: str
    webhook_secret: Optional[str] = None
    api_base: str = "https://api.razorpay.com/v1"


def compute_signature(secret: str, message: str) -> str:
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


class RazorpayProvider(PaymentProviderInterface):
    """
    Razorpay Orders API.

    The checkout widget returns ``razorpay_payment_id`` and a signature over
    ``"<order_id>|<payment_id>"`` keyed with the API secret.
    """

    def __init__(self, config: RazorpayConfig, http_client: Optional[httpx.AsyncClient] = None):
        self._config = config
        self._api = GatewayHTTPClient(
            config.api_base,
            provider_name="Razorpay",
            auth=(config.key_id, config.key_secret),
            http_client=http_client,
        )

    @property
    def code(self) -> str:
        return "razorpay"

    @property
    def name(self) -> str:
        return "Razorpay"

    def get_publishable_key(self) -> str:
        return self._config.key_id

    async def create_session(self, params: CreateSessionParams) -> PaymentSession:
        order = await self._api.request(
            "POST",
            "/orders",
            json={
                "amount": params.amount,
                "currency": params.currency.upper(),
                "receipt": params.order_id[:40],
                "notes": {
                    **params.metadata,
                    "order_id": params.order_id,
                    "customer_id": params.customer_id,
                },
            },
        )
        if not order.get("id"):
            raise PaymentError("PROVIDER_ERROR", "Razorpay did not return an order id")

        return PaymentSession(
            session_ref=order["id"],
            client_session_token=order["id"],
            public_key=self._config.key_id,
            provider_metadata={"status": order.get("status")},
        )

    async def confirm_payment(
        self,
        session_ref: str,
        verification: Optional[Dict[str, Any]] = None,
    ) -> PaymentConfirmation:
        if verification and verification.get("signature"):
            return self._verify_client_signature(session_ref, verification)
        return await self._fetch_captured_payment(session_ref)

    def _verify_client_signature(
        self, session_ref: str, verification: Dict[str, Any]
    ) -> PaymentConfirmation:
        payment_id = verification.get("payment_id")
        signature = verification.get("signature") or ""
        claimed_ref = verification.get("session_ref")

        if claimed_ref and claimed_ref != session_ref:
            logger.warning(
                f"Razorpay order mismatch: client sent {claimed_ref}, order has {session_ref}"
            )
            return PaymentConfirmation(
                succeeded=False,
                status=CONFIRMATION_SESSION_MISMATCH,
                failure_message="Order ID mismatch",
            )

        if not payment_id:
            return PaymentConfirmation(
                succeeded=False,
                status=CONFIRMATION_INVALID_SIGNATURE,
                failure_message="Missing payment id",
            )

        expected = compute_signature(self._config.key_secret, f"{session_ref}|{payment_id}")
        if not hmac.compare_digest(expected.encode(), signature.encode("utf-8", "replace")):
            logger.warning(f"Invalid Razorpay signature for order {session_ref}")
            return PaymentConfirmation(
                succeeded=False,
                status=CONFIRMATION_INVALID_SIGNATURE,
                failure_message="Invalid payment signature",
            )

        return PaymentConfirmation(
            succeeded=True, confirmation_id=payment_id, status="verified"
        )

    async def _fetch_captured_payment(self, session_ref: str) -> PaymentConfirmation:
        result = await self._api.request("GET", f"/orders/{session_ref}/payments")
        payments = result.get("items") or []

        for payment in payments:
            if payment.get("status") == "captured":
                return PaymentConfirmation(
                    succeeded=True, confirmation_id=payment.get("id"), status="captured"
                )

        latest = payments[0].get("status") if payments else "pending"
        return PaymentConfirmation(
            succeeded=False,
            status=latest,
            failure_message="No captured payment found",
        )

    def verify_webhook_signature(self, payload: bytes, headers: Mapping[str, str]) -> bool:
        secret = self._config.webhook_secret
        signature = get_header(headers, "X-Razorpay-Signature")
        if not secret or not signature:
            return False
        expected = hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()
        return hmac.compare_digest(expected.encode(), signature.encode("utf-8", "replace"))

    def parse_webhook_event(
        self, payload: bytes, headers: Optional[Mapping[str, str]] = None
    ) -> WebhookEvent:
        try:
            body = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise PaymentError("PARSE_ERROR", "Could not parse webhook event") from e

        provider_type = body.get("event", "")
        entities = body.get("payload") or {}
        payment = (entities.get("payment") or {}).get("entity") or {}
        order = (entities.get("order") or {}).get("entity") or {}
        refund = (entities.get("refund") or {}).get("entity") or {}

        session_ref = payment.get("order_id") or order.get("id")
        confirmation_id = payment.get("id") or refund.get("payment_id")

        event_id = get_header(headers or {}, "X-Razorpay-Event-Id")
        if not event_id:
            event_id = hashlib.sha256(payload).hexdigest()

        return WebhookEvent(
            event_id=event_id,
            event_type=RAZORPAY_EVENT_MAP.get(provider_type, WebhookEventType.UNKNOWN),
            provider_event_type=provider_type or "unknown",
            session_ref=session_ref,
            confirmation_id=confirmation_id,
            data={
                "status": payment.get("status"),
                "amount": payment.get("amount"),
                "failureMessage": payment.get("error_description"),
            },
            raw_payload=body,
        )
