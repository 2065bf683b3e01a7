# storefront/services/payment/providers/cashfree_provider.py
import base64
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

import httpx

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
from ._http import GatewayHTTPClient

logger = logging.getLogger(__name__)

CASHFREE_EVENT_MAP: Dict[str, WebhookEventType] = {
    "PAYMENT_SUCCESS_WEBHOOK": WebhookEventType.PAYMENT_SUCCEEDED,
    "PAYMENT_FAILED_WEBHOOK": WebhookEventType.PAYMENT_FAILED,
    "PAYMENT_USER_DROPPED_WEBHOOK": WebhookEventType.PAYMENT_FAILED,
    "REFUND_STATUS_WEBHOOK": WebhookEventType.REFUNDED,
}

# Cashfree requires a phone number on every order
PLACEHOLDER_PHONE = "9999999999"


@dataclass
class CashfreeConfig:
    app_id: str
    secret_key: str
    api_base: str = "https://sandbox.cashfree.com/pg"
    api_version: str = "2022-09-01"


def to_major_units(amount: int) -> float:
    return float(Decimal(amount) / Decimal(100))


class CashfreeProvider(PaymentProviderInterface):
    """Cashfree Payment Gateway (PG) REST API."""

    def __init__(self, config: CashfreeConfig, http_client: Optional[httpx.AsyncClient] = None):
        self._config = config
        self._api = GatewayHTTPClient(
            config.api_base,
            provider_name="Cashfree",
            headers={
                "x-client-id": config.app_id,
                "x-client-secret": config.secret_key,
                "x-api-version": config.api_version,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            http_client=http_client,
        )

    @property
    def code(self) -> str:
        return "cashfree"

    @property
    def name(self) -> str:
        return "Cashfree"

    async def create_session(self, params: CreateSessionParams) -> PaymentSession:
        order_meta = {}
        if params.return_url:
            order_meta["return_url"] = params.return_url

        order = await self._api.request(
            "POST",
            "/orders",
            json={
                "order_id": params.order_id,
                "order_amount": to_major_units(params.amount),
                "order_currency": params.currency.upper(),
                "customer_details": {
                    "customer_id": params.customer_id,
                    "customer_email": params.customer_email,
                    "customer_name": params.customer_name,
                    "customer_phone": params.metadata.get("phone") or PLACEHOLDER_PHONE,
                },
                "order_meta": order_meta,
                "order_note": params.description[:200],
            },
        )
        session_id = order.get("payment_session_id")
        if not session_id:
            raise PaymentError("PROVIDER_ERROR", "Cashfree did not return a payment session")

        return PaymentSession(
            session_ref=order.get("order_id") or params.order_id,
            client_session_token=session_id,
            provider_metadata={
                "cf_order_id": order.get("cf_order_id"),
                "order_status": order.get("order_status"),
            },
        )

    async def confirm_payment(
        self,
        session_ref: str,
        verification: Optional[Dict[str, Any]] = None,
    ) -> PaymentConfirmation:
        # Client callbacks are not signed; always ask the gateway
        payments = await self._api.request("GET", f"/orders/{session_ref}/payments")
        if not isinstance(payments, list):
            payments = []

        for payment in payments:
            if payment.get("payment_status") == "SUCCESS":
                return PaymentConfirmation(
                    succeeded=True,
                    confirmation_id=str(payment.get("cf_payment_id")),
                    status="SUCCESS",
                )

        latest = payments[0].get("payment_status") if payments else "PENDING"
        return PaymentConfirmation(
            succeeded=False,
            status=latest,
            failure_message="No successful payment found",
        )

    def verify_webhook_signature(self, payload: bytes, headers: Mapping[str, str]) -> bool:
        signature = get_header(headers, "x-webhook-signature")
        timestamp = get_header(headers, "x-webhook-timestamp")
        if not signature or not timestamp:
            return False
        digest = hmac.new(
            self._config.secret_key.encode(),
            timestamp.encode() + payload,
            hashlib.sha256,
        ).digest()
        expected = base64.b64encode(digest).decode()
        return hmac.compare_digest(expected.encode(), signature.encode("utf-8", "replace"))

    def parse_webhook_event(
        self, payload: bytes, headers: Optional[Mapping[str, str]] = None
    ) -> WebhookEvent:
        try:
            body = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise PaymentError("PARSE_ERROR", "Could not parse webhook event") from e

        provider_type = body.get("type", "")
        data = body.get("data") or {}
        order = data.get("order") or {}
        payment = data.get("payment") or {}
        refund = data.get("refund") or {}

        session_ref = order.get("order_id") or refund.get("order_id")
        cf_payment_id = payment.get("cf_payment_id") or refund.get("cf_payment_id")
        confirmation_id = str(cf_payment_id) if cf_payment_id is not None else None

        event_type = CASHFREE_EVENT_MAP.get(provider_type, WebhookEventType.UNKNOWN)
        if event_type == WebhookEventType.REFUNDED and refund.get("refund_status") != "SUCCESS":
            event_type = WebhookEventType.UNKNOWN

        return WebhookEvent(
            event_id=hashlib.sha256(payload).hexdigest(),
            event_type=event_type,
            provider_event_type=provider_type or "unknown",
            session_ref=session_ref,
            confirmation_id=confirmation_id,
            data={
                "status": payment.get("payment_status") or refund.get("refund_status"),
                "failureMessage": payment.get("payment_message"),
            },
            raw_payload=body,
        )
