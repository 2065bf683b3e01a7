# storefront/api/v1/endpoints/webhooks.py
"""
Webhook endpoints for payment providers.

SECURITY NOTES:
- Always verify webhook signatures
- Process events idempotently
- Success notifications are re-checked against the gateway status API
- Log all events for audit purposes
"""
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from storefront import crud
from storefront.api.deps import get_checkout_service, get_db, get_provider_factory
from storefront.core.errors import InvalidPaymentError, NotFoundError
from storefront.schemas.payment import WebhookEventCreate
from storefront.services.checkout_service import CheckoutService
from storefront.services.payment.provider_factory import KNOWN_PROVIDERS, PaymentProviderFactory
from storefront.services.payment.provider_interface import PaymentError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/{provider_code}")
async def payment_webhook(
    provider_code: str,
    request: Request,
    db: Session = Depends(get_db),
    provider_factory: PaymentProviderFactory = Depends(get_provider_factory),
    service: CheckoutService = Depends(get_checkout_service),
):
    """
    Handle a gateway notification.

    1. Verify the signature
    2. Skip events that were already processed
    3. Store the event, process it, record the outcome

    Processing errors still return 200: the event is stored and can be replayed.
    """
    if provider_code not in KNOWN_PROVIDERS:
        raise NotFoundError(f"Unknown payment provider: {provider_code}")

    body = await request.body()
    client_ip = request.client.host if request.client else None

    provider = provider_factory.get_provider(provider_code)
    if not provider.verify_webhook_signature(body, request.headers):
        logger.warning(f"Invalid {provider_code} webhook signature from {client_ip}")
        raise InvalidPaymentError("Invalid webhook signature")

    try:
        event = provider.parse_webhook_event(body, request.headers)
    except PaymentError as e:
        logger.warning(f"Unparseable {provider_code} webhook: {e.message}")
        raise InvalidPaymentError("Invalid webhook payload", code="INVALID_PAYLOAD")

    if crud.webhook_event.is_already_processed(
        db, provider_code=provider_code, provider_event_id=event.event_id
    ):
        logger.info(f"Event {event.event_id} already processed, skipping")
        return {"status": "already_processed"}

    webhook_event = crud.webhook_event.upsert_event(
        db,
        obj_in=WebhookEventCreate(
            provider_code=provider_code,
            provider_event_id=event.event_id,
            provider_event_type=event.provider_event_type,
            payload=event.raw_payload,
            signature_verified=True,
            ip_address=client_ip,
        ),
    )
    crud.webhook_event.mark_processing(db, event_id=webhook_event.id)

    try:
        result = await service.handle_gateway_event(provider_code, event)
    except Exception as e:
        logger.error(f"Error processing {provider_code} webhook event {event.event_id}: {e}")
        db.rollback()
        crud.webhook_event.mark_failed(db, event_id=webhook_event.id, error=str(e))
        return {"status": "processing_error", "event_id": event.event_id}

    crud.webhook_event.mark_processed(
        db, event_id=webhook_event.id, related_order_id=result.get("order_id")
    )
    logger.info(f"Processed {provider_code} webhook event {event.event_id} ({event.provider_event_type})")
    return {"status": "processed", "event_id": event.event_id}
