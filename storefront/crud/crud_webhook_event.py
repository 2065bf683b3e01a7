# storefront/crud/crud_webhook_event.py
from typing import Optional

from sqlalchemy import and_
from sqlalchemy.orm import Session

from storefront.models.payment_webhook_event import PaymentWebhookEvent
from storefront.schemas.payment import WebhookEventCreate, WebhookEventStatus
from storefront.utils.timestamps import utcnow


class CRUDWebhookEvent:
    """CRUD operations for PaymentWebhookEvent model."""

    def __init__(self, model):
        self.model = model

    def get(self, db: Session, id: str) -> Optional[PaymentWebhookEvent]:
        return db.query(self.model).filter(self.model.id == id).first()

    def get_by_provider_event_id(
        self, db: Session, *, provider_code: str, provider_event_id: str
    ) -> Optional[PaymentWebhookEvent]:
        """Get a webhook event by provider's event ID."""
        return (
            db.query(self.model)
            .filter(
                and_(
                    self.model.provider_code == provider_code,
                    self.model.provider_event_id == provider_event_id,
                )
            )
            .first()
        )

    def is_already_processed(
        self, db: Session, *, provider_code: str, provider_event_id: str
    ) -> bool:
        event = self.get_by_provider_event_id(
            db, provider_code=provider_code, provider_event_id=provider_event_id
        )
        return event is not None and event.is_processed

    def upsert_event(
        self, db: Session, *, obj_in: WebhookEventCreate
    ) -> PaymentWebhookEvent:
        """Create the event record, or refresh the payload of a redelivery."""
        existing = self.get_by_provider_event_id(
            db,
            provider_code=obj_in.provider_code,
            provider_event_id=obj_in.provider_event_id,
        )

        if existing:
            existing.payload = obj_in.payload
            existing.signature_verified = obj_in.signature_verified
            existing.ip_address = obj_in.ip_address
            db_obj = existing
        else:
            db_obj = self.model(
                provider_code=obj_in.provider_code,
                provider_event_id=obj_in.provider_event_id,
                provider_event_type=obj_in.provider_event_type,
                payload=obj_in.payload,
                signature_verified=obj_in.signature_verified,
                ip_address=obj_in.ip_address,
                status=WebhookEventStatus.pending.value,
            )
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def _set_status(self, db: Session, event_id: str, **values) -> Optional[PaymentWebhookEvent]:
        event = self.get(db, id=event_id)
        if not event:
            return None
        for field, value in values.items():
            setattr(event, field, value)
        db.add(event)
        db.commit()
        db.refresh(event)
        return event

    def mark_processing(self, db: Session, *, event_id: str):
        return self._set_status(db, event_id, status=WebhookEventStatus.processing.value)

    def mark_processed(
        self, db: Session, *, event_id: str, related_order_id: Optional[str] = None
    ):
        values = {"status": WebhookEventStatus.processed.value, "processed_at": utcnow()}
        if related_order_id:
            values["related_order_id"] = related_order_id
        return self._set_status(db, event_id, **values)

    def mark_failed(self, db: Session, *, event_id: str, error: str):
        event = self.get(db, id=event_id)
        retry_count = (event.retry_count if event else 0) + 1
        return self._set_status(
            db,
            event_id,
            status=WebhookEventStatus.failed.value,
            processing_error=error,
            retry_count=retry_count,
        )


webhook_event = CRUDWebhookEvent(PaymentWebhookEvent)
