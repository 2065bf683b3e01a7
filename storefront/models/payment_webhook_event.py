# storefront/models/payment_webhook_event.py
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)

from storefront.db.base_class import Base
from storefront.utils.timestamps import utcnow


class PaymentWebhookEvent(Base):
    __tablename__ = "payment_webhook_events"
    __table_args__ = (
        UniqueConstraint(
            "provider_code", "provider_event_id", name="uq_webhook_provider_event"
        ),
    )

    id = Column(
        String, primary_key=True, default=lambda: f"whe_{uuid.uuid4().hex[:12]}"
    )

    provider_code = Column(String(50), nullable=False)
    provider_event_id = Column(String(255), nullable=False)
    provider_event_type = Column(String(100), nullable=False)

    status = Column(String(20), nullable=False, default="pending")
    # Values: 'pending', 'processing', 'processed', 'failed'

    payload = Column(JSON, nullable=False)
    signature_verified = Column(Boolean, nullable=False, default=False)

    processed_at = Column(DateTime(timezone=True), nullable=True)
    processing_error = Column(Text, nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)

    related_order_id = Column(String, ForeignKey("orders.id"), nullable=True)

    ip_address = Column(String(45), nullable=True)
    received_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    @property
    def is_processed(self) -> bool:
        return self.status == "processed"
