# storefront/models/payment_audit_log.py
import uuid

from sqlalchemy import JSON, Column, DateTime, String, func

from storefront.db.base_class import Base
from storefront.utils.timestamps import utcnow


class PaymentAuditLog(Base):
    __tablename__ = "payment_audit_log"

    id = Column(
        String, primary_key=True, default=lambda: f"pal_{uuid.uuid4().hex[:12]}"
    )

    # e.g. 'order.created', 'payment.session_created', 'order.paid', 'webhook.received'
    action = Column(String(100), nullable=False, index=True)

    actor_type = Column(String(50), nullable=False)  # 'buyer', 'system', 'webhook', 'admin'
    actor_id = Column(String, nullable=True)

    entity_type = Column(String(50), nullable=False)  # 'order', 'coupon', 'webhook'
    entity_id = Column(String, nullable=False, index=True)

    previous_state = Column(JSON, nullable=True)
    new_state = Column(JSON, nullable=True)
    change_details = Column(JSON, nullable=True)

    created_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
