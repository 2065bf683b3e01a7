# storefront/models/order.py
import uuid
from enum import Enum

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import relationship

from storefront.db.base_class import Base
from storefront.utils.timestamps import utcnow


class OrderStatus(str, Enum):
    CREATED = "created"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("subtotal >= 0", name="ck_orders_subtotal_non_negative"),
        CheckConstraint(
            "discount_amount >= 0 AND discount_amount <= subtotal",
            name="ck_orders_discount_bounds",
        ),
        CheckConstraint(
            "total_amount = subtotal - discount_amount", name="ck_orders_total"
        ),
        CheckConstraint(
            "status IN ('created', 'paid', 'failed', 'refunded')",
            name="ck_orders_status",
        ),
        # Velocity lookups: pending orders per buyer within a window
        Index("ix_orders_buyer_status_created", "buyer_id", "status", "created_at"),
    )

    id = Column(
        String, primary_key=True, default=lambda: f"ord_{uuid.uuid4().hex[:12]}"
    )

    # Buyer (identity comes from the bearer token)
    buyer_id = Column(String, nullable=False, index=True)
    buyer_email = Column(String(255), nullable=False)
    buyer_name = Column(String(255), nullable=True)

    status = Column(String(20), nullable=False, default=OrderStatus.CREATED.value)

    # Financial, all in minor units
    currency = Column(String(3), nullable=False)
    subtotal = Column(Integer, nullable=False)
    discount_amount = Column(Integer, nullable=False, default=0)
    total_amount = Column(Integer, nullable=False)
    coupon_code = Column(String(50), nullable=True)

    # Gateway
    payment_provider = Column(String(50), nullable=True)
    gateway_reference = Column(String(255), nullable=True, unique=True, index=True)
    confirmation_id = Column(String(255), nullable=True)

    # Tokens minted at fulfillment
    download_tokens = Column(JSON, nullable=False, default=list)

    paid_at = Column(DateTime(timezone=True), nullable=True)
    failed_at = Column(DateTime(timezone=True), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
    )

    @property
    def is_paid(self) -> bool:
        return self.status == OrderStatus.PAID.value

    @property
    def is_terminal(self) -> bool:
        """Failed and refunded orders can never become paid."""
        return self.status in (OrderStatus.FAILED.value, OrderStatus.REFUNDED.value)
