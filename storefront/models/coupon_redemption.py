# storefront/models/coupon_redemption.py
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import relationship

from storefront.db.base_class import Base
from storefront.utils.timestamps import utcnow


class CouponRedemption(Base):
    """Append-only record of a coupon applied to a paid order."""

    __tablename__ = "coupon_redemptions"
    __table_args__ = (
        UniqueConstraint("coupon_id", "order_id", name="uq_coupon_redemptions_coupon_order"),
    )

    id = Column(
        String, primary_key=True, default=lambda: f"cr_{uuid.uuid4().hex[:12]}"
    )
    coupon_id = Column(
        String, ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False, index=True
    )
    order_id = Column(String, ForeignKey("orders.id"), nullable=False, index=True)

    buyer_id = Column(String, nullable=False)
    buyer_email = Column(String(255), nullable=False)
    buyer_name = Column(String(255), nullable=True)

    amount = Column(Integer, nullable=False)  # amount paid, minor units
    discount_applied = Column(Integer, nullable=False)

    redeemed_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    coupon = relationship("Coupon", back_populates="redemptions")
