# storefront/models/coupon.py
import uuid
from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from storefront.db.base_class import Base
from storefront.utils.timestamps import utcnow


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class Coupon(Base):
    __tablename__ = "coupons"
    __table_args__ = (
        CheckConstraint(
            "discount_type IN ('percentage', 'fixed')", name="ck_coupons_discount_type"
        ),
        CheckConstraint("discount_value >= 0", name="ck_coupons_discount_value"),
        CheckConstraint("used_count >= 0", name="ck_coupons_used_count"),
    )

    id = Column(
        String, primary_key=True, default=lambda: f"cpn_{uuid.uuid4().hex[:12]}"
    )
    code = Column(String(50), unique=True, nullable=False, index=True)  # upper-cased
    description = Column(Text, nullable=True)

    discount_type = Column(String(20), nullable=False)
    # Percentage (0-100) or fixed amount in minor units
    discount_value = Column(Integer, nullable=False)

    # Rows imported without a window are treated as misconfigured
    valid_from = Column(DateTime(timezone=True), nullable=True)
    valid_until = Column(DateTime(timezone=True), nullable=True)

    usage_limit = Column(Integer, nullable=True)  # NULL = unlimited
    used_count = Column(Integer, nullable=False, default=0)

    specific_email = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

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

    redemptions = relationship(
        "CouponRedemption", back_populates="coupon", cascade="all, delete-orphan"
    )
