# storefront/services/coupon_engine.py
"""
Coupon evaluation.

Evaluation is read-only: usage is only recorded after an order is paid
(see services.post_purchase).
"""
import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy.orm import Session

from storefront import crud
from storefront.core.errors import CouponRejectedError
from storefront.models.coupon import Coupon, DiscountType
from storefront.utils.timestamps import TimestampParseError, to_epoch_millis, utcnow

logger = logging.getLogger(__name__)

COUPON_INVALID = "COUPON_INVALID"
COUPON_EXPIRED = "COUPON_EXPIRED"
COUPON_LIMIT_REACHED = "COUPON_LIMIT_REACHED"
COUPON_INVALID_EMAIL = "COUPON_INVALID_EMAIL"

REJECTION_MESSAGES = {
    COUPON_INVALID: "Invalid coupon code",
    COUPON_EXPIRED: "This coupon has expired or is not yet active",
    COUPON_LIMIT_REACHED: "This coupon has reached its usage limit",
    COUPON_INVALID_EMAIL: "This coupon is not valid for your email address",
}


@dataclass
class CouponValidation:
    valid: bool
    reason: Optional[str] = None
    discount_type: Optional[str] = None
    discount_amount: int = 0
    final_price: Optional[int] = None
    coupon: Optional[Coupon] = None

    @property
    def message(self) -> Optional[str]:
        return REJECTION_MESSAGES.get(self.reason) if self.reason else None

    def raise_if_invalid(self) -> None:
        if not self.valid:
            raise CouponRejectedError(self.reason, self.message)


def compute_discount(discount_type: str, discount_value: int, price: int) -> int:
    """
    Discount in minor units, never more than ``price``.

    Percentages round half-up to the nearest minor unit.
    """
    if price <= 0:
        return 0
    if discount_type == DiscountType.PERCENTAGE.value:
        raw = (Decimal(price) * Decimal(discount_value) / Decimal(100)).quantize(
            Decimal(1), rounding=ROUND_HALF_UP
        )
        discount = int(raw)
    else:
        discount = int(discount_value)
    return max(0, min(discount, price))


def evaluate_coupon(
    coupon: Optional[Coupon],
    *,
    buyer_email: Optional[str],
    price: int,
    now_ms: int,
) -> CouponValidation:
    """
    Apply the coupon rules in order: existence/active, validity window
    (inclusive on both ends), usage limit, email restriction.
    """
    if coupon is None or not coupon.is_active:
        return CouponValidation(valid=False, reason=COUPON_INVALID)

    try:
        valid_from = to_epoch_millis(coupon.valid_from)
        valid_until = to_epoch_millis(coupon.valid_until)
    except TimestampParseError as e:
        logger.warning(f"Coupon {coupon.code} has an unusable validity window: {e}")
        return CouponValidation(valid=False, reason=COUPON_INVALID)

    if now_ms < valid_from or now_ms > valid_until:
        return CouponValidation(valid=False, reason=COUPON_EXPIRED)

    if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
        return CouponValidation(valid=False, reason=COUPON_LIMIT_REACHED)

    if coupon.specific_email:
        if not buyer_email or buyer_email.strip().lower() != coupon.specific_email.strip().lower():
            return CouponValidation(valid=False, reason=COUPON_INVALID_EMAIL)

    discount = compute_discount(coupon.discount_type, coupon.discount_value, price)
    return CouponValidation(
        valid=True,
        discount_type=coupon.discount_type,
        discount_amount=discount,
        final_price=price - discount,
        coupon=coupon,
    )


class CouponEngine:
    def __init__(self, db: Session):
        self.db = db

    def validate(
        self,
        code: str,
        *,
        buyer_email: Optional[str],
        catalog_price: int,
        now=None,
    ) -> CouponValidation:
        coupon = crud.coupon.get_by_code(self.db, code=code) if code and code.strip() else None
        now_ms = to_epoch_millis(now if now is not None else utcnow())
        result = evaluate_coupon(
            coupon, buyer_email=buyer_email, price=catalog_price, now_ms=now_ms
        )
        if not result.valid:
            logger.info(f"Coupon {code!r} rejected: {result.reason}")
        return result
