# storefront/crud/crud_coupon.py
import logging
from enum import Enum
from typing import List, Optional, Tuple

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.crud.base import CRUDBase
from storefront.models.coupon import Coupon
from storefront.models.coupon_redemption import CouponRedemption
from storefront.schemas.coupon import CouponCreate, CouponUpdate

logger = logging.getLogger(__name__)


class RedemptionOutcome(str, Enum):
    COUNTED = "counted"
    OVER_LIMIT = "over_limit"  # recorded, but the usage counter was already at its limit
    DUPLICATE = "duplicate"
    COUPON_MISSING = "coupon_missing"


class CRUDCoupon(CRUDBase[Coupon, CouponCreate, CouponUpdate]):
    """CRUD operations for Coupon model."""

    def get_by_code(self, db: Session, *, code: str) -> Optional[Coupon]:
        """Codes are stored upper-cased; lookups are case-insensitive."""
        return (
            db.query(self.model)
            .filter(self.model.code == code.strip().upper())
            .first()
        )

    def get_multi_ordered(
        self, db: Session, *, skip: int = 0, limit: int = 100
    ) -> Tuple[List[Coupon], int]:
        query = db.query(self.model)
        total = query.count()
        coupons = (
            query.order_by(self.model.created_at.desc()).offset(skip).limit(limit).all()
        )
        return coupons, total

    def create(self, db: Session, *, obj_in: CouponCreate) -> Coupon:
        data = obj_in.model_dump()
        data["discount_type"] = obj_in.discount_type.value
        if data.get("specific_email"):
            data["specific_email"] = data["specific_email"].lower()
        db_obj = self.model(**data, used_count=0)
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def update(self, db: Session, *, db_obj: Coupon, obj_in: CouponUpdate) -> Coupon:
        update_data = obj_in.model_dump(exclude_unset=True)
        if update_data.get("discount_type") is not None:
            update_data["discount_type"] = obj_in.discount_type.value
        if update_data.get("specific_email"):
            update_data["specific_email"] = update_data["specific_email"].lower()
        return super().update(db, db_obj=db_obj, obj_in=update_data)

    def record_redemption(
        self,
        db: Session,
        *,
        code: str,
        order_id: str,
        buyer_id: str,
        buyer_email: str,
        buyer_name: Optional[str],
        amount: int,
        discount_applied: int,
    ) -> RedemptionOutcome:
        """
        Append a redemption for ``order_id`` and bump ``used_count``.

        One redemption per (coupon, order): a replayed call is a no-op. The
        counter only moves while it is below ``usage_limit``.
        """
        coupon = self.get_by_code(db, code=code)
        if coupon is None:
            return RedemptionOutcome.COUPON_MISSING

        try:
            db.add(
                CouponRedemption(
                    coupon_id=coupon.id,
                    order_id=order_id,
                    buyer_id=buyer_id,
                    buyer_email=buyer_email,
                    buyer_name=buyer_name,
                    amount=amount,
                    discount_applied=discount_applied,
                )
            )
            db.flush()
        except IntegrityError:
            db.rollback()
            return RedemptionOutcome.DUPLICATE

        try:
            result = db.execute(
                update(self.model)
                .where(
                    self.model.id == coupon.id,
                    or_(
                        self.model.usage_limit.is_(None),
                        self.model.used_count < self.model.usage_limit,
                    ),
                )
                .values(used_count=self.model.used_count + 1)
                .execution_options(synchronize_session=False)
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        if result.rowcount == 1:
            return RedemptionOutcome.COUNTED
        return RedemptionOutcome.OVER_LIMIT

    def get_redemptions(
        self, db: Session, *, coupon_id: str, skip: int = 0, limit: int = 100
    ) -> List[CouponRedemption]:
        return (
            db.query(CouponRedemption)
            .filter(CouponRedemption.coupon_id == coupon_id)
            .order_by(CouponRedemption.redeemed_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )


coupon = CRUDCoupon(Coupon)
