# storefront/api/v1/endpoints/coupons.py
from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from storefront import crud
from storefront.api.deps import get_current_user_optional, get_db
from storefront.core.errors import NotFoundError
from storefront.core.limiter import limiter
from storefront.schemas.coupon import VerifyCouponInput, VerifyCouponResponse
from storefront.schemas.token import TokenPayload
from storefront.services.coupon_engine import CouponEngine

router = APIRouter(prefix="/coupons", tags=["Coupons"])


@router.post("/verify", response_model=VerifyCouponResponse)
@limiter.limit("20/minute")
def verify_coupon(
    request: Request,
    coupon_in: VerifyCouponInput,
    db: Session = Depends(get_db),
    current_user: Optional[TokenPayload] = Depends(get_current_user_optional),
):
    """
    Preview a coupon against a template's catalog price.

    Rejections are reported in the body (``valid: false``), not as errors.
    """
    template = crud.template.get(db, id=coupon_in.template_id)
    if template is None:
        raise NotFoundError("Template not found", code="TEMPLATE_NOT_FOUND")

    buyer_email = coupon_in.email or (current_user.email if current_user else None)
    result = CouponEngine(db).validate(
        coupon_in.code, buyer_email=buyer_email, catalog_price=template.price
    )

    if not result.valid:
        return VerifyCouponResponse(valid=False, reason=result.reason, message=result.message)

    return VerifyCouponResponse(
        valid=True,
        code=result.coupon.code,
        discount_type=result.discount_type,
        discount_amount=result.discount_amount,
        final_price=result.final_price,
    )
