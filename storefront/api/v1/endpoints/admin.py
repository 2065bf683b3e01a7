# storefront/api/v1/endpoints/admin.py
import logging
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from storefront import crud
from storefront.api.deps import get_current_admin, get_db, get_settings
from storefront.core.config import Settings
from storefront.core.email import send_purchase_email
from storefront.core.errors import (
    AppError,
    ConflictError,
    NotFoundError,
    OrderNotFoundError,
    ValidationError,
)
from storefront.models.coupon import DiscountType
from storefront.schemas.coupon import (
    CouponCreate,
    CouponListResponse,
    CouponRedemptionResponse,
    CouponResponse,
    CouponUpdate,
)
from storefront.schemas.payment import AuditLogResponse
from storefront.schemas.site_settings import SiteSettingsResponse, SiteSettingsUpdate
from storefront.schemas.token import TokenPayload
from storefront.services.audit import log_audit
from storefront.utils.timestamps import to_epoch_millis

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


# --- Coupons ---

@router.get("/coupons", response_model=CouponListResponse)
def list_coupons(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    admin: TokenPayload = Depends(get_current_admin),
):
    coupons, total = crud.coupon.get_multi_ordered(db, skip=skip, limit=limit)
    return CouponListResponse(
        coupons=[CouponResponse.model_validate(c) for c in coupons], total=total
    )


@router.post("/coupons", response_model=CouponResponse, status_code=status.HTTP_201_CREATED)
def create_coupon(
    coupon_in: CouponCreate,
    db: Session = Depends(get_db),
    admin: TokenPayload = Depends(get_current_admin),
):
    if crud.coupon.get_by_code(db, code=coupon_in.code):
        raise ConflictError("Coupon code already exists", code="COUPON_EXISTS")

    coupon = crud.coupon.create(db, obj_in=coupon_in)
    log_audit(
        db,
        action="coupon.created",
        entity_type="coupon",
        entity_id=coupon.id,
        actor_type="admin",
        actor_id=admin.sub,
        code=coupon.code,
    )
    logger.info(f"Coupon {coupon.code} created by {admin.sub}")
    return coupon


@router.patch("/coupons/{coupon_id}", response_model=CouponResponse)
def update_coupon(
    coupon_id: str,
    coupon_in: CouponUpdate,
    db: Session = Depends(get_db),
    admin: TokenPayload = Depends(get_current_admin),
):
    coupon = crud.coupon.get(db, id=coupon_id)
    if coupon is None:
        raise NotFoundError("Coupon not found", code="COUPON_NOT_FOUND")

    changes = coupon_in.model_dump(exclude_unset=True)
    valid_from = changes.get("valid_from", coupon.valid_from)
    valid_until = changes.get("valid_until", coupon.valid_until)
    if valid_from is not None and valid_until is not None:
        if to_epoch_millis(valid_from) > to_epoch_millis(valid_until):
            raise ValidationError("valid_from must not be after valid_until")

    discount_type = changes.get("discount_type") or coupon.discount_type
    discount_value = changes.get("discount_value", coupon.discount_value)
    if discount_type == DiscountType.PERCENTAGE and not 1 <= discount_value <= 100:
        raise ValidationError("Percentage discount must be between 1 and 100")

    coupon = crud.coupon.update(db, db_obj=coupon, obj_in=coupon_in)
    log_audit(
        db,
        action="coupon.updated",
        entity_type="coupon",
        entity_id=coupon.id,
        actor_type="admin",
        actor_id=admin.sub,
        fields=sorted(changes),
    )
    return coupon


@router.get(
    "/coupons/{coupon_id}/redemptions",
    response_model=List[CouponRedemptionResponse],
)
def list_coupon_redemptions(
    coupon_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    admin: TokenPayload = Depends(get_current_admin),
):
    if crud.coupon.get(db, id=coupon_id) is None:
        raise NotFoundError("Coupon not found", code="COUPON_NOT_FOUND")
    return crud.coupon.get_redemptions(db, coupon_id=coupon_id, skip=skip, limit=limit)


# --- Site settings ---

@router.get("/settings", response_model=SiteSettingsResponse)
def read_site_settings(
    db: Session = Depends(get_db),
    admin: TokenPayload = Depends(get_current_admin),
):
    return crud.site_settings.get_current(db)


@router.put("/settings", response_model=SiteSettingsResponse)
def update_site_settings(
    settings_in: SiteSettingsUpdate,
    db: Session = Depends(get_db),
    admin: TokenPayload = Depends(get_current_admin),
):
    row = crud.site_settings.update(db, obj_in=settings_in)
    log_audit(
        db,
        action="settings.updated",
        entity_type="site_settings",
        entity_id=str(row.id),
        actor_type="admin",
        actor_id=admin.sub,
        new_state=settings_in.model_dump(exclude_unset=True),
    )
    return row


# --- Orders ---

@router.post("/orders/{order_id}/resend-email")
def resend_order_email(
    order_id: str,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    admin: TokenPayload = Depends(get_current_admin),
):
    """Re-send the purchase email of a paid order with its stored download links."""
    order = crud.order.get_with_items(db, order_id=order_id)
    if order is None:
        raise OrderNotFoundError()
    if not order.is_paid:
        raise ValidationError("Order is not paid", code="ORDER_NOT_PAID")

    result = send_purchase_email(
        settings,
        to_email=order.buyer_email,
        buyer_name=order.buyer_name,
        order_id=order.id,
        item_titles=[item.template_title for item in order.items],
        tokens=list(order.download_tokens or []),
        total_amount=order.total_amount,
        currency=order.currency,
    )
    if not result.get("success"):
        raise AppError(
            f"Failed to send email: {result.get('error')}",
            code="EMAIL_FAILED",
            status_code=502,
        )

    log_audit(
        db,
        action="order.email_resent",
        entity_id=order.id,
        actor_type="admin",
        actor_id=admin.sub,
    )
    return {"message": "Email sent successfully", "order_id": order.id}


# --- Audit trail ---

@router.get("/audit-logs", response_model=List[AuditLogResponse])
def list_audit_logs(
    entity_id: str = Query(..., min_length=1),
    entity_type: str = Query("order"),
    db: Session = Depends(get_db),
    admin: TokenPayload = Depends(get_current_admin),
):
    """Audit entries of one entity, oldest first."""
    return crud.audit_log.get_by_entity(db, entity_type=entity_type, entity_id=entity_id)
