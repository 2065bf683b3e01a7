# storefront/api/v1/endpoints/orders.py
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from storefront import crud
from storefront.api.deps import get_checkout_service, get_current_user, get_db
from storefront.core.limiter import limiter
from storefront.schemas.order import (
    CheckoutSessionResponse,
    CreateOrderInput,
    OrderListResponse,
    OrderResponse,
    VerifyOrderInput,
    VerifyOrderResponse,
)
from storefront.schemas.token import TokenPayload
from storefront.services.checkout_service import CheckoutService

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post(
    "",
    response_model=CheckoutSessionResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("10/minute")
async def create_order(
    request: Request,
    order_in: CreateOrderInput,
    current_user: TokenPayload = Depends(get_current_user),
    service: CheckoutService = Depends(get_checkout_service),
):
    """
    Create an order for one template and open a payment session.

    Free orders (total 0 after discount) are fulfilled immediately and come
    back with status ``paid``.
    """
    return await service.create_order(buyer=current_user, input_data=order_in)


@router.post("/verify", response_model=VerifyOrderResponse)
async def verify_order(
    verify_in: VerifyOrderInput,
    service: CheckoutService = Depends(get_checkout_service),
):
    """
    Confirm a payment reported by the client.

    Idempotent: verifying an already paid order succeeds without side effects.
    """
    return await service.verify_order(verify_in)


@router.get("/me", response_model=OrderListResponse)
def list_my_orders(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(get_current_user),
):
    orders, total = crud.order.get_by_buyer(
        db, buyer_id=current_user.sub, skip=skip, limit=limit
    )
    return OrderListResponse(
        orders=[OrderResponse.model_validate(o) for o in orders], total=total
    )
