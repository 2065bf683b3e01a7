# storefront/schemas/order.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from storefront.models.order import OrderStatus


class CreateOrderInput(BaseModel):
    template_id: str = Field(..., min_length=1)
    coupon_code: Optional[str] = Field(default=None, max_length=50)
    # Overrides the token's email/name when the buyer supplies them at checkout
    buyer_email: Optional[EmailStr] = None
    buyer_name: Optional[str] = Field(default=None, max_length=255)
    provider: Optional[str] = None

    @field_validator("coupon_code")
    @classmethod
    def normalize_coupon(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip().upper()
        return v or None


class CheckoutSessionResponse(BaseModel):
    order_id: str
    status: OrderStatus
    provider: Optional[str] = None
    gateway_reference: Optional[str] = None
    client_session_token: Optional[str] = None
    public_key: Optional[str] = None
    currency: str
    subtotal: int
    discount_amount: int
    total_amount: int
    coupon_code: Optional[str] = None


class VerifyOrderInput(BaseModel):
    order_id: Optional[str] = None
    gateway_reference: Optional[str] = None
    payment_id: Optional[str] = None
    signature: Optional[str] = None

    @model_validator(mode="after")
    def require_reference(self):
        if not self.order_id and not self.gateway_reference:
            raise ValueError("order_id or gateway_reference is required")
        return self


class VerifyOrderResponse(BaseModel):
    message: str
    order_id: str
    status: OrderStatus
    total_amount: int
    currency: str
    already_verified: bool = False


class OrderItemResponse(BaseModel):
    template_id: str
    template_title: str
    price_at_purchase: int

    model_config = {"from_attributes": True}


class OrderResponse(BaseModel):
    id: str
    status: OrderStatus
    currency: str
    subtotal: int
    discount_amount: int
    total_amount: int
    coupon_code: Optional[str] = None
    payment_provider: Optional[str] = None
    items: List[OrderItemResponse] = []
    created_at: datetime
    paid_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class OrderListResponse(BaseModel):
    orders: List[OrderResponse]
    total: int
