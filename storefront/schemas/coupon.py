# storefront/schemas/coupon.py
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from storefront.models.coupon import DiscountType
from storefront.utils.timestamps import TimestampParseError, to_datetime


class VerifyCouponInput(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    template_id: str = Field(..., min_length=1)
    email: Optional[EmailStr] = None


class VerifyCouponResponse(BaseModel):
    valid: bool
    reason: Optional[str] = None  # rejection code, e.g. COUPON_EXPIRED
    code: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_amount: int = 0
    final_price: Optional[int] = None
    message: Optional[str] = None


def _parse_instant(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return to_datetime(value)
    except TimestampParseError as e:
        raise ValueError(str(e)) from e


class CouponBase(BaseModel):
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: int = Field(..., ge=0)
    usage_limit: Optional[int] = Field(default=None, ge=1)
    specific_email: Optional[EmailStr] = None
    is_active: bool = True


class CouponCreate(CouponBase):
    code: str = Field(..., min_length=3, max_length=50)
    valid_from: datetime
    valid_until: datetime

    @field_validator("code")
    @classmethod
    def upper_code(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("valid_from", "valid_until", mode="before")
    @classmethod
    def parse_window(cls, v: Any) -> Optional[datetime]:
        return _parse_instant(v)

    @model_validator(mode="after")
    def check_values(self):
        if self.discount_type == DiscountType.PERCENTAGE and not 1 <= self.discount_value <= 100:
            raise ValueError("Percentage discount must be between 1 and 100")
        if self.discount_type == DiscountType.FIXED and self.discount_value < 1:
            raise ValueError("Fixed discount must be positive")
        if self.valid_from > self.valid_until:
            raise ValueError("valid_from must not be after valid_until")
        return self


class CouponUpdate(BaseModel):
    description: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[int] = Field(default=None, ge=0)
    usage_limit: Optional[int] = Field(default=None, ge=1)
    specific_email: Optional[EmailStr] = None
    is_active: Optional[bool] = None
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None

    @field_validator("valid_from", "valid_until", mode="before")
    @classmethod
    def parse_window(cls, v: Any) -> Optional[datetime]:
        return _parse_instant(v)


class CouponResponse(BaseModel):
    id: str
    code: str
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: int
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    usage_limit: Optional[int] = None
    used_count: int
    specific_email: Optional[str] = None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class CouponRedemptionResponse(BaseModel):
    order_id: str
    buyer_id: str
    buyer_email: str
    buyer_name: Optional[str] = None
    amount: int
    discount_applied: int
    redeemed_at: datetime

    model_config = {"from_attributes": True}


class CouponListResponse(BaseModel):
    coupons: List[CouponResponse]
    total: int
