from .token import TokenPayload
from .order import (
    CheckoutSessionResponse,
    CreateOrderInput,
    OrderListResponse,
    OrderResponse,
    VerifyOrderInput,
    VerifyOrderResponse,
)
from .coupon import (
    CouponCreate,
    CouponListResponse,
    CouponRedemptionResponse,
    CouponResponse,
    CouponUpdate,
    VerifyCouponInput,
    VerifyCouponResponse,
)
from .payment import AuditLogResponse, WebhookEventCreate, WebhookEventStatus
from .site_settings import SiteSettingsResponse, SiteSettingsUpdate
