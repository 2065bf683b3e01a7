from .template import Template
from .order import Order, OrderStatus
from .order_item import OrderItem
from .coupon import Coupon, DiscountType
from .coupon_redemption import CouponRedemption
from .download_token import DownloadToken
from .payment_webhook_event import PaymentWebhookEvent
from .payment_audit_log import PaymentAuditLog
from .site_settings import SiteSettings
