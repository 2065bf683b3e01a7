# storefront/db/base.py
# Import every model so Base.metadata is complete for create_all and Alembic.

from storefront.db.base_class import Base  # noqa: F401
from storefront.models import (  # noqa: F401
    Coupon,
    CouponRedemption,
    DownloadToken,
    Order,
    OrderItem,
    PaymentAuditLog,
    PaymentWebhookEvent,
    SiteSettings,
    Template,
)
