# storefront/crud/__init__.py

from .crud_audit_log import audit_log
from .crud_coupon import coupon
from .crud_download_token import download_token
from .crud_order import order
from .crud_site_settings import site_settings
from .crud_template import template
from .crud_webhook_event import webhook_event
