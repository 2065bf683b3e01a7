# storefront/core/limiter.py
"""
Rate limiter configuration module.
Separated to avoid circular imports.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from storefront.core.config import get_settings

# IP-based throttling for the public write endpoints. The per-buyer
# velocity guard lives in services.velocity_guard.
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=get_settings().RATE_LIMIT_STORAGE_URI,
)
