# storefront/services/download_tokens.py
import re
import secrets
from datetime import datetime, timedelta
from typing import List, Optional

from storefront.models.download_token import DownloadToken
from storefront.models.order import Order
from storefront.utils.timestamps import utcnow

# 32 random bytes -> 64 hex characters (256 bits)
TOKEN_BYTES = 32
TOKEN_PATTERN = re.compile(r"^[0-9a-f]{64}$")


def generate_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def is_well_formed(token: str) -> bool:
    return bool(TOKEN_PATTERN.match(token or ""))


class DownloadTokenIssuer:
    """Mints one unpersisted download token per order item."""

    def __init__(self, ttl_days: int = 7):
        self.ttl = timedelta(days=ttl_days)

    def mint(self, order: Order, *, now: Optional[datetime] = None) -> List[DownloadToken]:
        issued_at = now or utcnow()
        return [
            DownloadToken(
                token=generate_token(),
                buyer_id=order.buyer_id,
                template_id=item.template_id,
                order_id=order.id,
                expires_at=issued_at + self.ttl,
                created_at=issued_at,
            )
            for item in order.items
        ]
