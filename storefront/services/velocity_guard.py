# storefront/services/velocity_guard.py
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from storefront import crud
from storefront.core.errors import VelocityLimitExceededError
from storefront.utils.timestamps import utcnow

logger = logging.getLogger(__name__)


class VelocityGuard:
    """Caps how many unpaid orders a buyer may hold open within a sliding window."""

    def __init__(self, db: Session, *, limit: int = 5, window_minutes: int = 60):
        self.db = db
        self.limit = limit
        self.window_minutes = window_minutes

    def check(self, buyer_id: str, *, now: Optional[datetime] = None) -> int:
        """Return the current pending count, or raise when the cap is reached."""
        since = (now or utcnow()) - timedelta(minutes=self.window_minutes)
        pending = crud.order.count_recent_pending(self.db, buyer_id=buyer_id, since=since)
        if pending >= self.limit:
            logger.warning(
                f"Velocity limit hit for buyer {buyer_id}: "
                f"{pending} pending orders in the last {self.window_minutes} minutes"
            )
            raise VelocityLimitExceededError(self.limit, self.window_minutes)
        return pending
