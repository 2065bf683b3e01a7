# storefront/services/post_purchase.py
"""
Best-effort side effects that follow a committed ``created -> paid``
transition: coupon usage accounting and the purchase email.

Handlers run after the response is produced (FastAPI BackgroundTasks)
or inline when no task queue is available. Each handler opens its own
database session and a failure in one never affects the order or the
other handlers.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from fastapi import BackgroundTasks

from storefront import crud
from storefront.core.config import Settings
from storefront.core.email import send_purchase_email
from storefront.crud.crud_coupon import RedemptionOutcome
from storefront.models.order import Order

logger = logging.getLogger(__name__)


@dataclass
class OrderPaidEvent:
    order_id: str
    buyer_id: str
    buyer_email: str
    buyer_name: Optional[str]
    currency: str
    total_amount: int
    discount_amount: int
    coupon_code: Optional[str]
    item_titles: List[str] = field(default_factory=list)
    tokens: List[str] = field(default_factory=list)

    @classmethod
    def from_order(cls, order: Order) -> "OrderPaidEvent":
        return cls(
            order_id=order.id,
            buyer_id=order.buyer_id,
            buyer_email=order.buyer_email,
            buyer_name=order.buyer_name,
            currency=order.currency,
            total_amount=order.total_amount,
            discount_amount=order.discount_amount,
            coupon_code=order.coupon_code,
            item_titles=[item.template_title for item in order.items],
            tokens=list(order.download_tokens or []),
        )


class PostPurchaseDispatcher:
    def __init__(
        self,
        session_factory: Callable,
        settings: Settings,
        background_tasks: Optional[BackgroundTasks] = None,
        email_sender: Callable = send_purchase_email,
    ):
        self.session_factory = session_factory
        self.settings = settings
        self.background_tasks = background_tasks
        self.email_sender = email_sender

    @property
    def handlers(self):
        return [self.record_coupon_redemption, self.send_purchase_notification]

    def publish(self, event: OrderPaidEvent) -> None:
        if self.background_tasks is not None:
            self.background_tasks.add_task(self.run, event)
        else:
            self.run(event)

    def run(self, event: OrderPaidEvent) -> None:
        for handler in self.handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(
                    f"Post-purchase handler {handler.__name__} failed for order {event.order_id}"
                )

    def record_coupon_redemption(self, event: OrderPaidEvent) -> None:
        if not event.coupon_code:
            return

        db = self.session_factory()
        try:
            outcome = crud.coupon.record_redemption(
                db,
                code=event.coupon_code,
                order_id=event.order_id,
                buyer_id=event.buyer_id,
                buyer_email=event.buyer_email,
                buyer_name=event.buyer_name,
                amount=event.total_amount,
                discount_applied=event.discount_amount,
            )
        finally:
            db.close()

        if outcome == RedemptionOutcome.OVER_LIMIT:
            logger.warning(
                f"Coupon {event.coupon_code} redeemed by order {event.order_id} "
                "after reaching its usage limit"
            )
        elif outcome == RedemptionOutcome.COUPON_MISSING:
            logger.warning(
                f"Coupon {event.coupon_code} for order {event.order_id} no longer exists"
            )
        else:
            logger.info(f"Coupon {event.coupon_code} redemption for {event.order_id}: {outcome.value}")

    def send_purchase_notification(self, event: OrderPaidEvent) -> None:
        db = self.session_factory()
        try:
            enabled = crud.site_settings.get_current(db).enable_email_notifications
        finally:
            db.close()

        if not enabled:
            logger.info(f"Email notifications disabled, skipping order {event.order_id}")
            return

        result = self.email_sender(
            self.settings,
            to_email=event.buyer_email,
            buyer_name=event.buyer_name,
            order_id=event.order_id,
            item_titles=event.item_titles,
            tokens=event.tokens,
            total_amount=event.total_amount,
            currency=event.currency,
        )
        if not result.get("success"):
            logger.warning(
                f"Purchase email for order {event.order_id} not sent: {result.get('error')}"
            )
