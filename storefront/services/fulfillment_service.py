# storefront/services/fulfillment_service.py
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.orm import Session

from storefront import crud
from storefront.core.errors import OrderAlreadyProcessedError
from storefront.models.order import Order
from storefront.services.audit import log_audit
from storefront.services.download_tokens import DownloadTokenIssuer
from storefront.services.post_purchase import OrderPaidEvent, PostPurchaseDispatcher

logger = logging.getLogger(__name__)


@dataclass
class FulfillmentResult:
    order: Order
    confirmation_id: Optional[str]
    tokens: List[str] = field(default_factory=list)
    already_fulfilled: bool = False


class FulfillmentService:
    """
    Turns a confirmed payment into a paid order.

    Token minting and the status flip commit together or not at all. The
    transition is idempotent: once an order is paid, later confirmations
    return the stored tokens and trigger no side effects.
    """

    def __init__(
        self,
        db: Session,
        *,
        dispatcher: Optional[PostPurchaseDispatcher] = None,
        token_issuer: Optional[DownloadTokenIssuer] = None,
    ):
        self.db = db
        self.dispatcher = dispatcher
        self.token_issuer = token_issuer or DownloadTokenIssuer()

    def _reject_terminal(self, order_id: str, status: str, confirmation_id: str) -> None:
        logger.critical(
            f"Payment {confirmation_id} confirmed for order {order_id} "
            f"in status {status}; manual reconciliation required"
        )
        log_audit(
            self.db,
            action="payment.integrity_violation",
            entity_id=order_id,
            confirmation_id=confirmation_id,
            status=status,
        )

    def fulfill(self, order: Order, confirmation_id: str) -> FulfillmentResult:
        if order.is_paid:
            logger.info(f"Order {order.id} already paid, returning existing tokens")
            return FulfillmentResult(
                order=order,
                confirmation_id=order.confirmation_id,
                tokens=list(order.download_tokens or []),
                already_fulfilled=True,
            )

        if order.is_terminal:
            self._reject_terminal(order.id, order.status, confirmation_id)
            raise OrderAlreadyProcessedError(order.id, order.status)

        order_id = order.id
        tokens = self.token_issuer.mint(order)
        try:
            paid_order, transitioned = crud.order.transition_to_paid(
                self.db,
                order_id=order_id,
                confirmation_id=confirmation_id,
                tokens=tokens,
            )
        except OrderAlreadyProcessedError as e:
            self._reject_terminal(order_id, e.status, confirmation_id)
            raise

        if not transitioned:
            logger.info(f"Order {order_id} was paid concurrently; no new tokens issued")
            return FulfillmentResult(
                order=paid_order,
                confirmation_id=paid_order.confirmation_id,
                tokens=list(paid_order.download_tokens or []),
                already_fulfilled=True,
            )

        token_values = list(paid_order.download_tokens or [])
        logger.info(
            f"Order {order_id} paid (confirmation {confirmation_id}), "
            f"{len(token_values)} download token(s) issued"
        )
        log_audit(
            self.db,
            action="order.paid",
            entity_id=order_id,
            previous_state={"status": "created"},
            new_state={"status": "paid"},
            confirmation_id=confirmation_id,
            token_count=len(token_values),
        )

        if self.dispatcher is not None:
            self.dispatcher.publish(OrderPaidEvent.from_order(paid_order))

        return FulfillmentResult(
            order=paid_order,
            confirmation_id=confirmation_id,
            tokens=token_values,
        )
