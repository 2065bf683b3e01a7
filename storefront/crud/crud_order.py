# storefront/crud/crud_order.py
import logging
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import func, update
from sqlalchemy.orm import Session, joinedload

from storefront.core.errors import OrderAlreadyProcessedError, OrderNotFoundError
from storefront.models.download_token import DownloadToken
from storefront.models.order import Order, OrderStatus
from storefront.models.order_item import OrderItem
from storefront.models.template import Template
from storefront.utils.timestamps import utcnow

logger = logging.getLogger(__name__)


class CRUDOrder:
    """Order persistence. Every status change is a conditional update."""

    def __init__(self, model):
        self.model = model

    def get(self, db: Session, id: str) -> Optional[Order]:
        return db.query(self.model).filter(self.model.id == id).first()

    def get_with_items(self, db: Session, *, order_id: str) -> Optional[Order]:
        """Get an order with its items loaded."""
        return (
            db.query(self.model)
            .options(joinedload(self.model.items))
            .filter(self.model.id == order_id)
            .first()
        )

    def get_by_gateway_reference(
        self, db: Session, *, gateway_reference: str
    ) -> Optional[Order]:
        return (
            db.query(self.model)
            .options(joinedload(self.model.items))
            .filter(self.model.gateway_reference == gateway_reference)
            .first()
        )

    def get_by_buyer(
        self, db: Session, *, buyer_id: str, skip: int = 0, limit: int = 50
    ) -> Tuple[List[Order], int]:
        """Get orders for a buyer, newest first."""
        query = db.query(self.model).filter(self.model.buyer_id == buyer_id)
        total = query.count()
        orders = (
            query.options(joinedload(self.model.items))
            .order_by(self.model.created_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
        return orders, total

    def count_recent_pending(
        self, db: Session, *, buyer_id: str, since: datetime
    ) -> int:
        """Count the buyer's orders still in ``created`` that were made after ``since``."""
        return (
            db.query(func.count(self.model.id))
            .filter(
                self.model.buyer_id == buyer_id,
                self.model.status == OrderStatus.CREATED.value,
                self.model.created_at >= since,
            )
            .scalar()
        )

    def create_order(
        self,
        db: Session,
        *,
        buyer_id: str,
        buyer_email: str,
        buyer_name: Optional[str],
        currency: str,
        templates: Sequence[Template],
        discount_amount: int = 0,
        coupon_code: Optional[str] = None,
        payment_provider: Optional[str] = None,
    ) -> Order:
        """Persist a new order in ``created`` with a price snapshot per item."""
        subtotal = sum(t.price for t in templates)
        db_obj = self.model(
            buyer_id=buyer_id,
            buyer_email=buyer_email,
            buyer_name=buyer_name,
            currency=currency,
            subtotal=subtotal,
            discount_amount=discount_amount,
            total_amount=subtotal - discount_amount,
            coupon_code=coupon_code,
            payment_provider=payment_provider,
            status=OrderStatus.CREATED.value,
            download_tokens=[],
        )
        for position, tpl in enumerate(templates):
            db_obj.items.append(
                OrderItem(
                    position=position,
                    template_id=tpl.id,
                    template_title=tpl.title,
                    price_at_purchase=tpl.price,
                )
            )
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def attach_gateway_session(
        self, db: Session, *, order: Order, gateway_reference: str
    ) -> Order:
        order.gateway_reference = gateway_reference
        db.add(order)
        db.commit()
        db.refresh(order)
        return order

    def _conditional_status_update(
        self, db: Session, *, order_id: str, from_status: str, values: dict
    ) -> bool:
        result = db.execute(
            update(self.model)
            .where(self.model.id == order_id, self.model.status == from_status)
            .values(**values, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def _mark_paid_if_created(
        self,
        db: Session,
        *,
        order_id: str,
        confirmation_id: str,
        token_values: List[str],
    ) -> bool:
        return self._conditional_status_update(
            db,
            order_id=order_id,
            from_status=OrderStatus.CREATED.value,
            values={
                "status": OrderStatus.PAID.value,
                "confirmation_id": confirmation_id,
                "download_tokens": token_values,
                "paid_at": utcnow(),
            },
        )

    def transition_to_paid(
        self,
        db: Session,
        *,
        order_id: str,
        confirmation_id: str,
        tokens: Sequence[DownloadToken],
    ) -> Tuple[Order, bool]:
        """
        Flip ``created -> paid`` and persist ``tokens`` in one transaction.

        Returns (order, transitioned). ``transitioned`` is False when another
        caller already marked the order paid; in that case nothing is written
        and the existing tokens stay authoritative.

        Raises:
            OrderNotFoundError: no such order
            OrderAlreadyProcessedError: the order is ``failed`` or ``refunded``
        """
        try:
            flipped = self._mark_paid_if_created(
                db,
                order_id=order_id,
                confirmation_id=confirmation_id,
                token_values=[t.token for t in tokens],
            )
            if not flipped:
                db.rollback()
                current = self.get_with_items(db, order_id=order_id)
                if current is None:
                    raise OrderNotFoundError()
                if current.status == OrderStatus.PAID.value:
                    return current, False
                raise OrderAlreadyProcessedError(current.id, current.status)

            db.add_all(tokens)
            db.flush()
            db.commit()
        except Exception:
            db.rollback()
            raise

        return self.get_with_items(db, order_id=order_id), True

    def mark_failed(self, db: Session, *, order_id: str) -> bool:
        """``created -> failed``. Returns False if the order was not pending."""
        try:
            changed = self._conditional_status_update(
                db,
                order_id=order_id,
                from_status=OrderStatus.CREATED.value,
                values={"status": OrderStatus.FAILED.value, "failed_at": utcnow()},
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        return changed

    def transition_to_refunded(self, db: Session, *, order_id: str) -> bool:
        """``paid -> refunded``. Returns False if the order was not paid."""
        try:
            changed = self._conditional_status_update(
                db,
                order_id=order_id,
                from_status=OrderStatus.PAID.value,
                values={"status": OrderStatus.REFUNDED.value, "refunded_at": utcnow()},
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        return changed


order = CRUDOrder(Order)
