# storefront/models/order_item.py
import uuid

from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from storefront.db.base_class import Base


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(
        String, primary_key=True, default=lambda: f"oi_{uuid.uuid4().hex[:12]}"
    )
    order_id = Column(
        String, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False, default=0)

    template_id = Column(String, ForeignKey("templates.id"), nullable=False)
    # Snapshot at purchase time
    template_title = Column(String(255), nullable=False)
    price_at_purchase = Column(Integer, nullable=False)

    order = relationship("Order", back_populates="items")
