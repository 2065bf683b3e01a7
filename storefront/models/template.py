# storefront/models/template.py
import uuid

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, func

from storefront.db.base_class import Base
from storefront.utils.timestamps import utcnow


class Template(Base):
    """A purchasable digital template. Prices are integer minor units."""

    __tablename__ = "templates"

    id = Column(
        String, primary_key=True, default=lambda: f"tpl_{uuid.uuid4().hex[:12]}"
    )
    slug = Column(String(200), unique=True, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    price = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="INR")

    is_available = Column(Boolean, nullable=False, default=True)
    stock_count = Column(Integer, nullable=True)  # NULL = unlimited
    sales_count = Column(Integer, nullable=False, default=0)

    download_file_url = Column(String(1024), nullable=True)

    created_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    @property
    def in_stock(self) -> bool:
        return self.stock_count is None or self.stock_count > 0
