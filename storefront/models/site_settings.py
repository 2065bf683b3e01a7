# storefront/models/site_settings.py
from sqlalchemy import Boolean, Column, DateTime, Integer, String, func

from storefront.db.base_class import Base
from storefront.utils.timestamps import utcnow


class SiteSettings(Base):
    """Single-row table of runtime-editable storefront switches."""

    __tablename__ = "site_settings"

    id = Column(Integer, primary_key=True, default=1)
    site_name = Column(String(255), nullable=False, default="Template Store")
    support_email = Column(String(255), nullable=True)
    default_currency = Column(String(3), nullable=False, default="INR")
    enable_payments = Column(Boolean, nullable=False, default=True)
    enable_email_notifications = Column(Boolean, nullable=False, default=True)

    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
        nullable=False,
    )
