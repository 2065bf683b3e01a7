# storefront/models/download_token.py
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, func

from storefront.db.base_class import Base
from storefront.utils.timestamps import utcnow


class DownloadToken(Base):
    __tablename__ = "download_tokens"

    id = Column(
        String, primary_key=True, default=lambda: f"dlt_{uuid.uuid4().hex[:12]}"
    )
    token = Column(String(64), unique=True, nullable=False, index=True)

    buyer_id = Column(String, nullable=False, index=True)
    template_id = Column(String, ForeignKey("templates.id"), nullable=False)
    order_id = Column(
        String, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )

    expires_at = Column(DateTime(timezone=True), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
