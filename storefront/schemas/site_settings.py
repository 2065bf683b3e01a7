# storefront/schemas/site_settings.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class SiteSettingsUpdate(BaseModel):
    site_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    support_email: Optional[EmailStr] = None
    default_currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    enable_payments: Optional[bool] = None
    enable_email_notifications: Optional[bool] = None


class SiteSettingsResponse(BaseModel):
    site_name: str
    support_email: Optional[str] = None
    default_currency: str
    enable_payments: bool
    enable_email_notifications: bool
    updated_at: datetime

    model_config = {"from_attributes": True}
