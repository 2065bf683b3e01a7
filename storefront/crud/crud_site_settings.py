# storefront/crud/crud_site_settings.py
from sqlalchemy.orm import Session

from storefront.models.site_settings import SiteSettings
from storefront.schemas.site_settings import SiteSettingsUpdate

SETTINGS_ROW_ID = 1


class CRUDSiteSettings:
    def __init__(self, model):
        self.model = model

    def get_current(self, db: Session) -> SiteSettings:
        """Return the settings row, creating it with defaults on first access."""
        row = db.query(self.model).filter(self.model.id == SETTINGS_ROW_ID).first()
        if row is None:
            row = self.model(id=SETTINGS_ROW_ID)
            db.add(row)
            db.commit()
            db.refresh(row)
        return row

    def update(self, db: Session, *, obj_in: SiteSettingsUpdate) -> SiteSettings:
        row = self.get_current(db)
        for field, value in obj_in.model_dump(exclude_unset=True).items():
            if field == "default_currency" and value:
                value = value.upper()
            setattr(row, field, value)
        db.add(row)
        db.commit()
        db.refresh(row)
        return row


site_settings = CRUDSiteSettings(SiteSettings)
