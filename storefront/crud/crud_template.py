# storefront/crud/crud_template.py
from typing import Optional

from sqlalchemy.orm import Session

from storefront.models.template import Template


class CRUDTemplate:
    """Read access to the catalog. Catalog management lives elsewhere."""

    def __init__(self, model):
        self.model = model

    def get(self, db: Session, id: str) -> Optional[Template]:
        return db.query(self.model).filter(self.model.id == id).first()


template = CRUDTemplate(Template)
