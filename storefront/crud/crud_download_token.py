# storefront/crud/crud_download_token.py
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from storefront.models.download_token import DownloadToken
from storefront.utils.timestamps import utcnow


class CRUDDownloadToken:
    def __init__(self, model):
        self.model = model

    def get_by_token(self, db: Session, *, token: str) -> Optional[DownloadToken]:
        return db.query(self.model).filter(self.model.token == token).first()

    def get_by_order(self, db: Session, *, order_id: str) -> List[DownloadToken]:
        return (
            db.query(self.model)
            .filter(self.model.order_id == order_id)
            .order_by(self.model.created_at)
            .all()
        )

    def mark_used(self, db: Session, *, token: str) -> bool:
        """Stamp the first redemption; later downloads leave ``used_at`` alone."""
        result = db.execute(
            update(self.model)
            .where(self.model.token == token, self.model.used_at.is_(None))
            .values(used_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return result.rowcount == 1


download_token = CRUDDownloadToken(DownloadToken)
