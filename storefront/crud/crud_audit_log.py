# storefront/crud/crud_audit_log.py
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from storefront.models.payment_audit_log import PaymentAuditLog


class CRUDAuditLog:
    """
    Create and read access to PaymentAuditLog.

    Audit entries are immutable; there is no update or delete.
    """

    def __init__(self, model):
        self.model = model

    def log_action(
        self,
        db: Session,
        *,
        action: str,
        actor_type: str,
        entity_type: str,
        entity_id: str,
        actor_id: Optional[str] = None,
        previous_state: Optional[Dict[str, Any]] = None,
        new_state: Optional[Dict[str, Any]] = None,
        change_details: Optional[Dict[str, Any]] = None,
    ) -> PaymentAuditLog:
        db_obj = self.model(
            action=action,
            actor_type=actor_type,
            actor_id=actor_id,
            entity_type=entity_type,
            entity_id=entity_id,
            previous_state=previous_state,
            new_state=new_state,
            change_details=change_details,
        )
        db.add(db_obj)
        db.commit()
        return db_obj

    def get_by_entity(
        self, db: Session, *, entity_type: str, entity_id: str
    ) -> List[PaymentAuditLog]:
        return (
            db.query(self.model)
            .filter(
                self.model.entity_type == entity_type,
                self.model.entity_id == entity_id,
            )
            .order_by(self.model.created_at)
            .all()
        )


audit_log = CRUDAuditLog(PaymentAuditLog)
