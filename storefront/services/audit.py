# storefront/services/audit.py
import logging
from typing import Optional

from sqlalchemy.orm import Session

from storefront import crud

logger = logging.getLogger(__name__)


def log_audit(
    db: Session,
    *,
    action: str,
    entity_id: str,
    entity_type: str = "order",
    actor_type: str = "system",
    actor_id: Optional[str] = None,
    previous_state: Optional[dict] = None,
    new_state: Optional[dict] = None,
    **details,
) -> None:
    """Write an audit entry. Failures are logged and never propagate."""
    try:
        crud.audit_log.log_action(
            db,
            action=action,
            actor_type=actor_type,
            actor_id=actor_id,
            entity_type=entity_type,
            entity_id=entity_id,
            previous_state=previous_state,
            new_state=new_state,
            change_details=details or None,
        )
    except Exception as e:
        db.rollback()
        logger.warning(f"Failed to write audit entry {action} for {entity_id}: {e}")
