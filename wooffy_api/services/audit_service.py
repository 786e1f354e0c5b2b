from typing import Any

from sqlalchemy.orm import Session

from wooffy_api.core.id_utils import generate_id
from wooffy_api.models.audit_log import AuditLog


def log_audit_event(
    db: Session,
    *,
    actor_user_id: str,
    action: str,
    target_type: str,
    actor_email: str | None = None,
    target_id: str | None = None,
    metadata_json: dict[str, Any] | None = None,
) -> AuditLog:
    event = AuditLog(
        id=generate_id(),
        actor_user_id=actor_user_id,
        actor_email=actor_email,
        action=action,
        target_type=target_type,
        target_id=target_id,
        metadata_json=metadata_json,
    )
    db.add(event)
    return event
