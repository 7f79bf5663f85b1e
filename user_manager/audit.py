"""
Audit trail for user mutations.

Entries are only ever inserted; nothing in the application updates or deletes
them. ``record`` stages an entry on the same session as the mutation it
describes so both are committed together.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger(__name__)

ENTITY_USER = "USER"
DEFAULT_LIMIT = 100


def record(
    db: Session,
    action: models.AuditAction,
    entity_id: Optional[int],
    actor: Optional[models.User],
    details: Optional[Dict[str, Any]] = None,
    entity_type: str = ENTITY_USER,
) -> models.AuditLog:
    """
    Stage an audit entry describing a mutation.

    Args:
        db: Session holding the (not yet committed) mutation
        action: CREATE, UPDATE or DELETE
        entity_id: Id of the affected record
        actor: User who performed the action; for self-registration this is the new user
        details: Action-specific JSON payload; never contains a password
    """
    entry = models.AuditLog(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
        user_email=actor.email if actor is not None else None,
        user_name=actor.full_name if actor is not None else None,
    )
    db.add(entry)
    logger.debug(f"Staged {action.value} audit entry for {entity_type} {entity_id}")
    return entry


def get_logs(db: Session, limit: int = DEFAULT_LIMIT, action: Optional[models.AuditAction] = None) -> List[models.AuditLog]:
    """Most recent entries first, optionally restricted to one action."""
    query = db.query(models.AuditLog)
    if action is not None:
        query = query.filter(models.AuditLog.action == action)
    return (
        query.order_by(models.AuditLog.timestamp.desc(), models.AuditLog.id.desc())
        .limit(limit)
        .all()
    )


def get_logs_for_entity(db: Session, entity_id: int) -> List[models.AuditLog]:
    """All entries for one entity, most recent first."""
    return (
        db.query(models.AuditLog)
        .filter(models.AuditLog.entity_id == entity_id)
        .order_by(models.AuditLog.timestamp.desc(), models.AuditLog.id.desc())
        .all()
    )


def user_snapshot(user: models.User, include_role: bool = False) -> Dict[str, Any]:
    snapshot = {
        "email": user.email,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "status": user.status.value,
    }
    if include_role:
        snapshot["role"] = user.role.value
    return snapshot
