"""
Audit service - creates immutable audit log entries.

All audit entries are append-only. No updates or deletions.
"""

from apps.audit.models import AuditLog
from core.middleware import get_current_request_id


def create_audit_entry(
    event_type,
    actor_id,
    entity_type,
    entity_id,
    previous_state=None,
    new_state=None,
    business_id=None,
    actor_name=None,
):
    """
    Create an audit log entry.

    Args:
        event_type: Event classification (e.g. 'WORK_ITEM_APPROVED')
        actor_id: User identifier (None for system events)
        entity_type: Type of affected entity (e.g. 'WorkItem')
        entity_id: Identifier of affected entity
        previous_state: Serialized state before change (optional)
        new_state: Serialized state after change (optional)
        business_id: Owning business, used to scope audit queries (optional)
        actor_name: Name of a system actor when actor_id is None (optional)

    Returns:
        AuditLog: Created audit log entry
    """
    from apps.users.models import User

    # Actor may not exist if user was deleted, but we still log
    actor = User.objects.filter(id=actor_id).first() if actor_id else None

    audit_entry = AuditLog.objects.create(
        event_type=event_type,
        actor=actor,
        actor_name=actor_name,
        business_id=business_id,
        entity_type=entity_type,
        entity_id=entity_id,
        request_id=get_current_request_id(),
        previous_state=previous_state,
        new_state=new_state,
    )

    return audit_entry


def audit_as(capability, event_type, entity_type, entity_id, **kwargs):
    """Create an audit entry attributed to the actor holding capability."""
    actor = capability.actor
    kwargs.setdefault("actor_name", actor.name)
    return create_audit_entry(
        event_type,
        actor.user_id,
        entity_type,
        entity_id,
        **kwargs,
    )
