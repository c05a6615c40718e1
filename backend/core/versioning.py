"""
Version locking helper for state transitions.
Prevents concurrent modification corruption.
"""
from django.db.models import F
from core.exceptions import InvalidStateTransition


def version_locked_update(queryset, current_version, **updates):
    """
    Perform version-locked update on queryset.

    Args:
        queryset: Django QuerySet to update
        current_version: Expected current version number
        **updates: Fields to update

    Returns:
        int: Number of rows updated (should be 1)

    Raises:
        InvalidStateTransition: If version mismatch (concurrent modification detected)
    """
    updated_count = queryset.filter(version=current_version).update(
        **updates,
        version=F("version") + 1,
    )

    if updated_count == 0:
        raise InvalidStateTransition(
            "Concurrent modification detected. Version mismatch or invalid state.",
            details={"expectedVersion": current_version},
        )

    return updated_count
