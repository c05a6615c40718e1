"""
Service-layer functions for the Users app.

This module exists to keep models passive:
- No business logic in models
- No permission logic in models
- Persistence orchestration (create/save) lives here
"""

from __future__ import annotations

from typing import Any, Optional, Type

TENANT_FIELD_BY_ROLE = {
    "BUSINESS": "business",
    "CONTRACTOR": "contractor",
}


def create_user(
    *,
    user_model: Type[Any],
    username: str,
    password: Optional[str] = None,
    display_name: Optional[str] = None,
    role: str = "BUSINESS",
    using: Optional[str] = None,
    **extra_fields: Any,
):
    """
    Create and persist a user.

    BUSINESS users require business (or business_id); CONTRACTOR users
    require contractor (or contractor_id).
    """
    if not username:
        raise ValueError("The username field must be set")

    tenant_field = TENANT_FIELD_BY_ROLE.get(role)
    if tenant_field and not (
        extra_fields.get(tenant_field) or extra_fields.get(f"{tenant_field}_id")
    ):
        raise ValueError(f"{role} users must be linked to a {tenant_field}")

    user = user_model(
        username=username,
        display_name=display_name or username,
        role=role,
        **extra_fields,
    )
    user.set_password(password)
    if using is None:
        user.save()
    else:
        user.save(using=using)
    return user


def create_superuser(
    *,
    user_model: Type[Any],
    username: str,
    password: Optional[str] = None,
    using: Optional[str] = None,
    **extra_fields: Any,
):
    """Create a platform administrator (role ADMIN, no tenant)."""
    extra_fields.setdefault("role", "ADMIN")
    return create_user(
        user_model=user_model,
        username=username,
        password=password,
        using=using,
        **extra_fields,
    )


def user_is_staff(*, user: Any) -> bool:
    """Django admin compatibility predicate."""
    return user.role == "ADMIN"


def user_is_superuser(*, user: Any) -> bool:
    """Django admin compatibility predicate."""
    return user.role == "ADMIN"


def user_has_perm(*, user: Any, perm: str, obj: Any = None) -> bool:
    """Django admin compatibility predicate."""
    _ = (perm, obj)
    return user.role == "ADMIN"


def user_has_module_perms(*, user: Any, app_label: str) -> bool:
    """Django admin compatibility predicate."""
    _ = app_label
    return user.role == "ADMIN"
