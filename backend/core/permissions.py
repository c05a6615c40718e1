"""
Permission classes for role-based access control.

Role is read from request.user (authenticated via JWT).
Role is NEVER read from request body, query parameters, or headers.

These classes gate endpoints by role only. Tenant ownership of the
individual resource is decided by core.guard inside the service call.
"""

from rest_framework import permissions

ROLES = ("BUSINESS", "CONTRACTOR", "ADMIN")


def _role(request):
    if not request.user or not request.user.is_authenticated:
        return None
    return getattr(request.user, "role", None)


class IsBusiness(permissions.BasePermission):
    """Allow BUSINESS role only."""

    def has_permission(self, request, view):
        return _role(request) == "BUSINESS"


class IsContractor(permissions.BasePermission):
    """Allow CONTRACTOR role only."""

    def has_permission(self, request, view):
        return _role(request) == "CONTRACTOR"


class IsAdmin(permissions.BasePermission):
    """Allow ADMIN role only."""

    def has_permission(self, request, view):
        return _role(request) == "ADMIN"


class IsBusinessOrAdmin(permissions.BasePermission):
    def has_permission(self, request, view):
        return _role(request) in ("BUSINESS", "ADMIN")


class IsAuthenticatedReadOnly(permissions.BasePermission):
    """Allow BUSINESS, CONTRACTOR, ADMIN for GET requests."""

    def has_permission(self, request, view):
        if request.method != "GET":
            return False
        return _role(request) in ROLES


class HasRole(permissions.BasePermission):
    """Any authenticated user with a known role, any method."""

    def has_permission(self, request, view):
        return _role(request) in ROLES
