"""
Authorization guard.

authorize() is a pure decision over (actor, operation, resource).
grant() turns an Allow into a Capability and raises AuthorizationError on Deny.

Every mutating service function takes a Capability as its first argument.
Capabilities can only be minted here and are re-checked by the service
against the row it has locked (Capability.verify), so ownership changes
between grant and mutation are caught.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from core.exceptions import AuthorizationError, NotFoundError

logger = logging.getLogger(__name__)


ROLE_BUSINESS = "BUSINESS"
ROLE_CONTRACTOR = "CONTRACTOR"
ROLE_ADMIN = "ADMIN"
ROLE_SYSTEM = "SYSTEM"


class Operation(str, enum.Enum):
    READ = "READ"
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    ASSIGN = "ASSIGN"
    ACCEPT = "ACCEPT"
    DECLINE = "DECLINE"
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    CANCEL = "CANCEL"
    PAY = "PAY"
    CONFIRM = "CONFIRM"
    RECONCILE = "RECONCILE"
    ADMINISTER = "ADMINISTER"


BUSINESS_OPERATIONS = frozenset(
    {
        Operation.READ,
        Operation.CREATE,
        Operation.UPDATE,
        Operation.DELETE,
        Operation.ASSIGN,
        Operation.APPROVE,
        Operation.REJECT,
        Operation.CANCEL,
        Operation.PAY,
    }
)
CONTRACTOR_OPERATIONS = frozenset(
    {Operation.READ, Operation.ACCEPT, Operation.DECLINE, Operation.SUBMIT}
)
ADMIN_OPERATIONS = frozenset(
    {Operation.READ, Operation.ADMINISTER, Operation.RECONCILE}
)
SYSTEM_OPERATIONS = frozenset({Operation.CONFIRM, Operation.RECONCILE})


def _same(a, b):
    return a is not None and b is not None and str(a) == str(b)


@dataclass(frozen=True)
class Actor:
    """Resolved caller identity. Built from the authenticated user, never from input."""

    user_id: Any
    role: str
    business_id: Any = None
    contractor_id: Any = None
    name: Optional[str] = None

    @classmethod
    def from_user(cls, user):
        if user is None or not getattr(user, "is_authenticated", False):
            raise AuthorizationError(
                "Authentication required", reason="UNAUTHENTICATED"
            )
        return cls(
            user_id=user.id,
            role=getattr(user, "role", None),
            business_id=getattr(user, "business_id", None),
            contractor_id=getattr(user, "contractor_id", None),
            name=user.username,
        )

    @classmethod
    def system(cls, name):
        """Actor for processor callbacks and the reconciliation pass."""
        return cls(user_id=None, role=ROLE_SYSTEM, name=name)

    def as_log_extra(self):
        return {
            "actor_id": str(self.user_id) if self.user_id else None,
            "actor_role": self.role,
            "actor_name": self.name,
        }


@dataclass(frozen=True)
class Resource:
    """Ownership attributes of the resource an operation targets."""

    kind: str
    id: Any
    business_id: Any = None
    contractor_id: Any = None
    # WorkItems still in DRAFT have not been offered to anyone
    unpublished: bool = False

    @classmethod
    def of(cls, instance):
        kind = type(instance).__name__
        if kind == "Business":
            return cls(kind, instance.pk, business_id=instance.pk)
        if kind == "Contractor":
            return cls(kind, instance.pk, contractor_id=instance.pk)
        return cls(
            kind,
            instance.pk,
            business_id=getattr(instance, "business_id", None),
            contractor_id=getattr(instance, "contractor_id", None),
            unpublished=kind == "WorkItem" and instance.status == "DRAFT",
        )


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None

    def __bool__(self):
        return self.allowed


ALLOW = Decision(True)


def _deny(reason):
    return Decision(False, reason)


def authorize(actor, operation, resource):
    """
    Decide whether actor may perform operation on resource.

    Pure: no I/O, no logging. Callers log denials.
    """
    if actor is None or not actor.role:
        return _deny("UNAUTHENTICATED")

    operation = Operation(operation)

    if actor.role == ROLE_SYSTEM:
        if operation in SYSTEM_OPERATIONS:
            return ALLOW
        return _deny("ROLE_NOT_PERMITTED")

    if actor.role == ROLE_ADMIN:
        if operation in ADMIN_OPERATIONS:
            return ALLOW
        return _deny("ROLE_NOT_PERMITTED")

    if actor.role == ROLE_BUSINESS:
        if operation not in BUSINESS_OPERATIONS:
            return _deny("ROLE_NOT_PERMITTED")
        if actor.business_id is None:
            return _deny("NO_TENANT")
        if not _same(resource.business_id, actor.business_id):
            return _deny("TENANT_MISMATCH")
        return ALLOW

    if actor.role == ROLE_CONTRACTOR:
        if operation not in CONTRACTOR_OPERATIONS:
            return _deny("ROLE_NOT_PERMITTED")
        if actor.contractor_id is None:
            return _deny("NO_TENANT")
        if not _same(resource.contractor_id, actor.contractor_id):
            return _deny("NOT_ASSIGNED")
        if resource.unpublished:
            return _deny("NOT_ASSIGNED")
        return ALLOW

    return _deny("UNKNOWN_ROLE")


_GUARD_TOKEN = object()


@dataclass(frozen=True)
class Capability:
    """Proof that the guard allowed actor to perform operation on resource."""

    actor: Actor
    operation: Operation
    resource: Resource
    _token: Any = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        if self._token is not _GUARD_TOKEN:
            raise TypeError("Capabilities are issued by core.guard.grant only")

    @property
    def resource_id(self):
        return self.resource.id

    def require(self, operation):
        """Check the operation only. For creations that have no row to lock yet."""
        operation = Operation(operation)
        if operation != self.operation:
            _log_denial(self.actor, operation, self.resource, "OPERATION_MISMATCH")
            raise AuthorizationError(
                f"Capability for {self.operation.value} does not cover {operation.value}",
                reason="OPERATION_MISMATCH",
            )
        return self.resource

    def verify(self, operation, instance):
        """
        Re-check the capability against the (locked) instance being mutated.

        Raises AuthorizationError if the capability was issued for another
        operation or resource, or if ownership no longer allows it.
        """
        operation = Operation(operation)
        self.require(operation)

        current = Resource.of(instance)
        if current.kind != self.resource.kind or not _same(current.id, self.resource.id):
            _log_denial(self.actor, operation, current, "RESOURCE_MISMATCH")
            raise AuthorizationError(
                "Capability was issued for a different resource",
                reason="RESOURCE_MISMATCH",
            )

        decision = authorize(self.actor, operation, current)
        if not decision:
            _log_denial(self.actor, operation, current, decision.reason)
            raise AuthorizationError(
                _denial_message(self.actor, operation, current),
                reason=decision.reason,
            )
        return current


def _denial_message(actor, operation, resource):
    return (
        f"{actor.role} actor may not {operation.value} "
        f"{resource.kind} {resource.id}"
    )


def _log_denial(actor, operation, resource, reason):
    logger.warning(
        "authorization_denied",
        extra={
            "operation": Operation(operation).value,
            "entity_type": resource.kind,
            "entity_id": str(resource.id) if resource.id else None,
            "reason": reason,
            **actor.as_log_extra(),
        },
    )


def grant(actor, operation, resource):
    """Authorize and return a Capability, or raise AuthorizationError."""
    operation = Operation(operation)
    decision = authorize(actor, operation, resource)
    if not decision:
        _log_denial(actor, operation, resource, decision.reason)
        raise AuthorizationError(
            _denial_message(actor, operation, resource), reason=decision.reason
        )
    return Capability(actor, operation, resource, _token=_GUARD_TOKEN)


def grant_for(actor, operation, model, pk):
    """
    Load the ownership attributes of model(pk) and grant.

    Only ownership columns are read; the service locks the full row itself.
    """
    instance = model.objects.filter(pk=pk).first()
    if instance is None:
        raise NotFoundError(f"{model.__name__} {pk} does not exist")
    return grant(actor, operation, Resource.of(instance))
