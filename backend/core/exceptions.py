"""
Domain exceptions for the contractor work and payout core.

All exceptions follow the standard error format:
{
    "error": {
        "code": "ERROR_CODE",
        "message": "Human-readable description",
        "details": {}
    }
"""

from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
import logging

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, code, message, details=None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(DomainError):
    """Validation error - request body or parameters fail validation."""

    def __init__(self, message, details=None):
        super().__init__("VALIDATION_ERROR", message, details)


class InvalidStateTransition(DomainError):
    """Attempted transition is not legal from the entity's current state."""

    def __init__(self, message, current_state=None, target_state=None, details=None):
        details = dict(details or {})
        if current_state is not None:
            details.setdefault("currentState", current_state)
        if target_state is not None:
            details.setdefault("attemptedState", target_state)
        self.current_state = current_state
        self.target_state = target_state
        super().__init__("INVALID_STATE", message, details)


class NotFoundError(DomainError):
    """Requested resource does not exist."""

    def __init__(self, message, details=None):
        super().__init__("NOT_FOUND", message, details)


class AuthorizationError(DomainError):
    """Actor lacks permission for the operation on the resource."""

    def __init__(self, message, reason=None, details=None):
        details = dict(details or {})
        if reason:
            details.setdefault("reason", reason)
        self.reason = reason
        super().__init__("FORBIDDEN", message, details)


class PreconditionFailedError(DomainError):
    """One or more preconditions are not satisfied."""

    def __init__(self, message, details=None):
        super().__init__("PRECONDITION_FAILED", message, details)


class PaymentProcessorError(DomainError):
    """
    External transfer call failed or timed out.

    Always retryable through reconciliation with the same idempotency key.
    """

    def __init__(self, message, details=None):
        details = dict(details or {})
        details.setdefault("retryable", True)
        super().__init__("PAYMENT_PROCESSOR_ERROR", message, details)


class ConsistencyError(DomainError):
    """A detected invariant violation. Fatal to the operation, never auto-corrected."""

    def __init__(self, message, details=None):
        super().__init__("CONSISTENCY_ERROR", message, details)


STATUS_CODE_MAP = {
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "INVALID_STATE": status.HTTP_409_CONFLICT,
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "FORBIDDEN": status.HTTP_403_FORBIDDEN,
    "PRECONDITION_FAILED": status.HTTP_412_PRECONDITION_FAILED,
    "PAYMENT_PROCESSOR_ERROR": status.HTTP_502_BAD_GATEWAY,
    "CONSISTENCY_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
}

# DRF's own error codes, renamed to the codes clients already handle
DRF_CODE_MAP = {
    "permission_denied": "FORBIDDEN",
    "not_authenticated": "UNAUTHORIZED",
    "authentication_failed": "UNAUTHORIZED",
    "not_found": "NOT_FOUND",
    "throttled": "THROTTLED",
}


def error_response(exc):
    """Render a DomainError in the standard error envelope."""
    return Response(
        {
            "error": {
                "code": exc.code,
                "message": exc.message,
                "details": exc.details,
            }
        },
        status=STATUS_CODE_MAP.get(exc.code, status.HTTP_400_BAD_REQUEST),
    )


def domain_exception_handler(exc, context):
    """
    Custom exception handler for domain exceptions.

    Returns standard error format:
    {
        "error": {
            "code": "ERROR_CODE",
            "message": "Human-readable description",
            "details": {}
        }
    }
    """
    # Handle domain exceptions
    if isinstance(exc, DomainError):
        if isinstance(exc, ConsistencyError):
            logger.error(
                "consistency_violation",
                extra={"operation": "CONSISTENCY_CHECK", "details": exc.details},
            )
        return error_response(exc)

    # Use default REST framework exception handler for other exceptions
    response = exception_handler(exc, context)

    if response is not None:
        # Format standard REST framework errors
        if "detail" in response.data:
            code = getattr(response.data["detail"], "code", None)
            error_data = {
                "error": {
                    "code": DRF_CODE_MAP.get(code, str(code).upper() if code else "INTERNAL_ERROR"),
                    "message": str(response.data["detail"]),
                    "details": {},
                }
            }
        else:
            error_data = {
                "error": {
                    "code": "VALIDATION_ERROR",
                    "message": "Request validation failed",
                    "details": response.data,
                }
            }

        response.data = error_data

    # Log unhandled exceptions
    if response is None:
        logger.exception("Unhandled exception", exc_info=exc)
        return Response(
            {
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "An internal error occurred",
                    "details": {},
                }
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return response
