"""
Payment API views.

All mutations flow through service layer.
Reads of payments live in apps.ledger; this module covers direct payments,
retries, reconciliation and the processor webhook.
"""

import hashlib
import hmac
import json
import logging

from django.conf import settings
from django.db import IntegrityError
from rest_framework import status
from rest_framework.decorators import (
    api_view,
    authentication_classes,
    permission_classes,
    throttle_classes,
)
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from core.exceptions import DomainError, ValidationError
from core.guard import Actor, Operation, Resource, grant, grant_for
from core.permissions import IsAdmin, IsBusiness
from core.throttling import WebhookThrottle
from apps.directory.models import Business
from apps.payments import services
from apps.payments.models import Payment, PaymentStatus
from apps.payments.serializers import (
    DirectPaymentCreateSerializer,
    PaymentSerializer,
    ProcessorWebhookSerializer,
)

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Processor-Signature"


def _payment_status_code(payment, created=False):
    if payment.status in (PaymentStatus.PROCESSING, PaymentStatus.SCHEDULED):
        return status.HTTP_202_ACCEPTED
    return status.HTTP_201_CREATED if created else status.HTTP_200_OK


@api_view(["POST"])
@permission_classes([IsBusiness])
def create_direct_payment(request):
    """
    POST /api/v1/payments/direct - Pay a contractor without a work item

    201 when settled immediately, 202 while the transfer is in flight or
    scheduled for a later date.
    """
    serializer = DirectPaymentCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    actor = Actor.from_user(request.user)
    capability = grant_for(actor, Operation.PAY, Business, actor.business_id)
    try:
        payment, replayed = services.create_direct_payment(
            capability,
            actor.business_id,
            idempotency_key=getattr(request, "idempotency_key", None),
            **serializer.validated_data,
        )
    except DomainError:
        raise
    except IntegrityError:
        return Response(
            {
                "error": {
                    "code": "CONFLICT",
                    "message": "Payment creation conflict (idempotency or duplicate)",
                    "details": {},
                }
            },
            status=status.HTTP_409_CONFLICT,
        )

    return Response(
        {"data": PaymentSerializer(payment).data},
        status=status.HTTP_200_OK
        if replayed
        else _payment_status_code(payment, created=True),
    )


@api_view(["POST"])
@permission_classes([IsBusiness])
def retry_payment(request, paymentId):
    """POST /api/v1/payments/{paymentId}/retry - Retry a FAILED payment"""
    capability = grant_for(
        Actor.from_user(request.user), Operation.PAY, Payment, paymentId
    )
    payment = services.retry_payment(capability, paymentId)
    return Response(
        {"data": PaymentSerializer(payment).data},
        status=_payment_status_code(payment),
    )


@api_view(["POST"])
@permission_classes([IsAdmin])
def reconcile_payments(request):
    """POST /api/v1/payments/reconcile - Run one reconciliation pass (ADMIN only)"""
    capability = grant(
        Actor.from_user(request.user), Operation.RECONCILE, Resource("Payment", None)
    )
    report = services.reconcile_pending_payments(capability)
    return Response({"data": report.as_dict()}, status=status.HTTP_200_OK)


def _valid_signature(body, signature):
    secret = settings.PAYMENT_PROCESSOR.get("WEBHOOK_SECRET") or ""
    if not secret or not signature:
        return False
    if signature.startswith("sha256="):
        signature = signature[len("sha256="):]
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


@api_view(["POST"])
@authentication_classes([])
@permission_classes([AllowAny])
@throttle_classes([WebhookThrottle])
def processor_webhook(request):
    """
    POST /api/v1/payments/webhook - Transfer status callback from the processor

    Authenticated by an HMAC-SHA256 signature of the raw body.
    """
    body = request.body
    if not _valid_signature(body, request.headers.get(SIGNATURE_HEADER)):
        logger.warning(
            "webhook_signature_invalid",
            extra={"operation": "PROCESSOR_WEBHOOK"},
        )
        return Response(
            {
                "error": {
                    "code": "FORBIDDEN",
                    "message": "Invalid webhook signature",
                    "details": {},
                }
            },
            status=status.HTTP_403_FORBIDDEN,
        )

    try:
        payload = json.loads(body or b"{}")
    except ValueError:
        raise ValidationError("Webhook body must be JSON")

    serializer = ProcessorWebhookSerializer(data=payload)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    payment = services.locate_payment(
        transfer_id=data.get("transfer_id"),
        idempotency_key=data.get("idempotency_key"),
    )
    capability = grant(
        Actor.system("processor-webhook"), Operation.CONFIRM, Resource.of(payment)
    )
    payment = services.apply_processor_update(
        capability,
        payment.id,
        data["status"],
        transfer_id=data.get("transfer_id"),
        failure_reason=data.get("failure_reason"),
    )
    return Response({"data": PaymentSerializer(payment).data}, status=status.HTTP_200_OK)
