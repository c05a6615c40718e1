"""
Mapping of raw processor statuses onto Payment.status.

Unknown statuses map to PROCESSING so an unexpected value never completes
or fails a payment on its own.
"""

from apps.payments.models import PaymentStatus

PROCESSOR_STATUS_MAP = {
    # settled
    "succeeded": PaymentStatus.COMPLETED,
    "paid": PaymentStatus.COMPLETED,
    "completed": PaymentStatus.COMPLETED,
    # in flight
    "pending": PaymentStatus.PROCESSING,
    "processing": PaymentStatus.PROCESSING,
    "in_transit": PaymentStatus.PROCESSING,
    "queued": PaymentStatus.PROCESSING,
    "created": PaymentStatus.PROCESSING,
    "requires_action": PaymentStatus.PROCESSING,
    "requires_confirmation": PaymentStatus.PROCESSING,
    # terminal failures
    "failed": PaymentStatus.FAILED,
    "canceled": PaymentStatus.FAILED,
    "cancelled": PaymentStatus.FAILED,
    "returned": PaymentStatus.FAILED,
    "reversed": PaymentStatus.FAILED,
    "rejected": PaymentStatus.FAILED,
}


def map_processor_status(raw_status):
    if not raw_status:
        return PaymentStatus.PROCESSING
    return PROCESSOR_STATUS_MAP.get(str(raw_status).strip().lower(), PaymentStatus.PROCESSING)
