"""
Payment orchestration services.

Rules:
- Every function takes a guard Capability as its first argument
- All mutations wrapped in transaction.atomic
- Lock order is WorkItem -> Business -> Payment, everywhere
- The processor is never called while row locks are held
- A WorkItem has at most one Payment; its idempotency key is derived from
  the WorkItem id, so every retry and every reconciliation reuses it
"""

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Exists, F, OuterRef, Q
from django.utils import timezone

from core.exceptions import (
    ConsistencyError,
    NotFoundError,
    PaymentProcessorError,
    PreconditionFailedError,
    ValidationError,
)
from core.guard import Actor, Operation, Resource, grant
from core.state_machine import validate_transition
from core.versioning import version_locked_update
from apps.audit.services import audit_as
from apps.directory.models import Business, Contractor
from apps.payments.models import IdempotencyKey, Linkage, Payment, PaymentStatus
from apps.payments.processor import ProcessorError, ProcessorUnavailable, get_processor
from apps.payments.status_mapping import map_processor_status
from apps.work.models import WorkItem, WorkItemStatus

logger = logging.getLogger(__name__)


def work_item_idempotency_key(work_item_id):
    return f"work-item-{work_item_id}"


def _payment_state(payment):
    return {
        "status": payment.status,
        "amount": str(payment.amount),
        "currency": payment.currency,
        "attempts": payment.attempts,
        "externalTransferId": payment.external_transfer_id,
        "processorStatus": payment.processor_status,
    }


def _log_extra(payment, operation, **extra):
    return {
        "operation": operation,
        "entity_id": str(payment.id),
        "business_id": str(payment.business_id),
        "work_item_id": str(payment.work_item_id) if payment.work_item_id else None,
        **extra,
    }


def _ensure_payee_ready(contractor):
    if not contractor.can_receive_payouts:
        raise PreconditionFailedError(
            "Contractor cannot receive payouts",
            {
                "contractorId": str(contractor.id),
                "isActive": contractor.is_active,
                "hasConnectedAccount": bool(contractor.connected_account_id),
                "payoutsEnabled": contractor.payouts_enabled,
            },
        )


def _lock_business(business_id):
    try:
        return Business.objects.select_for_update().get(id=business_id)
    except Business.DoesNotExist:
        raise NotFoundError(f"Business {business_id} does not exist")


def _ensure_within_budget(business, amount, on_date=None):
    """Raise PreconditionFailedError when amount does not fit the current period."""
    from apps.ledger import selectors

    if not business.is_active:
        raise PreconditionFailedError(
            f"Business {business.id} is inactive", {"businessId": str(business.id)}
        )
    remaining = selectors.remaining_budget(business, on_date)
    if remaining is not None and amount > remaining:
        raise PreconditionFailedError(
            "Payment exceeds the remaining budget",
            {
                "businessId": str(business.id),
                "amount": str(amount),
                "budgetCap": str(business.budget_cap),
                "remainingBudget": str(remaining),
            },
        )


def _get_payment(payment_id):
    payment = Payment.objects.filter(id=payment_id).first()
    if payment is None:
        raise NotFoundError(f"Payment {payment_id} does not exist")
    return payment


def _lock_work_item(work_item_id):
    if work_item_id is None:
        return None
    return WorkItem.objects.select_for_update().get(id=work_item_id)


# -----------------------------
# Approval-triggered payment
# -----------------------------


def execute_payment(capability, work_item, submission):
    """
    Record the payment for an approval.

    Must run inside the approval transaction with work_item already locked.
    Checks payee readiness and budget, refuses a second payment for the same
    WorkItem, and creates the Payment as PROCESSING. The transfer itself is
    sent by dispatch_transfer once the transaction has committed.
    """
    capability.verify(Operation.APPROVE, work_item)

    if work_item.amount is None or work_item.contractor_id is None:
        raise ConsistencyError(
            "WorkItem has no amount or assignee at approval",
            {"workItemId": str(work_item.id)},
        )

    contractor = Contractor.objects.get(id=work_item.contractor_id)
    _ensure_payee_ready(contractor)

    business = _lock_business(work_item.business_id)
    _ensure_within_budget(business, work_item.amount)

    if Payment.objects.filter(work_item_id=work_item.id).exists():
        raise ConsistencyError(
            "WorkItem already has a payment",
            {"workItemId": str(work_item.id)},
        )

    try:
        with transaction.atomic():
            payment = Payment.objects.create(
                business_id=work_item.business_id,
                contractor_id=contractor.id,
                linkage_kind=Linkage.CONTRACT_LINKED
                if work_item.contract_id
                else Linkage.DIRECT,
                contract_id=work_item.contract_id,
                work_item_id=work_item.id,
                amount=work_item.amount,
                currency=work_item.currency,
                status=PaymentStatus.PROCESSING,
                idempotency_key=work_item_idempotency_key(work_item.id),
                scheduled_date=timezone.localdate(),
                notes=f"Submission #{submission.sequence}",
                created_by_id=capability.actor.user_id,
            )
    except IntegrityError:
        raise ConsistencyError(
            "WorkItem already has a payment",
            {"workItemId": str(work_item.id)},
        )

    audit_as(
        capability,
        "PAYMENT_CREATED",
        "Payment",
        payment.id,
        business_id=payment.business_id,
        new_state={
            **_payment_state(payment),
            "workItemId": str(work_item.id),
            "linkage": payment.linkage_kind,
        },
    )
    logger.info(
        "payment_created",
        extra=_log_extra(payment, "EXECUTE_PAYMENT", amount=str(payment.amount)),
    )
    return payment


def dispatch_transfer(payment_id):
    """
    Send the transfer for a PROCESSING payment that has not reached the processor.

    Runs outside any transaction. An ambiguous outcome (timeout, 5xx) leaves
    the payment PROCESSING for reconciliation. A definite rejection, or a
    transfer the processor reports as failed straight away, marks it FAILED
    and raises PaymentProcessorError.
    """
    payment = Payment.objects.select_related("contractor").get(id=payment_id)
    if payment.status != PaymentStatus.PROCESSING or payment.external_transfer_id:
        return payment

    Payment.objects.filter(id=payment.id).update(attempts=F("attempts") + 1)

    try:
        result = get_processor().transfer(
            amount=payment.amount,
            currency=payment.currency,
            destination=payment.contractor.connected_account_id,
            idempotency_key=payment.idempotency_key,
            metadata={
                "paymentId": payment.id,
                "businessId": payment.business_id,
                "workItemId": payment.work_item_id or "",
            },
        )
    except ProcessorUnavailable as exc:
        logger.warning(
            "transfer_outcome_unknown",
            extra=_log_extra(payment, "DISPATCH_TRANSFER", error=str(exc)),
        )
        return Payment.objects.get(id=payment.id)
    except ProcessorError as exc:
        _mark_failed(payment.id, str(exc))
        raise PaymentProcessorError(
            "Payment processor rejected the transfer",
            {"paymentId": str(payment.id), "reason": str(exc)},
        )

    with transaction.atomic():
        locked = Payment.objects.select_for_update().get(id=payment.id)
        locked.external_transfer_id = result.transfer_id
        locked.processor_status = result.status
        locked.save(update_fields=["external_transfer_id", "processor_status", "updated_at"])

    logger.info(
        "transfer_sent",
        extra=_log_extra(
            locked,
            "DISPATCH_TRANSFER",
            transfer_id=result.transfer_id,
            processor_status=result.status,
        ),
    )

    # Some processors settle synchronously
    if map_processor_status(result.status) != PaymentStatus.PROCESSING:
        capability = grant(
            Actor.system("transfer-dispatch"), Operation.CONFIRM, Resource.of(locked)
        )
        locked = _apply_status(
            capability,
            Operation.CONFIRM,
            locked,
            result.status,
            transfer_id=result.transfer_id,
            failure_reason=result.failure_reason,
        )
        if locked.status == PaymentStatus.FAILED:
            raise PaymentProcessorError(
                "Payment processor failed the transfer",
                {
                    "paymentId": str(locked.id),
                    "reason": locked.failure_reason or result.status,
                },
            )
    return locked


def _mark_failed(payment_id, reason):
    with transaction.atomic():
        payment = Payment.objects.select_for_update().get(id=payment_id)
        previous_status = payment.status
        validate_transition("Payment", previous_status, PaymentStatus.FAILED)
        version_locked_update(
            Payment.objects.filter(id=payment.id),
            current_version=payment.version,
            status=PaymentStatus.FAILED,
            failure_reason=reason,
            updated_at=timezone.now(),
        )
    logger.warning(
        "transfer_rejected",
        extra=_log_extra(payment, "DISPATCH_TRANSFER", error=reason),
    )


# -----------------------------
# Processor confirmations
# -----------------------------


def locate_payment(payment_id=None, transfer_id=None, idempotency_key=None):
    """Find a payment by id, processor transfer id, or idempotency key."""
    queryset = Payment.objects.all()
    payment = None
    if payment_id:
        payment = queryset.filter(id=payment_id).first()
    if payment is None and transfer_id:
        payment = queryset.filter(external_transfer_id=transfer_id).first()
    if payment is None and idempotency_key:
        payment = queryset.filter(idempotency_key=idempotency_key).first()
    if payment is None:
        raise NotFoundError(
            "No payment matches the processor update",
            {
                "transferId": transfer_id,
                "idempotencyKey": idempotency_key,
            },
        )
    return payment


def apply_processor_update(
    capability, payment_id, raw_status, transfer_id=None, failure_reason=None
):
    """Record a processor-reported status (webhook). Requires CONFIRM."""
    payment = _get_payment(payment_id)
    return _apply_status(
        capability,
        Operation.CONFIRM,
        payment,
        raw_status,
        transfer_id=transfer_id,
        failure_reason=failure_reason,
    )


def _apply_status(
    capability, operation, payment, raw_status, transfer_id=None, failure_reason=None
):
    target_status = map_processor_status(raw_status)

    with transaction.atomic():
        work_item = _lock_work_item(payment.work_item_id)
        locked = Payment.objects.select_for_update().get(id=payment.id)
        capability.verify(operation, locked)
        previous_status = locked.status

        if transfer_id and not locked.external_transfer_id:
            locked.external_transfer_id = transfer_id
        locked.processor_status = raw_status

        if target_status == previous_status or target_status == PaymentStatus.PROCESSING:
            # Replayed or in-flight event: keep the status, record what was seen
            locked.save(
                update_fields=["external_transfer_id", "processor_status", "updated_at"]
            )
            return locked

        if previous_status == PaymentStatus.COMPLETED:
            locked.save(
                update_fields=["external_transfer_id", "processor_status", "updated_at"]
            )
            logger.error(
                "completed_payment_reversed",
                extra=_log_extra(locked, operation.value, processor_status=raw_status),
            )
            return locked

        validate_transition("Payment", previous_status, target_status)
        updates = {
            "status": target_status,
            "external_transfer_id": locked.external_transfer_id,
            "processor_status": raw_status,
            "updated_at": timezone.now(),
        }
        if target_status == PaymentStatus.COMPLETED:
            updates["completed_date"] = timezone.localdate()
            updates["failure_reason"] = None
        else:
            updates["failure_reason"] = failure_reason or raw_status

        version_locked_update(
            Payment.objects.filter(id=locked.id),
            current_version=locked.version,
            **updates,
        )
        locked.refresh_from_db()

        if target_status == PaymentStatus.COMPLETED and work_item is not None:
            _mark_work_item_paid(capability, work_item, locked)

        audit_as(
            capability,
            "PAYMENT_COMPLETED"
            if target_status == PaymentStatus.COMPLETED
            else "PAYMENT_FAILED",
            "Payment",
            locked.id,
            business_id=locked.business_id,
            previous_state={"status": previous_status},
            new_state=_payment_state(locked),
        )

    log = logger.info if target_status == PaymentStatus.COMPLETED else logger.warning
    log(
        "payment_status_changed",
        extra=_log_extra(
            locked,
            operation.value,
            from_status=previous_status,
            to_status=target_status,
            processor_status=raw_status,
        ),
    )
    return locked


def _mark_work_item_paid(capability, work_item, payment):
    if work_item.status == WorkItemStatus.PAID:
        return
    if work_item.status != WorkItemStatus.APPROVED:
        raise ConsistencyError(
            "Payment completed for a WorkItem that is not approved",
            {
                "workItemId": str(work_item.id),
                "workItemStatus": work_item.status,
                "paymentId": str(payment.id),
            },
        )
    validate_transition("WorkItem", work_item.status, WorkItemStatus.PAID)
    now = timezone.now()
    version_locked_update(
        WorkItem.objects.filter(id=work_item.id),
        current_version=work_item.version,
        status=WorkItemStatus.PAID,
        paid_at=now,
        updated_at=now,
    )
    audit_as(
        capability,
        "WORK_ITEM_PAID",
        "WorkItem",
        work_item.id,
        business_id=work_item.business_id,
        previous_state={"status": WorkItemStatus.APPROVED},
        new_state={"status": WorkItemStatus.PAID, "paymentId": str(payment.id)},
    )


# -----------------------------
# Retries and direct payments
# -----------------------------


def _requeue(capability, operation, payment_id, max_attempts=None):
    """Move a FAILED (or due SCHEDULED) payment back to PROCESSING."""
    max_attempts = max_attempts or settings.PAYMENT_MAX_ATTEMPTS
    payment = _get_payment(payment_id)

    with transaction.atomic():
        _lock_work_item(payment.work_item_id)
        business = _lock_business(payment.business_id)
        locked = Payment.objects.select_for_update().get(id=payment.id)
        capability.verify(operation, locked)

        previous_status = locked.status
        validate_transition("Payment", previous_status, PaymentStatus.PROCESSING)
        if locked.attempts >= max_attempts:
            raise PreconditionFailedError(
                "Payment has reached the maximum number of attempts",
                {"paymentId": str(locked.id), "attempts": locked.attempts},
            )
        if previous_status == PaymentStatus.FAILED:
            # FAILED payments stopped counting against the budget
            _ensure_within_budget(business, locked.amount)
        _ensure_payee_ready(Contractor.objects.get(id=locked.contractor_id))

        previous_state = _payment_state(locked)
        version_locked_update(
            Payment.objects.filter(id=locked.id),
            current_version=locked.version,
            status=PaymentStatus.PROCESSING,
            external_transfer_id=None,
            failure_reason=None,
            updated_at=timezone.now(),
        )
        locked.refresh_from_db()

        audit_as(
            capability,
            "PAYMENT_RETRIED"
            if previous_status == PaymentStatus.FAILED
            else "PAYMENT_RELEASED",
            "Payment",
            locked.id,
            business_id=locked.business_id,
            previous_state=previous_state,
            new_state=_payment_state(locked),
        )

    logger.info(
        "payment_requeued",
        extra=_log_extra(
            locked, operation.value, from_status=previous_status, attempts=locked.attempts
        ),
    )
    return dispatch_transfer(locked.id)


def retry_payment(capability, payment_id):
    """Retry a FAILED payment with its original idempotency key (business owner)."""
    return _requeue(capability, Operation.PAY, payment_id)


def _parse_amount(amount):
    try:
        amount = Decimal(str(amount))
    except (InvalidOperation, TypeError):
        raise ValidationError("amount must be a decimal number", {"field": "amount"})
    if amount <= 0:
        raise ValidationError("amount must be greater than zero", {"field": "amount"})
    return amount


def parse_currency(currency):
    """
    Normalise a currency code and require the settlement currency.

    Ledger sums and budget caps are plain amounts, so every work item and
    payment settles in settings.SETTLEMENT_CURRENCY. No code means that one.
    """
    if not currency:
        return settings.SETTLEMENT_CURRENCY
    if len(currency) != 3 or not currency.isalpha():
        raise ValidationError("currency must be a 3-letter code", {"field": "currency"})
    currency = currency.upper()
    if currency != settings.SETTLEMENT_CURRENCY:
        raise ValidationError(
            f"Payments settle in {settings.SETTLEMENT_CURRENCY} only",
            {"field": "currency", "settlementCurrency": settings.SETTLEMENT_CURRENCY},
        )
    return currency


def create_direct_payment(
    capability,
    business_id,
    contractor_id,
    amount,
    currency=None,
    notes="",
    scheduled_date=None,
    idempotency_key=None,
):
    """
    Pay a contractor directly, without a contract or work item.

    A payment scheduled for a future date stays SCHEDULED until the
    reconciliation pass releases it; otherwise it is sent immediately.
    Returns (payment, replayed).
    """
    amount = _parse_amount(amount)
    currency = parse_currency(currency)
    today = timezone.localdate()
    scheduled_date = scheduled_date or today
    if scheduled_date < today:
        raise ValidationError(
            "scheduledDate cannot be in the past", {"field": "scheduledDate"}
        )

    with transaction.atomic():
        business = _lock_business(business_id)
        capability.verify(Operation.PAY, business)

        if idempotency_key:
            existing = IdempotencyKey.objects.filter(
                business=business, key=idempotency_key, operation="CREATE_DIRECT_PAYMENT"
            ).first()
            if existing:
                return Payment.objects.get(id=existing.target_object_id), True

        contractor = Contractor.objects.filter(id=contractor_id).first()
        if contractor is None:
            raise NotFoundError(f"Contractor {contractor_id} does not exist")
        _ensure_payee_ready(contractor)
        _ensure_within_budget(business, amount, scheduled_date)

        payment_id = uuid.uuid4()
        payment = Payment.objects.create(
            id=payment_id,
            business=business,
            contractor=contractor,
            linkage_kind=Linkage.DIRECT,
            amount=amount,
            currency=currency,
            status=PaymentStatus.SCHEDULED
            if scheduled_date > today
            else PaymentStatus.PROCESSING,
            idempotency_key=f"direct-{payment_id}",
            scheduled_date=scheduled_date,
            notes=notes or "",
            created_by_id=capability.actor.user_id,
        )

        if idempotency_key:
            IdempotencyKey.objects.create(
                business=business,
                key=idempotency_key,
                operation="CREATE_DIRECT_PAYMENT",
                target_object_id=payment.id,
                response_code=201,
            )

        audit_as(
            capability,
            "PAYMENT_CREATED",
            "Payment",
            payment.id,
            business_id=business.id,
            new_state={**_payment_state(payment), "linkage": Linkage.DIRECT},
        )

    logger.info(
        "direct_payment_created",
        extra=_log_extra(payment, "CREATE_DIRECT_PAYMENT", amount=str(amount)),
    )

    if payment.status == PaymentStatus.PROCESSING:
        payment = dispatch_transfer(payment.id)
    return payment, False


# -----------------------------
# Reconciliation
# -----------------------------


@dataclass
class ReconciliationReport:
    checked: int = 0
    completed: int = 0
    failed: int = 0
    resent: int = 0
    retried: int = 0
    released: int = 0
    unresolved: int = 0
    errors: list = field(default_factory=list)
    violations: list = field(default_factory=list)

    def as_dict(self):
        return {
            "checked": self.checked,
            "completed": self.completed,
            "failed": self.failed,
            "resent": self.resent,
            "retried": self.retried,
            "released": self.released,
            "unresolved": self.unresolved,
            "errors": self.errors,
            "violations": [
                {"message": v.message, "details": v.details} for v in self.violations
            ],
        }


def _tally(report, payment):
    if payment.status == PaymentStatus.COMPLETED:
        report.completed += 1
    elif payment.status == PaymentStatus.FAILED:
        report.failed += 1
    else:
        report.unresolved += 1


def reconcile_pending_payments(capability, max_attempts=None):
    """
    Bring PROCESSING payments in line with the processor.

    - transfer id known: fetch its status
    - no transfer id: look the transfer up by idempotency key, and send it
      with that same key only when the processor has never seen it
    - FAILED payments under the attempt limit are retried
    - SCHEDULED payments that are due are released
    Finally the stored invariants are checked; violations are logged and
    reported, never repaired automatically.
    """
    capability.require(Operation.RECONCILE)
    actor = capability.actor
    max_attempts = max_attempts or settings.PAYMENT_MAX_ATTEMPTS
    processor = get_processor()
    report = ReconciliationReport()
    seen = set()

    pending = Payment.objects.filter(status=PaymentStatus.PROCESSING).order_by(
        "created_at"
    )
    for payment in pending:
        report.checked += 1
        seen.add(payment.id)
        payment_capability = grant(actor, Operation.RECONCILE, Resource.of(payment))
        try:
            if payment.external_transfer_id:
                result = processor.get_transfer(payment.external_transfer_id)
            else:
                result = processor.find_transfer(payment.idempotency_key)
        except ProcessorError as exc:
            report.unresolved += 1
            report.errors.append({"paymentId": str(payment.id), "error": str(exc)})
            logger.warning(
                "reconcile_lookup_failed",
                extra=_log_extra(payment, "RECONCILE", error=str(exc)),
            )
            continue

        if result is None:
            try:
                payment = dispatch_transfer(payment.id)
            except PaymentProcessorError as exc:
                report.failed += 1
                report.errors.append({"paymentId": str(payment.id), "error": exc.message})
                continue
            report.resent += 1
            _tally(report, payment)
            continue

        try:
            payment = _apply_status(
                payment_capability,
                Operation.RECONCILE,
                payment,
                result.status,
                transfer_id=result.transfer_id,
                failure_reason=result.failure_reason,
            )
        except ConsistencyError as exc:
            report.unresolved += 1
            report.violations.append(exc)
            logger.error(
                "consistency_violation",
                extra=_log_extra(payment, "RECONCILE", details=exc.details),
            )
            continue
        _tally(report, payment)

    retryable = Payment.objects.filter(
        Q(status=PaymentStatus.FAILED, attempts__lt=max_attempts)
        | Q(status=PaymentStatus.SCHEDULED, scheduled_date__lte=timezone.localdate())
    ).order_by("created_at")
    for payment in retryable:
        if payment.id in seen:
            continue
        payment_capability = grant(actor, Operation.RECONCILE, Resource.of(payment))
        was_scheduled = payment.status == PaymentStatus.SCHEDULED
        try:
            payment = _requeue(
                payment_capability, Operation.RECONCILE, payment.id, max_attempts
            )
        except (PaymentProcessorError, PreconditionFailedError) as exc:
            report.errors.append({"paymentId": str(payment.id), "error": exc.message})
            continue
        if was_scheduled:
            report.released += 1
        else:
            report.retried += 1

    report.violations.extend(check_invariants())

    logger.info(
        "reconciliation_finished",
        extra={
            "operation": "RECONCILE",
            **actor.as_log_extra(),
            **{k: v for k, v in report.as_dict().items() if isinstance(v, int)},
            "violation_count": len(report.violations),
        },
    )
    return report


def check_invariants():
    """
    Query-based consistency checks across WorkItems and Payments.

    Returns a list of ConsistencyError, each also logged.
    """
    violations = []

    def violation(message, **details):
        error = ConsistencyError(message, details)
        logger.error(
            "consistency_violation",
            extra={"operation": "CHECK_INVARIANTS", "error_message": message, **details},
        )
        violations.append(error)

    unapproved = Payment.objects.filter(work_item__isnull=False).exclude(
        work_item__status__in=[WorkItemStatus.APPROVED, WorkItemStatus.PAID]
    )
    for payment in unapproved:
        violation(
            "Payment exists for a WorkItem that was never approved",
            payment_id=str(payment.id),
            work_item_id=str(payment.work_item_id),
        )

    misattributed = Payment.objects.filter(
        (Q(work_item__isnull=False) & ~Q(work_item__business_id=F("business_id")))
        | (Q(contract__isnull=False) & ~Q(contract__business_id=F("business_id")))
    )
    for payment in misattributed:
        violation(
            "Payment business differs from its WorkItem or Contract business",
            payment_id=str(payment.id),
            business_id=str(payment.business_id),
        )

    has_payment = Payment.objects.filter(work_item_id=OuterRef("pk"))
    unpaid = WorkItem.objects.filter(
        status__in=[WorkItemStatus.APPROVED, WorkItemStatus.PAID]
    ).filter(~Exists(has_payment))
    for item in unpaid:
        violation(
            "Approved WorkItem has no payment",
            work_item_id=str(item.id),
            status=item.status,
        )

    has_completed = Payment.objects.filter(
        work_item_id=OuterRef("pk"), status=PaymentStatus.COMPLETED
    )
    paid_without_completion = WorkItem.objects.filter(
        status=WorkItemStatus.PAID
    ).filter(~Exists(has_completed))
    for item in paid_without_completion:
        violation(
            "WorkItem is PAID without a completed payment",
            work_item_id=str(item.id),
        )

    return violations
