"""
Work item lifecycle services.

Rules:
- Every function takes a guard Capability as its first argument
- All mutations wrapped in transaction.atomic
- Use select_for_update for row-level locking, WorkItem first
- Transitions validated by core.state_machine and version-locked
- Create audit entries for all mutations
- Approval records the payment in the same transaction; the transfer is
  sent after commit
"""

import logging
from decimal import Decimal, InvalidOperation

from django.db import DatabaseError, transaction
from django.db.models import Max
from django.utils import timezone

from core.exceptions import (
    ConsistencyError,
    NotFoundError,
    PreconditionFailedError,
    ValidationError,
)
from core.guard import Operation
from core.state_machine import validate_transition
from core.versioning import version_locked_update
from apps.audit.services import audit_as
from apps.directory.models import Business, Contract, ContractStatus, Contractor
from apps.payments import services as payment_services
from apps.payments.models import IdempotencyKey, Payment
from apps.work import artifacts
from apps.work.models import ReviewStatus, Submission, WorkItem, WorkItemStatus

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = [WorkItemStatus.DRAFT, WorkItemStatus.OPEN]


def _lock_item(work_item_id):
    try:
        return WorkItem.objects.select_for_update().get(id=work_item_id)
    except WorkItem.DoesNotExist:
        raise NotFoundError(f"WorkItem {work_item_id} does not exist")


def _parse_amount(amount):
    if amount is None:
        return None
    try:
        amount = Decimal(str(amount))
    except (InvalidOperation, TypeError):
        raise ValidationError("amount must be a decimal number", {"field": "amount"})
    if amount <= 0:
        raise ValidationError("amount must be greater than zero", {"field": "amount"})
    return amount


def _active_contractor(contractor_id):
    contractor = Contractor.objects.filter(id=contractor_id).first()
    if contractor is None:
        raise NotFoundError(f"Contractor {contractor_id} does not exist")
    if not contractor.is_active:
        raise PreconditionFailedError(f"Contractor {contractor_id} is inactive")
    return contractor


def _transition(capability, item, target_status, event_type, extra_updates=None, audit=None):
    """Validate, version-lock and audit one WorkItem transition. item must be locked."""
    previous_status = item.status
    validate_transition("WorkItem", previous_status, target_status)

    now = timezone.now()
    updates = {"status": target_status, "updated_at": now}
    updates.update(extra_updates or {})
    version_locked_update(
        WorkItem.objects.filter(id=item.id), current_version=item.version, **updates
    )
    item.refresh_from_db()

    audit_as(
        capability,
        event_type,
        "WorkItem",
        item.id,
        business_id=item.business_id,
        previous_state={"status": previous_status},
        new_state={"status": item.status, **(audit or {})},
    )
    return previous_status


def _log_transition(item, operation, previous_status):
    logger.info(
        "work_item_transitioned",
        extra={
            "operation": operation,
            "entity_id": str(item.id),
            "business_id": str(item.business_id),
            "from_status": previous_status,
            "to_status": item.status,
        },
    )


# -----------------------------
# Business side
# -----------------------------


def create_work_item(
    capability,
    business_id,
    title,
    description="",
    amount=None,
    currency=None,
    contract_id=None,
    contractor_id=None,
    due_date=None,
    publish=False,
    idempotency_key=None,
):
    """
    Create a WorkItem for the business, DRAFT or (publish=True) OPEN.

    A contract, when given, must belong to the business and be ACTIVE; its
    contractor becomes the item's target unless another one is named.

    Returns:
        tuple: (WorkItem, replayed)
    """
    if not title or not str(title).strip():
        raise ValidationError("title must be non-empty", {"field": "title"})
    amount = _parse_amount(amount)
    currency = payment_services.parse_currency(currency)
    if publish and amount is None:
        raise ValidationError(
            "amount is required to publish a work item", {"field": "amount"}
        )
    if publish and not (description or "").strip():
        raise ValidationError(
            "description is required to publish a work item",
            {"field": "description"},
        )

    with transaction.atomic():
        try:
            business = Business.objects.select_for_update().get(id=business_id)
        except Business.DoesNotExist:
            raise NotFoundError(f"Business {business_id} does not exist")
        capability.verify(Operation.CREATE, business)

        if idempotency_key:
            existing = IdempotencyKey.objects.filter(
                business=business, key=idempotency_key, operation="CREATE_WORK_ITEM"
            ).first()
            if existing:
                return WorkItem.objects.get(id=existing.target_object_id), True

        if not business.is_active:
            raise PreconditionFailedError(f"Business {business_id} is inactive")

        contract = None
        if contract_id:
            contract = Contract.objects.filter(id=contract_id).first()
            if contract is None or str(contract.business_id) != str(business.id):
                raise NotFoundError(f"Contract {contract_id} does not exist")
            if contract.status != ContractStatus.ACTIVE:
                raise PreconditionFailedError(
                    "Work can only be added to an ACTIVE contract",
                    {"contractStatus": contract.status},
                )
            if contractor_id and contract.contractor_id and str(contractor_id) != str(
                contract.contractor_id
            ):
                raise ValidationError(
                    "contractorId differs from the contract's contractor",
                    {"field": "contractorId"},
                )
            contractor_id = contractor_id or contract.contractor_id

        contractor = _active_contractor(contractor_id) if contractor_id else None

        now = timezone.now()
        item = WorkItem.objects.create(
            business=business,
            contract=contract,
            contractor=contractor,
            title=str(title).strip(),
            description=description or "",
            amount=amount,
            currency=currency,
            due_date=due_date,
            status=WorkItemStatus.OPEN if publish else WorkItemStatus.DRAFT,
            published_at=now if publish else None,
            created_by_id=capability.actor.user_id,
        )

        if idempotency_key:
            IdempotencyKey.objects.create(
                business=business,
                key=idempotency_key,
                operation="CREATE_WORK_ITEM",
                target_object_id=item.id,
                response_code=201,
            )

        audit_as(
            capability,
            "WORK_ITEM_CREATED",
            "WorkItem",
            item.id,
            business_id=business.id,
            new_state={
                "status": item.status,
                "title": item.title,
                "amount": str(amount) if amount is not None else None,
                "currency": currency,
                "contractId": str(contract.id) if contract else None,
                "contractorId": str(contractor.id) if contractor else None,
            },
        )

    logger.info(
        "work_item_created",
        extra={
            "operation": "CREATE_WORK_ITEM",
            "entity_id": str(item.id),
            "business_id": str(business.id),
        },
    )
    return item, False


def update_work_item(capability, work_item_id, **fields):
    """
    Edit title, description, amount, currency, due date or target contractor.

    Allowed while DRAFT or OPEN; the price is fixed once work is assigned.
    """
    allowed = {"title", "description", "amount", "currency", "due_date", "contractor_id"}
    unknown = set(fields) - allowed
    if unknown:
        raise ValidationError("Unknown fields", {"fields": sorted(unknown)})

    with transaction.atomic():
        item = _lock_item(work_item_id)
        capability.verify(Operation.UPDATE, item)
        if item.status not in EDITABLE_STATUSES:
            raise PreconditionFailedError(
                f"WorkItem in state {item.status} cannot be edited",
                {"currentState": item.status},
            )

        previous_state = {
            "title": item.title,
            "amount": str(item.amount) if item.amount is not None else None,
            "currency": item.currency,
            "contractorId": str(item.contractor_id) if item.contractor_id else None,
        }

        updates = {}
        if "title" in fields:
            if not fields["title"] or not str(fields["title"]).strip():
                raise ValidationError("title must be non-empty", {"field": "title"})
            updates["title"] = str(fields["title"]).strip()
        if "description" in fields:
            updates["description"] = fields["description"] or ""
        if "amount" in fields:
            amount = _parse_amount(fields["amount"])
            if amount is None and item.status != WorkItemStatus.DRAFT:
                raise ValidationError(
                    "amount is required once published", {"field": "amount"}
                )
            updates["amount"] = amount
        if "currency" in fields:
            updates["currency"] = payment_services.parse_currency(fields["currency"])
        if "due_date" in fields:
            updates["due_date"] = fields["due_date"]
        if "contractor_id" in fields:
            contractor_id = fields["contractor_id"]
            if item.contract_id and contractor_id:
                contract = Contract.objects.get(id=item.contract_id)
                if contract.contractor_id and str(contract.contractor_id) != str(
                    contractor_id
                ):
                    raise ValidationError(
                        "contractorId differs from the contract's contractor",
                        {"field": "contractorId"},
                    )
            updates["contractor_id"] = (
                _active_contractor(contractor_id).id if contractor_id else None
            )

        if updates:
            version_locked_update(
                WorkItem.objects.filter(id=item.id),
                current_version=item.version,
                updated_at=timezone.now(),
                **updates,
            )
            item.refresh_from_db()

        audit_as(
            capability,
            "WORK_ITEM_UPDATED",
            "WorkItem",
            item.id,
            business_id=item.business_id,
            previous_state=previous_state,
            new_state={
                "title": item.title,
                "amount": str(item.amount) if item.amount is not None else None,
                "currency": item.currency,
                "contractorId": str(item.contractor_id) if item.contractor_id else None,
            },
        )

    return item


def publish_work_item(capability, work_item_id):
    """DRAFT -> OPEN. A price is required."""
    with transaction.atomic():
        item = _lock_item(work_item_id)
        capability.verify(Operation.UPDATE, item)
        if item.amount is None or not item.description.strip():
            raise PreconditionFailedError(
                "A work item needs an amount and a description before it can be published",
                {"hasAmount": item.amount is not None},
            )
        previous_status = _transition(
            capability,
            item,
            WorkItemStatus.OPEN,
            "WORK_ITEM_PUBLISHED",
            {"published_at": timezone.now()},
        )

    _log_transition(item, "PUBLISH_WORK_ITEM", previous_status)
    return item


def assign_work_item(capability, work_item_id, contractor_id):
    """OPEN -> ASSIGNED to contractor_id."""
    with transaction.atomic():
        item = _lock_item(work_item_id)
        capability.verify(Operation.ASSIGN, item)
        contractor = _active_contractor(contractor_id)
        if item.contract_id:
            contract = Contract.objects.get(id=item.contract_id)
            if contract.contractor_id and str(contract.contractor_id) != str(contractor.id):
                raise ValidationError(
                    "contractorId differs from the contract's contractor",
                    {"field": "contractorId"},
                )

        previous_status = _transition(
            capability,
            item,
            WorkItemStatus.ASSIGNED,
            "WORK_ITEM_ASSIGNED",
            {"contractor_id": contractor.id, "assigned_at": timezone.now()},
            audit={"contractorId": str(contractor.id)},
        )

    _log_transition(item, "ASSIGN_WORK_ITEM", previous_status)
    return item


def cancel_work_item(capability, work_item_id, reason=None):
    """Cancel unapproved work. Approved or paid work cannot be cancelled."""
    with transaction.atomic():
        item = _lock_item(work_item_id)
        capability.verify(Operation.CANCEL, item)
        if item.status == WorkItemStatus.CANCELLED:
            return item

        previous_status = _transition(
            capability,
            item,
            WorkItemStatus.CANCELLED,
            "WORK_ITEM_CANCELLED",
            {"cancelled_at": timezone.now()},
            audit={"reason": reason} if reason else None,
        )

    _log_transition(item, "CANCEL_WORK_ITEM", previous_status)
    return item


# -----------------------------
# Contractor side
# -----------------------------


def accept_work_item(capability, work_item_id):
    """
    Contractor takes on work.

    OPEN work targeted at the contractor moves to ASSIGNED. Accepting work
    already ASSIGNED to them records the acknowledgement only.
    """
    with transaction.atomic():
        item = _lock_item(work_item_id)
        capability.verify(Operation.ACCEPT, item)

        if item.status == WorkItemStatus.ASSIGNED:
            if item.accepted_at is None:
                now = timezone.now()
                version_locked_update(
                    WorkItem.objects.filter(id=item.id),
                    current_version=item.version,
                    accepted_at=now,
                    updated_at=now,
                )
                item.refresh_from_db()
                audit_as(
                    capability,
                    "WORK_ITEM_ACCEPTED",
                    "WorkItem",
                    item.id,
                    business_id=item.business_id,
                    previous_state={"status": item.status},
                    new_state={"status": item.status},
                )
            return item

        now = timezone.now()
        previous_status = _transition(
            capability,
            item,
            WorkItemStatus.ASSIGNED,
            "WORK_ITEM_ACCEPTED",
            {"assigned_at": now, "accepted_at": now},
        )

    _log_transition(item, "ACCEPT_WORK_ITEM", previous_status)
    return item


def decline_work_item(capability, work_item_id, reason=None):
    """Contractor declines OPEN or ASSIGNED work."""
    with transaction.atomic():
        item = _lock_item(work_item_id)
        capability.verify(Operation.DECLINE, item)
        previous_status = _transition(
            capability,
            item,
            WorkItemStatus.DECLINED,
            "WORK_ITEM_DECLINED",
            {"declined_at": timezone.now()},
            audit={"reason": reason} if reason else None,
        )

    _log_transition(item, "DECLINE_WORK_ITEM", previous_status)
    return item


def upload_artifact(capability, work_item_id, file):
    """
    Store a deliverable file for a later submission. Returns its reference.

    The blob is written after the guard and state checks have committed, with
    no row lock held. If the audit record cannot be written the blob is
    removed again.
    """
    with transaction.atomic():
        item = _lock_item(work_item_id)
        capability.verify(Operation.SUBMIT, item)
        if item.status not in [WorkItemStatus.ASSIGNED, WorkItemStatus.REJECTED]:
            raise PreconditionFailedError(
                f"Cannot upload artifacts for work in state {item.status}",
                {"currentState": item.status},
            )

    ref = artifacts.save_artifact(item.id, file)
    try:
        audit_as(
            capability,
            "ARTIFACT_UPLOADED",
            "WorkItem",
            item.id,
            business_id=item.business_id,
            new_state={"artifact": ref},
        )
    except DatabaseError:
        artifacts.delete_artifact(ref)
        raise
    return ref


def submit_work(capability, work_item_id, artifact_refs, notes=""):
    """
    Record a new Submission and move the item to SUBMITTED.

    Allowed from ASSIGNED, and from REJECTED for a resubmission. Each
    submission gets the next sequence number.
    """
    if not isinstance(artifact_refs, (list, tuple)) or not artifact_refs:
        raise ValidationError(
            "At least one artifact is required", {"field": "artifacts"}
        )
    if any(not isinstance(ref, str) or not ref.strip() for ref in artifact_refs):
        raise ValidationError(
            "Artifacts must be non-empty references", {"field": "artifacts"}
        )

    with transaction.atomic():
        item = _lock_item(work_item_id)
        capability.verify(Operation.SUBMIT, item)
        validate_transition("WorkItem", item.status, WorkItemStatus.SUBMITTED)

        last = item.submissions.aggregate(last=Max("sequence"))["last"] or 0
        submission = Submission.objects.create(
            work_item=item,
            sequence=last + 1,
            artifacts=list(artifact_refs),
            notes=notes or "",
            submitted_by_id=capability.actor.user_id,
        )

        previous_status = _transition(
            capability,
            item,
            WorkItemStatus.SUBMITTED,
            "WORK_SUBMITTED",
            {"submitted_at": timezone.now()},
            audit={"submissionId": str(submission.id), "sequence": submission.sequence},
        )

    _log_transition(item, "SUBMIT_WORK", previous_status)
    return submission


# -----------------------------
# Review
# -----------------------------


def _pending_submission(item):
    submission = item.active_submission
    if submission is None:
        raise ConsistencyError(
            "Submitted WorkItem has no submission", {"workItemId": str(item.id)}
        )
    if submission.review_status != ReviewStatus.PENDING:
        raise PreconditionFailedError(
            "The latest submission has already been reviewed",
            {"submissionId": str(submission.id), "reviewStatus": submission.review_status},
        )
    return submission


def approve_work_item(capability, work_item_id, review_notes=None):
    """
    Approve the latest submission and pay for it.

    In one transaction: the item moves SUBMITTED -> APPROVED, the submission
    is marked approved and a PROCESSING Payment is recorded. If the budget
    or the payee is not ready nothing changes. The transfer is sent after
    commit; approving again returns the existing payment.

    Returns:
        tuple: (WorkItem, Payment, replayed)

    Raises:
        PaymentProcessorError: the processor rejected the transfer. The item
            stays APPROVED and the payment FAILED, ready for a retry.
    """
    with transaction.atomic():
        item = _lock_item(work_item_id)
        capability.verify(Operation.APPROVE, item)

        if item.status in [WorkItemStatus.APPROVED, WorkItemStatus.PAID]:
            payment = Payment.objects.filter(work_item_id=item.id).first()
            if payment is None:
                raise ConsistencyError(
                    "Approved WorkItem has no payment", {"workItemId": str(item.id)}
                )
            return item, payment, True

        validate_transition("WorkItem", item.status, WorkItemStatus.APPROVED)
        submission = _pending_submission(item)

        payment = payment_services.execute_payment(capability, item, submission)

        now = timezone.now()
        submission.review_status = ReviewStatus.APPROVED
        submission.reviewed_at = now
        submission.review_notes = review_notes
        submission.reviewer_id = capability.actor.user_id
        submission.save()

        previous_status = _transition(
            capability,
            item,
            WorkItemStatus.APPROVED,
            "WORK_ITEM_APPROVED",
            {"approved_at": now, "approved_by_id": capability.actor.user_id},
            audit={"submissionId": str(submission.id), "paymentId": str(payment.id)},
        )

    logger.info(
        "work_item_approved",
        extra={
            "operation": "APPROVE_WORK_ITEM",
            "entity_id": str(item.id),
            "business_id": str(item.business_id),
            "payment_id": str(payment.id),
            "from_status": previous_status,
            "to_status": item.status,
        },
    )

    payment = payment_services.dispatch_transfer(payment.id)
    item.refresh_from_db()
    return item, payment, False


def reject_work_item(capability, work_item_id, review_notes):
    """SUBMITTED -> REJECTED with reviewer notes; the contractor may resubmit."""
    if not review_notes or not str(review_notes).strip():
        raise ValidationError(
            "reviewNotes are required to reject work", {"field": "reviewNotes"}
        )

    with transaction.atomic():
        item = _lock_item(work_item_id)
        capability.verify(Operation.REJECT, item)
        validate_transition("WorkItem", item.status, WorkItemStatus.REJECTED)
        submission = _pending_submission(item)

        now = timezone.now()
        submission.review_status = ReviewStatus.REJECTED
        submission.reviewed_at = now
        submission.review_notes = str(review_notes).strip()
        submission.reviewer_id = capability.actor.user_id
        submission.save()

        previous_status = _transition(
            capability,
            item,
            WorkItemStatus.REJECTED,
            "WORK_ITEM_REJECTED",
            {"rejected_at": now},
            audit={"submissionId": str(submission.id)},
        )

    _log_transition(item, "REJECT_WORK_ITEM", previous_status)
    return item
