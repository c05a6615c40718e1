"""
Shared test data builders.

Rows are created directly through the ORM so each test can start from the
state it needs without replaying the whole lifecycle.
"""

import uuid
from decimal import Decimal

from django.utils import timezone

from apps.directory.models import Business, Contract, Contractor
from apps.payments.models import Payment
from apps.users.models import User
from apps.work.models import ReviewStatus, Submission, WorkItem, WorkItemStatus


def make_business(name="Acme Studio", budget_cap=None, **extra):
    return Business.objects.create(display_name=name, budget_cap=budget_cap, **extra)


def make_contractor(name="Casey Contractor", ready=True, **extra):
    if ready:
        extra.setdefault("connected_account_id", f"acct_{uuid.uuid4().hex[:12]}")
        extra.setdefault("payouts_enabled", True)
    return Contractor.objects.create(display_name=name, **extra)


def make_business_user(business, username="owner"):
    return User.objects.create_user(
        username=username,
        password="testpass123",
        display_name=username.title(),
        role="BUSINESS",
        business=business,
    )


def make_contractor_user(contractor, username="worker"):
    return User.objects.create_user(
        username=username,
        password="testpass123",
        display_name=username.title(),
        role="CONTRACTOR",
        contractor=contractor,
    )


def make_admin(username="admin"):
    return User.objects.create_user(
        username=username,
        password="testpass123",
        display_name="Admin",
        role="ADMIN",
    )


def make_contract(business, contractor=None, code=None, status="ACTIVE"):
    return Contract.objects.create(
        business=business,
        contractor=contractor,
        title="Retainer",
        code=code or f"C-{uuid.uuid4().hex[:8]}",
        status=status,
        total_value=Decimal("10000.00"),
    )


def make_work_item(
    business,
    contractor=None,
    status=WorkItemStatus.OPEN,
    amount=Decimal("500.00"),
    contract=None,
    **extra,
):
    now = timezone.now()
    if status != WorkItemStatus.DRAFT:
        extra.setdefault("published_at", now)
    if status in (WorkItemStatus.APPROVED, WorkItemStatus.PAID):
        extra.setdefault("approved_at", now)
    return WorkItem.objects.create(
        business=business,
        contractor=contractor,
        contract=contract,
        title=extra.pop("title", "Landing page"),
        description=extra.pop("description", "Design and build the landing page"),
        amount=amount,
        currency=extra.pop("currency", "USD"),
        status=status,
        **extra,
    )


def make_submitted_item(business, contractor, submitted_by=None, **extra):
    """WorkItem in SUBMITTED with one pending Submission."""
    item = make_work_item(
        business,
        contractor,
        status=WorkItemStatus.SUBMITTED,
        assigned_at=timezone.now(),
        submitted_at=timezone.now(),
        **extra,
    )
    Submission.objects.create(
        work_item=item,
        sequence=1,
        artifacts=["https://files.example.com/landing.zip"],
        submitted_by=submitted_by,
        review_status=ReviewStatus.PENDING,
    )
    return item


def make_payment(
    business,
    contractor,
    amount,
    status="COMPLETED",
    scheduled=None,
    completed=None,
    contract=None,
):
    """Payment row without going through the processor."""
    scheduled = scheduled or timezone.localdate()
    if status == "COMPLETED" and completed is None:
        completed = scheduled
    return Payment.objects.create(
        business=business,
        contractor=contractor,
        linkage_kind="CONTRACT_LINKED" if contract else "DIRECT",
        contract=contract,
        amount=Decimal(amount),
        currency="USD",
        status=status,
        idempotency_key=f"payment-{uuid.uuid4().hex}",
        scheduled_date=scheduled,
        completed_date=completed,
    )
