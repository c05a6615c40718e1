"""
Database-level guarantees that hold even if a service is bypassed.
"""

from decimal import Decimal

from django.db import IntegrityError, transaction
from django.test import TestCase
from django.utils import timezone

from apps.payments.models import IdempotencyKey, Linkage, Payment, PaymentStatus
from apps.work.models import WorkItemStatus
from core.tests.factories import (
    make_business,
    make_contract,
    make_contractor,
    make_work_item,
)


class PaymentConstraintTests(TestCase):
    def setUp(self):
        self.business = make_business()
        self.contractor = make_contractor()
        self.item = make_work_item(
            self.business, self.contractor, status=WorkItemStatus.APPROVED
        )

    def _create(self, **overrides):
        fields = {
            "business": self.business,
            "contractor": self.contractor,
            "linkage_kind": Linkage.DIRECT,
            "amount": Decimal("10.00"),
            "currency": "USD",
            "status": PaymentStatus.PROCESSING,
            "idempotency_key": f"key-{Payment.objects.count()}",
            "scheduled_date": timezone.localdate(),
        }
        fields.update(overrides)
        return Payment.objects.create(**fields)

    def test_one_payment_per_work_item(self):
        self._create(work_item=self.item)
        with self.assertRaises(IntegrityError), transaction.atomic():
            self._create(work_item=self.item, idempotency_key="second")

    def test_idempotency_key_is_unique(self):
        self._create(idempotency_key="same")
        with self.assertRaises(IntegrityError), transaction.atomic():
            self._create(idempotency_key="same")

    def test_contract_linked_requires_contract(self):
        with self.assertRaises(IntegrityError), transaction.atomic():
            self._create(linkage_kind=Linkage.CONTRACT_LINKED)

    def test_direct_payment_has_no_contract(self):
        contract = make_contract(self.business, self.contractor)
        with self.assertRaises(IntegrityError), transaction.atomic():
            self._create(contract=contract)

    def test_amount_must_be_positive(self):
        with self.assertRaises(IntegrityError), transaction.atomic():
            self._create(amount=Decimal("0.00"))

    def test_completed_requires_completed_date(self):
        with self.assertRaises(IntegrityError), transaction.atomic():
            self._create(status=PaymentStatus.COMPLETED)

    def test_many_direct_payments_without_work_item(self):
        self._create()
        self._create()
        self.assertEqual(Payment.objects.filter(work_item__isnull=True).count(), 2)

    def test_idempotency_key_unique_per_business_and_operation(self):
        rival = make_business("Rival")
        IdempotencyKey.objects.create(
            business=self.business, key="k1", operation="CREATE_WORK_ITEM"
        )
        IdempotencyKey.objects.create(
            business=self.business, key="k1", operation="CREATE_DIRECT_PAYMENT"
        )
        IdempotencyKey.objects.create(business=rival, key="k1", operation="CREATE_WORK_ITEM")
        with self.assertRaises(IntegrityError), transaction.atomic():
            IdempotencyKey.objects.create(
                business=self.business, key="k1", operation="CREATE_WORK_ITEM"
            )


class WorkItemConstraintTests(TestCase):
    def setUp(self):
        self.business = make_business()

    def test_published_item_needs_amount(self):
        with self.assertRaises(IntegrityError), transaction.atomic():
            make_work_item(self.business, status=WorkItemStatus.OPEN, amount=None)

    def test_draft_item_may_omit_amount(self):
        item = make_work_item(self.business, status=WorkItemStatus.DRAFT, amount=None)
        self.assertIsNone(item.amount)

    def test_assigned_item_needs_contractor(self):
        with self.assertRaises(IntegrityError), transaction.atomic():
            make_work_item(self.business, status=WorkItemStatus.ASSIGNED)

    def test_approved_item_needs_approved_at(self):
        with self.assertRaises(IntegrityError), transaction.atomic():
            make_work_item(
                self.business,
                make_contractor(),
                status=WorkItemStatus.APPROVED,
                approved_at=None,
            )
