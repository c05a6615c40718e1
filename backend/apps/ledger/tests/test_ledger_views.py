import uuid
from datetime import date
from decimal import Decimal

from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.payments.models import PaymentStatus
from core.tests.factories import (
    make_admin,
    make_business,
    make_business_user,
    make_contractor,
    make_contractor_user,
    make_payment,
    make_work_item,
)


class LedgerViewTestCase(APITestCase):
    def setUp(self):
        self.business = make_business(budget_cap=Decimal("1000.00"))
        self.rival_business = make_business("Rival")
        self.contractor = make_contractor()
        self.owner = make_business_user(self.business)
        self.worker = make_contractor_user(self.contractor)
        self.today = timezone.localdate()

        self.paid = make_payment(
            self.business, self.contractor, "300.00", scheduled=self.today
        )
        self.pending = make_payment(
            self.business, self.contractor, "120.00",
            status=PaymentStatus.PROCESSING, scheduled=self.today,
        )
        self.rival_payment = make_payment(
            self.rival_business, make_contractor("Elsewhere"), "75.00", scheduled=self.today
        )


class PaymentListTests(LedgerViewTestCase):
    def test_business_sees_own_payments(self):
        self.client.force_authenticate(self.owner)
        response = self.client.get(reverse("ledger:list-payments"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        ids = {row["id"] for row in response.json()["results"]}
        self.assertEqual(ids, {str(self.paid.id), str(self.pending.id)})

    def test_business_cannot_ask_for_another_business(self):
        self.client.force_authenticate(self.owner)
        response = self.client.get(
            reverse("ledger:list-payments"), {"businessId": str(self.rival_business.id)}
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.json()["error"]["details"]["reason"], "TENANT_MISMATCH")

    def test_status_filter_is_validated(self):
        self.client.force_authenticate(self.owner)
        response = self.client.get(reverse("ledger:list-payments"), {"status": "PENDING"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get(reverse("ledger:list-payments"), {"status": "PROCESSING"})
        self.assertEqual(response.json()["count"], 1)

    def test_contractor_sees_received_payments(self):
        self.client.force_authenticate(self.worker)
        response = self.client.get(reverse("ledger:list-payments"))
        self.assertEqual(response.json()["count"], 2)

    def test_admin_sees_everything(self):
        self.client.force_authenticate(make_admin())
        response = self.client.get(reverse("ledger:list-payments"))
        self.assertEqual(response.json()["count"], 3)

        response = self.client.get(
            reverse("ledger:list-payments"), {"businessId": str(self.rival_business.id)}
        )
        self.assertEqual(response.json()["count"], 1)

    def test_rival_cannot_read_payment(self):
        rival = make_business_user(self.rival_business, username="rival")
        self.client.force_authenticate(rival)
        response = self.client.get(reverse("ledger:get-payment", args=[self.paid.id]))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_unknown_payment(self):
        self.client.force_authenticate(self.owner)
        response = self.client.get(reverse("ledger:get-payment", args=[uuid.uuid4()]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class SummaryTests(LedgerViewTestCase):
    def test_business_summary(self):
        self.client.force_authenticate(self.owner)
        data = self.client.get(reverse("ledger:ledger-summary")).json()["data"]
        self.assertEqual(data["totalPaid"], "300.00")
        self.assertEqual(data["currency"], "USD")
        self.assertEqual(data["totalPending"], "120.00")

    def test_contractor_summary(self):
        self.client.force_authenticate(self.worker)
        data = self.client.get(reverse("ledger:ledger-summary")).json()["data"]
        self.assertEqual(data["contractorId"], str(self.contractor.id))
        self.assertEqual(data["totalEarned"], "300.00")

    def test_period_outside_payments(self):
        self.client.force_authenticate(self.owner)
        response = self.client.get(
            reverse("ledger:ledger-summary"), {"from": "2000-01-01", "to": "2000-12-31"}
        )
        self.assertEqual(response.json()["data"]["totalPaid"], "0.00")

    def test_bad_period(self):
        self.client.force_authenticate(self.owner)
        response = self.client.get(
            reverse("ledger:ledger-summary"), {"from": "2026-05-10", "to": "2026-05-01"}
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_monthly(self):
        self.client.force_authenticate(self.owner)
        response = self.client.get(
            reverse("ledger:ledger-monthly"), {"year": self.today.year}
        )
        months = response.json()["data"]["months"]
        self.assertEqual(len(months), 12)
        self.assertEqual(months[self.today.month - 1]["total"], "300.00")

    def test_contractor_has_no_monthly_view(self):
        self.client.force_authenticate(self.worker)
        response = self.client.get(reverse("ledger:ledger-monthly"))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class BudgetViewTests(LedgerViewTestCase):
    def _put(self, body):
        return self.client.put(
            reverse("ledger:ledger-budget"),
            body,
            format="json",
            HTTP_IDEMPOTENCY_KEY="budget-" + uuid.uuid4().hex[:8],
        )

    def test_budget_summary(self):
        self.client.force_authenticate(self.owner)
        data = self.client.get(reverse("ledger:ledger-budget")).json()["data"]
        self.assertEqual(data["budgetUsed"], "420.00")
        self.assertEqual(data["remainingBudget"], "580.00")
        self.assertEqual(
            data["period"]["start"], date(self.today.year, self.today.month, 1).isoformat()
        )

    def test_update_budget(self):
        self.client.force_authenticate(self.owner)
        response = self._put({"budgetCap": "5000.00", "budgetPeriod": "YEARLY"})
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        data = response.json()["data"]
        self.assertEqual(data["budgetPeriod"], "YEARLY")
        self.assertEqual(data["remainingBudget"], "4580.00")

    def test_cap_below_commitments(self):
        make_work_item(self.business, amount=Decimal("800.00"))
        self.client.force_authenticate(self.owner)
        response = self._put({"budgetCap": "700.00"})
        self.assertEqual(response.status_code, status.HTTP_412_PRECONDITION_FAILED)

    def test_admin_reads_but_cannot_update(self):
        self.client.force_authenticate(make_admin())
        response = self.client.get(
            reverse("ledger:ledger-budget"), {"businessId": str(self.business.id)}
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self._put({"budgetCap": "1.00"})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_contractor_cannot_read_budget(self):
        self.client.force_authenticate(self.worker)
        response = self.client.get(reverse("ledger:ledger-budget"))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
