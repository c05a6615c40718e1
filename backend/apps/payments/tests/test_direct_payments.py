from datetime import timedelta
from decimal import Decimal

from django.test import override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.payments.models import Linkage, Payment, PaymentStatus
from apps.payments.tests.fakes import FAKE_PROCESSOR, FakeProcessor
from core.tests.factories import (
    make_business,
    make_business_user,
    make_contractor,
    make_contractor_user,
)


@override_settings(PAYMENT_PROCESSOR=FAKE_PROCESSOR)
class DirectPaymentTests(APITestCase):
    def setUp(self):
        FakeProcessor.reset()
        self.business = make_business()
        self.contractor = make_contractor()
        self.owner = make_business_user(self.business)
        self.client.force_authenticate(self.owner)
        self.url = reverse("payments:create-direct-payment")

    def _pay(self, key="direct-1", **overrides):
        body = {
            "contractorId": str(self.contractor.id),
            "amount": "250.00",
            "currency": "usd",
            "notes": "Conference travel",
        }
        body.update(overrides)
        return self.client.post(self.url, body, format="json", HTTP_IDEMPOTENCY_KEY=key)

    def test_direct_payment_is_sent(self):
        response = self._pay()

        self.assertEqual(response.status_code, status.HTTP_202_ACCEPTED, response.data)
        data = response.json()["data"]
        self.assertEqual(data["status"], "PROCESSING")
        self.assertEqual(data["currency"], "USD")
        self.assertEqual(
            data["linkage"], {"kind": "DIRECT", "contractId": None, "workItemId": None}
        )
        payment = Payment.objects.get(id=data["id"])
        self.assertEqual(payment.business_id, self.business.id)
        self.assertEqual(payment.linkage_kind, Linkage.DIRECT)
        self.assertTrue(payment.idempotency_key.startswith("direct-"))
        self.assertEqual(len(FakeProcessor.transfer_calls()), 1)

    def test_settled_direct_payment_returns_created(self):
        FakeProcessor.reset(initial_status="succeeded")
        response = self._pay()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.json()["data"]["status"], "COMPLETED")

    def test_direct_payment_failed_on_arrival(self):
        FakeProcessor.reset(initial_status="failed")
        response = self._pay()

        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertTrue(response.json()["error"]["details"]["retryable"])
        self.assertEqual(Payment.objects.get().status, PaymentStatus.FAILED)

    def test_same_idempotency_key_replays(self):
        first = self._pay(key="direct-same").json()["data"]
        response = self._pay(key="direct-same")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["data"]["id"], first["id"])
        self.assertEqual(Payment.objects.count(), 1)
        self.assertEqual(len(FakeProcessor.transfer_calls()), 1)

    def test_same_key_from_another_business_is_not_replayed(self):
        first = self._pay(key="1", amount="777.00").json()["data"]

        rival_business = make_business("Rival")
        self.client.force_authenticate(
            make_business_user(rival_business, username="rival")
        )
        response = self._pay(key="1", amount="5.00")

        self.assertEqual(response.status_code, status.HTTP_202_ACCEPTED, response.data)
        data = response.json()["data"]
        self.assertNotEqual(data["id"], first["id"])
        self.assertEqual(data["businessId"], str(rival_business.id))
        self.assertEqual(data["amount"], "5.00")
        self.assertEqual(Payment.objects.filter(business=rival_business).count(), 1)
        self.assertEqual(Payment.objects.filter(business=self.business).count(), 1)

    def test_replay_still_requires_permission(self):
        self._pay(key="direct-owned")

        self.client.force_authenticate(make_contractor_user(self.contractor))
        response = self._pay(key="direct-owned")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_future_payment_is_scheduled(self):
        scheduled = timezone.localdate() + timedelta(days=10)
        response = self._pay(scheduledDate=scheduled.isoformat())

        self.assertEqual(response.status_code, status.HTTP_202_ACCEPTED)
        data = response.json()["data"]
        self.assertEqual(data["status"], "SCHEDULED")
        self.assertEqual(data["scheduledDate"], scheduled.isoformat())
        self.assertEqual(FakeProcessor.calls, [])

    def test_past_date_is_rejected(self):
        yesterday = timezone.localdate() - timedelta(days=1)
        response = self._pay(scheduledDate=yesterday.isoformat())
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_other_currency_is_rejected(self):
        response = self._pay(currency="EUR")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(
            response.json()["error"]["details"]["settlementCurrency"], "USD"
        )
        self.assertFalse(Payment.objects.exists())
        self.assertEqual(FakeProcessor.calls, [])

    def test_currency_defaults_to_the_settlement_currency(self):
        body = {"contractorId": str(self.contractor.id), "amount": "40.00"}
        response = self.client.post(
            self.url, body, format="json", HTTP_IDEMPOTENCY_KEY="direct-no-currency"
        )

        self.assertEqual(response.status_code, status.HTTP_202_ACCEPTED, response.data)
        self.assertEqual(response.json()["data"]["currency"], "USD")

    def test_non_positive_amount_is_rejected(self):
        response = self._pay(amount="0.00")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Payment.objects.exists())

    def test_budget_applies_to_direct_payments(self):
        self.business.budget_cap = Decimal("200.00")
        self.business.save()

        response = self._pay()

        self.assertEqual(response.status_code, status.HTTP_412_PRECONDITION_FAILED)
        self.assertFalse(Payment.objects.exists())

    def test_contractor_without_payout_account(self):
        self.contractor.connected_account_id = None
        self.contractor.save()

        response = self._pay()

        self.assertEqual(response.status_code, status.HTTP_412_PRECONDITION_FAILED)
        self.assertFalse(response.json()["error"]["details"]["hasConnectedAccount"])

    def test_unknown_contractor(self):
        response = self._pay(contractorId="00000000-0000-0000-0000-000000000000")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_contractor_cannot_pay(self):
        self.client.force_authenticate(make_contractor_user(self.contractor))
        response = self._pay()
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_direct_payment_appears_in_ledger(self):
        FakeProcessor.reset(initial_status="succeeded")
        self._pay()

        response = self.client.get(reverse("ledger:list-payments"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        results = response.json()["results"]
        self.assertEqual(len(results), 1)
        self.assertEqual(results[0]["linkage"]["kind"], "DIRECT")

        summary = self.client.get(reverse("ledger:ledger-summary")).json()["data"]
        self.assertEqual(summary["totalPaid"], "250.00")

    def test_retry_belongs_to_the_paying_business(self):
        FakeProcessor.reset(mode="reject")
        self._pay()
        payment = Payment.objects.get()
        self.assertEqual(payment.status, PaymentStatus.FAILED)

        rival = make_business_user(make_business("Rival"), username="rival")
        self.client.force_authenticate(rival)
        response = self.client.post(
            reverse("payments:retry-payment", args=[payment.id]),
            {},
            format="json",
            HTTP_IDEMPOTENCY_KEY="retry-rival",
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
