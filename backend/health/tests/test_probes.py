from django.test import TestCase
from django.urls import reverse
from rest_framework.test import APIClient


class HealthProbeTests(TestCase):
    def setUp(self):
        self.client = APIClient()

    def test_health_check_reports_database(self):
        response = self.client.get("/api/health/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["database"], "connected")

    def test_live_needs_no_auth(self):
        response = self.client.get("/api/health/live/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], "alive")

    def test_ready_checks_payment_tables(self):
        response = self.client.get(reverse("health:ready"))
        self.assertIn("idempotency_table", response.data["checks"])
        self.assertEqual(response.data["checks"]["payments_table"], "ok")
