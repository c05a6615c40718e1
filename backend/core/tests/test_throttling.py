from django.urls import reverse
from rest_framework.test import APITestCase

from apps.users.models import User
from core.throttling import IdempotencyThrottle, MutationUserThrottle, WebhookThrottle


class ThrottleSmokeTest(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            username="throttle_user",
            display_name="Throttle",
            role="ADMIN",
        )
        self.client.force_authenticate(self.user)

    def test_mutation_requests_execute(self):
        url = reverse("directory:list-or-create-businesses")

        response = self.client.post(
            url,
            {"displayName": "T1"},
            format="json",
            HTTP_IDEMPOTENCY_KEY="abc123",
        )

        self.assertIn(response.status_code, [201, 400])

    def test_read_requests_are_not_throttled_by_mutation_scope(self):
        url = reverse("directory:list-or-create-businesses")
        response = self.client.get(url)
        self.assertEqual(response.status_code, 200)

    def test_scopes(self):
        self.assertEqual(MutationUserThrottle.scope, "mutation_user")
        self.assertEqual(IdempotencyThrottle.scope, "idempotency")
        self.assertEqual(WebhookThrottle.scope, "webhook")
