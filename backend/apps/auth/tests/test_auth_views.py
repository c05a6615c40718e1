from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from core.tests.factories import make_business, make_business_user


class AuthViewTests(APITestCase):
    def setUp(self):
        self.user = make_business_user(make_business(), username="login_user")

    def _login(self, password="testpass123"):
        return self.client.post(
            reverse("auth:login"),
            {"username": "login_user", "password": password},
            format="json",
        )

    def test_login_returns_tokens_and_user(self):
        response = self._login()
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.json()["data"]
        self.assertTrue(data["token"])
        self.assertTrue(data["refreshToken"])
        self.assertEqual(data["user"]["role"], "BUSINESS")
        self.assertEqual(data["user"]["businessId"], str(self.user.business_id))

    def test_login_does_not_need_idempotency_key(self):
        self.assertEqual(self._login().status_code, status.HTTP_200_OK)

    def test_invalid_credentials(self):
        response = self._login(password="wrong")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.json()["error"]["code"], "UNAUTHORIZED")

    def test_token_authenticates_requests(self):
        token = self._login().json()["data"]["token"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
        response = self.client.get(reverse("users:current-user"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["data"]["username"], "login_user")

    def test_logout_blacklists_refresh_token(self):
        tokens = self._login().json()["data"]
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['token']}")
        response = self.client.post(
            reverse("auth:logout"),
            {"refreshToken": tokens["refreshToken"]},
            format="json",
            HTTP_IDEMPOTENCY_KEY="logout-1",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        refreshed = self.client.post(
            reverse("auth:refresh"),
            {"refresh": tokens["refreshToken"]},
            format="json",
        )
        self.assertEqual(refreshed.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_logout_requires_idempotency_key(self):
        self.client.force_authenticate(self.user)
        response = self.client.post(reverse("auth:logout"), {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
