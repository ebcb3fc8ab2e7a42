# users/tests/test_auth.py

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from users.models import ROLE_ADMIN, ROLE_MODERATOR, ROLE_USER, RoleEmail

User = get_user_model()


class RegisterLoginTests(TestCase):
    def setUp(self):
        self.client = APIClient()

    def test_register_defaults_to_user_role(self):
        response = self.client.post(
            "/api/auth/register/",
            {"email": "new@example.com", "password": "S3cure-pass!", "name": "New Person"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["role"], ROLE_USER)
        self.assertNotIn("password", response.data)

    def test_register_ignores_client_role(self):
        response = self.client.post(
            "/api/auth/register/",
            {"email": "sneaky@example.com", "password": "S3cure-pass!", "role": ROLE_ADMIN},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(User.objects.get(email="sneaky@example.com").role, ROLE_USER)

    def test_register_takes_role_from_allow_list(self):
        RoleEmail.objects.create(email="Mod@Example.com", role=ROLE_MODERATOR)

        response = self.client.post(
            "/api/auth/register/",
            {"email": "mod@example.com", "password": "S3cure-pass!"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        user = User.objects.get(email="mod@example.com")
        self.assertEqual(user.role, ROLE_MODERATOR)
        self.assertTrue(user.is_staff)

    def test_login_returns_jwt_pair(self):
        user = User.objects.create_user(email="login@example.com", password="S3cure-pass!")

        response = self.client.post(
            "/api/auth/login/",
            {"email": "login@example.com", "password": "S3cure-pass!"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["user_id"], user.id)
        self.assertIn("access", response.data)
        self.assertIn("refresh", response.data)

    def test_login_rejects_bad_password(self):
        User.objects.create_user(email="login@example.com", password="S3cure-pass!")

        response = self.client.post(
            "/api/auth/login/",
            {"email": "login@example.com", "password": "wrong"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_with_bearer_token(self):
        User.objects.create_user(email="me@example.com", password="S3cure-pass!", name="Me")
        login = self.client.post(
            "/api/auth/login/",
            {"email": "me@example.com", "password": "S3cure-pass!"},
            format="json",
        )

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {login.data['access']}")
        response = self.client.get("/api/auth/me/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["email"], "me@example.com")
        self.assertEqual(response.data["name"], "Me")

    def test_me_requires_authentication(self):
        response = self.client.get("/api/auth/me/")

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
