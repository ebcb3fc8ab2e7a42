# users/tests/test_ensure_superuser.py

from io import StringIO
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.test import TestCase

from users.models import ROLE_ADMIN

User = get_user_model()

ENV = {"AUTO_ADMIN_EMAIL": "root@example.com", "AUTO_ADMIN_PASSWORD": "Root-pass-123"}


class EnsureSuperuserCommandTests(TestCase):
    @patch.dict("os.environ", ENV)
    def test_creates_admin(self):
        call_command("ensure_superuser", stdout=StringIO())

        user = User.objects.get(email="root@example.com")
        self.assertTrue(user.is_superuser)
        self.assertEqual(user.role, ROLE_ADMIN)
        self.assertTrue(user.check_password("Root-pass-123"))

    @patch.dict("os.environ", ENV)
    def test_promotes_existing_user(self):
        User.objects.create_user(email="root@example.com", password="old-pass-123")

        call_command("ensure_superuser", stdout=StringIO())

        user = User.objects.get(email="root@example.com")
        self.assertTrue(user.is_superuser)
        self.assertEqual(user.role, ROLE_ADMIN)
        self.assertTrue(user.check_password("Root-pass-123"))
        self.assertEqual(User.objects.count(), 1)

    @patch.dict("os.environ", {"AUTO_ADMIN_EMAIL": "", "AUTO_ADMIN_PASSWORD": ""})
    def test_skips_without_env(self):
        out = StringIO()

        call_command("ensure_superuser", stdout=out)

        self.assertIn("Skipping", out.getvalue())
        self.assertFalse(User.objects.exists())
