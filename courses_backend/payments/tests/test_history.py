# payments/tests/test_history.py

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from catalog.models import Course
from payments.models import Payment
from users.models import ROLE_ADMIN, ROLE_MODERATOR

User = get_user_model()


class PaymentHistoryTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(email="buyer@example.com", password="pass12345!")
        self.other = User.objects.create_user(email="other@example.com", password="pass12345!")

        self.course = Course.objects.create(title="Django", description="Web", public=True)
        self.mine = Payment.objects.create(
            user=self.user, amount=Decimal("10.00"), item_type=Payment.ITEM_COURSE, course=self.course
        )
        self.mine_approved = Payment.objects.create(
            user=self.user,
            amount=Decimal("20.00"),
            item_type=Payment.ITEM_MULTIPLE,
            status=Payment.STATUS_APPROVED,
        )
        self.theirs = Payment.objects.create(
            user=self.other, amount=Decimal("30.00"), item_type=Payment.ITEM_MULTIPLE
        )

    def test_lists_only_own_payments(self):
        self.client.force_authenticate(self.user)

        response = self.client.get("/api/payments/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        ids = {row["id"] for row in response.data}
        self.assertEqual(ids, {str(self.mine.id), str(self.mine_approved.id)})

    def test_filters_by_course(self):
        self.client.force_authenticate(self.user)

        response = self.client.get("/api/payments/", {"course_id": str(self.course.id)})

        self.assertEqual([row["id"] for row in response.data], [str(self.mine.id)])

    def test_filters_by_status(self):
        self.client.force_authenticate(self.user)

        response = self.client.get("/api/payments/", {"status": "approved"})

        self.assertEqual([row["id"] for row in response.data], [str(self.mine_approved.id)])

    def test_invalid_course_filter(self):
        self.client.force_authenticate(self.user)

        response = self.client.get("/api/payments/", {"course_id": "nope"})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_scope_all_requires_capability(self):
        self.client.force_authenticate(self.user)

        response = self.client.get("/api/payments/", {"scope": "all"})

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_moderator_lists_all(self):
        moderator = User.objects.create_user(
            email="mod@example.com", password="pass12345!", role=ROLE_MODERATOR
        )
        self.client.force_authenticate(moderator)

        response = self.client.get("/api/payments/", {"scope": "all"})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 3)

    def test_detail_hides_other_users_payments(self):
        self.client.force_authenticate(self.user)

        response = self.client.get(f"/api/payments/{self.theirs.id}/")

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_admin_sees_any_payment(self):
        admin = User.objects.create_user(email="admin@example.com", password="pass12345!", role=ROLE_ADMIN)
        self.client.force_authenticate(admin)

        response = self.client.get(f"/api/payments/{self.theirs.id}/")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["user_id"], str(self.other.id))

    def test_requires_authentication(self):
        response = self.client.get("/api/payments/")

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
