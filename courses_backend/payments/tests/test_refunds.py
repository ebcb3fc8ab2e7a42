# payments/tests/test_refunds.py

from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from catalog.models import Course
from enrollments.models import Enrollment
from payments.models import Payment, PaymentItem, Refund
from payments.services.mercadopago import GatewayError

User = get_user_model()


class RefundRequestTests(TestCase):
    """
    GUARANTEES:
    - Buyers can refund approved payments inside the refund window
    - A successful refund revokes access and marks the payment REFUNDED
    - Non-buyers, unapproved payments, repeated refunds and late requests are rejected
    - Gateway rejections leave the payment untouched
    """

    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(email="buyer@example.com", password="pass12345!")
        self.other = User.objects.create_user(email="other@example.com", password="pass12345!")
        self.client.force_authenticate(self.user)

        self.course = Course.objects.create(
            title="Django", description="Web", price=Decimal("100.00"), public=True
        )
        self.payment = Payment.objects.create(
            user=self.user,
            amount=Decimal("100.00"),
            status=Payment.STATUS_APPROVED,
            gateway_payment_id="777",
            item_type=Payment.ITEM_COURSE,
            course=self.course,
            approved_at=timezone.now(),
        )
        PaymentItem.objects.create(
            payment=self.payment,
            item_type=Payment.ITEM_COURSE,
            course=self.course,
            title="Django",
            unit_price=Decimal("100.00"),
        )
        Enrollment.objects.create(user=self.user, course=self.course, source_payment=self.payment)

    def _url(self, payment=None):
        return f"/api/payments/{(payment or self.payment).id}/refund/"

    @patch("payments.services.mercadopago.create_refund")
    def test_refund_revokes_access(self, mock_refund):
        mock_refund.return_value = {"id": 1234, "status": "approved"}

        response = self.client.post(self._url(), {"reason": "Changed my mind"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["refund"]["status"], Refund.STATUS_COMPLETED)
        mock_refund.assert_called_once_with("777", idempotency_key=f"refund-{self.payment.id}")

        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.STATUS_REFUNDED)
        self.assertIsNotNone(self.payment.refunded_at)
        self.assertFalse(Enrollment.objects.filter(user=self.user, course=self.course).exists())

        refund = Refund.objects.get(payment=self.payment)
        self.assertEqual(refund.gateway_refund_id, "1234")
        self.assertEqual(refund.reason, "Changed my mind")
        self.assertEqual(refund.amount, Decimal("100.00"))

    @patch("payments.services.mercadopago.create_refund")
    def test_refund_completes_when_payment_was_refunded_meanwhile(self, mock_refund):
        def refunded_by_webhook(*args, **kwargs):
            Payment.objects.filter(id=self.payment.id).update(status=Payment.STATUS_REFUNDED)
            return {"id": 4321, "status": "approved"}

        mock_refund.side_effect = refunded_by_webhook

        response = self.client.post(self._url(), {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        refund = Refund.objects.get(payment=self.payment)
        self.assertEqual(refund.status, Refund.STATUS_COMPLETED)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.STATUS_REFUNDED)
        self.assertIsNone(self.payment.refunded_at)

    @patch("payments.services.mercadopago.create_refund")
    def test_legacy_route(self, mock_refund):
        mock_refund.return_value = {"id": 1235, "status": "approved"}

        response = self.client.post(
            "/api/mercado-pago/refund/request/", {"paymentId": str(self.payment.id)}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.STATUS_REFUNDED)

    @patch("payments.services.mercadopago.create_refund")
    def test_other_user_forbidden(self, mock_refund):
        self.client.force_authenticate(self.other)

        response = self.client.post(self._url(), {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data["error"]["code"], "FORBIDDEN")
        mock_refund.assert_not_called()

    @patch("payments.services.mercadopago.create_refund")
    def test_unknown_payment_not_found(self, mock_refund):
        response = self.client.post(
            "/api/payments/00000000-0000-0000-0000-000000000000/refund/", {}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        mock_refund.assert_not_called()

    @patch("payments.services.mercadopago.create_refund")
    def test_pending_payment_not_refundable(self, mock_refund):
        Payment.objects.filter(id=self.payment.id).update(status=Payment.STATUS_PENDING)

        response = self.client.post(self._url(), {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"]["code"], "PAYMENT_NOT_REFUNDABLE")
        mock_refund.assert_not_called()

    @patch("payments.services.mercadopago.create_refund")
    def test_second_refund_rejected(self, mock_refund):
        Refund.objects.create(
            payment=self.payment, amount=self.payment.amount, status=Refund.STATUS_COMPLETED
        )

        response = self.client.post(self._url(), {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"]["code"], "ALREADY_REFUNDED")
        mock_refund.assert_not_called()

    @patch("payments.services.mercadopago.create_refund")
    def test_refund_window_expired(self, mock_refund):
        Payment.objects.filter(id=self.payment.id).update(
            created_at=timezone.now() - timedelta(days=31)
        )

        response = self.client.post(self._url(), {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"]["code"], "REFUND_WINDOW_EXPIRED")
        mock_refund.assert_not_called()
        self.assertTrue(Enrollment.objects.filter(user=self.user, course=self.course).exists())

    @patch("payments.services.mercadopago.create_refund")
    def test_gateway_rejection_keeps_access(self, mock_refund):
        mock_refund.return_value = {"id": 1236, "status": "rejected"}

        response = self.client.post(self._url(), {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(response.data["error"]["code"], "REFUND_REJECTED")
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.STATUS_APPROVED)
        self.assertTrue(Enrollment.objects.filter(user=self.user, course=self.course).exists())
        self.assertEqual(
            Refund.objects.get(payment=self.payment).status, Refund.STATUS_REJECTED
        )

    @patch("payments.services.mercadopago.create_refund")
    def test_gateway_error_returns_502(self, mock_refund):
        mock_refund.side_effect = GatewayError("timeout", status_code=504)

        response = self.client.post(self._url(), {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(response.data["error"]["code"], "GATEWAY_ERROR")
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.STATUS_APPROVED)
        self.assertFalse(Refund.objects.filter(payment=self.payment).exists())
