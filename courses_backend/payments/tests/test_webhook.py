# payments/tests/test_webhook.py

from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APIClient

from catalog.models import Course
from enrollments.models import Enrollment
from payments.models import Payment, WebhookEvent
from payments.services.mercadopago import (
    GatewayError,
    build_signature_manifest,
    compute_signature,
)

User = get_user_model()

WEBHOOK_URL = "/api/mercado-pago/webhook/"
SECRET = "whsec-test"


@override_settings(WEBHOOK_SIGNATURE_REQUIRED=False)
class WebhookTests(TestCase):
    """
    GUARANTEES:
    - Payment notifications are reconciled against the gateway
    - A redelivery with the same x-request-id is processed once
    - Gateway failures answer 502 so the delivery is retried
    - Unknown topics are acknowledged without side effects
    """

    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(email="buyer@example.com", password="pass12345!")
        self.course = Course.objects.create(
            title="Django", description="Web", price=Decimal("100.00"), public=True
        )
        self.payment = Payment.objects.create(
            user=self.user,
            amount=Decimal("100.00"),
            item_type=Payment.ITEM_COURSE,
            course=self.course,
            gateway_payment_id="9001",
        )
        self.approved_doc = {
            "id": 9001,
            "status": "approved",
            "status_detail": "accredited",
            "transaction_amount": 100.0,
            "external_reference": self.payment.external_reference,
        }

    def _notify(self, request_id="req-1", data_id="9001", topic="payment", **headers):
        return self.client.post(
            WEBHOOK_URL,
            {"type": topic, "action": f"{topic}.updated", "data": {"id": data_id}},
            format="json",
            HTTP_X_REQUEST_ID=request_id,
            **headers,
        )

    @patch("payments.services.mercadopago.get_payment")
    def test_payment_notification_approves(self, mock_get):
        mock_get.return_value = self.approved_doc

        response = self._notify()

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["ok"])
        self.assertEqual(response.data["outcome"], "applied")
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.STATUS_APPROVED)
        self.assertTrue(Enrollment.objects.filter(user=self.user, course=self.course).exists())

        event = WebhookEvent.objects.get(delivery_id="req-1")
        self.assertEqual(event.outcome, WebhookEvent.OUTCOME_APPLIED)
        self.assertIsNotNone(event.processed_at)

    @patch("payments.services.mercadopago.get_payment")
    def test_redelivery_is_processed_once(self, mock_get):
        mock_get.return_value = self.approved_doc

        self._notify(request_id="req-dup")
        response = self._notify(request_id="req-dup")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["detail"], "Duplicate delivery")
        self.assertEqual(mock_get.call_count, 1)
        self.assertEqual(WebhookEvent.objects.filter(delivery_id="req-dup").count(), 1)

    @patch("payments.services.mercadopago.get_payment")
    def test_new_delivery_for_same_state_is_duplicate_outcome(self, mock_get):
        mock_get.return_value = self.approved_doc

        self._notify(request_id="req-a")
        response = self._notify(request_id="req-b")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["outcome"], "duplicate")
        self.assertEqual(Enrollment.objects.filter(user=self.user).count(), 1)

    @patch("payments.services.mercadopago.get_payment")
    def test_gateway_failure_returns_502_and_allows_retry(self, mock_get):
        mock_get.side_effect = GatewayError("unavailable", status_code=503)

        response = self._notify(request_id="req-retry")

        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(response.data["error"]["code"], "GATEWAY_ERROR")
        event = WebhookEvent.objects.get(delivery_id="req-retry")
        self.assertIsNone(event.processed_at)

        mock_get.side_effect = None
        mock_get.return_value = self.approved_doc

        response = self._notify(request_id="req-retry")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["outcome"], "applied")

    @patch("payments.services.mercadopago.get_payment")
    def test_unknown_topic_is_ignored(self, mock_get):
        response = self._notify(topic="subscription_preapproval")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["detail"], "Ignored")
        mock_get.assert_not_called()

    @patch("payments.services.mercadopago.get_payment")
    def test_merchant_order_is_recorded_only(self, mock_get):
        response = self._notify(topic="merchant_order", data_id="555")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["detail"], "Recorded")
        mock_get.assert_not_called()
        self.assertTrue(WebhookEvent.objects.filter(topic="merchant_order", resource_id="555").exists())

    def test_missing_data_id_is_rejected(self):
        response = self.client.post(
            WEBHOOK_URL, {"type": "payment", "data": {}}, format="json", HTTP_X_REQUEST_ID="req-x"
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"]["code"], "INVALID_PAYLOAD")

    @patch("payments.services.mercadopago.get_payment")
    def test_oversized_data_id_is_rejected(self, mock_get):
        response = self._notify(request_id="req-long", data_id="9" * 200)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"]["code"], "INVALID_PAYLOAD")
        mock_get.assert_not_called()
        event = WebhookEvent.objects.get(delivery_id="req-long")
        self.assertEqual(len(event.resource_id), 64)

    def test_oversized_headers_and_topic_are_clipped(self):
        response = self._notify(request_id="r" * 300, topic="t" * 100, data_id="555")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        event = WebhookEvent.objects.get()
        self.assertEqual(len(event.delivery_id), 128)
        self.assertEqual(len(event.topic), 64)
        self.assertEqual(len(event.action), 64)

    @patch("payments.services.mercadopago.get_payment")
    def test_legacy_query_string_notification(self, mock_get):
        mock_get.return_value = self.approved_doc

        response = self.client.post(f"{WEBHOOK_URL}?topic=payment&id=9001", {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        mock_get.assert_called_once_with("9001")


@override_settings(
    WEBHOOK_SIGNATURE_REQUIRED=True,
    PAYMENTS={"MERCADOPAGO": {"WEBHOOK_SECRET": SECRET}},
)
class WebhookSignatureTests(TestCase):
    def setUp(self):
        self.client = APIClient()

    def _post(self, signature):
        return self.client.post(
            WEBHOOK_URL,
            {"type": "merchant_order", "data": {"id": "777"}},
            format="json",
            HTTP_X_REQUEST_ID="req-sig",
            HTTP_X_SIGNATURE=signature,
        )

    def _valid_signature(self):
        ts = "1704908010"
        manifest = build_signature_manifest(data_id="777", request_id="req-sig", ts=ts)
        return f"ts={ts},v1={compute_signature(secret=SECRET, manifest=manifest)}"

    def test_valid_signature_accepted(self):
        response = self._post(self._valid_signature())

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        event = WebhookEvent.objects.get(delivery_id="req-sig")
        self.assertTrue(event.signature_valid)

    def test_invalid_signature_rejected(self):
        response = self._post("ts=1704908010,v1=deadbeef")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"]["code"], "INVALID_SIGNATURE")
        event = WebhookEvent.objects.get(outcome=WebhookEvent.OUTCOME_INVALID_SIGNATURE)
        self.assertFalse(event.signature_valid)
        self.assertIsNone(event.delivery_id)
        self.assertIsNone(event.processed_at)

    def test_rejected_delivery_does_not_claim_request_id(self):
        self._post("ts=1704908010,v1=deadbeef")

        response = self._post(self._valid_signature())

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["detail"], "Recorded")
        event = WebhookEvent.objects.get(delivery_id="req-sig")
        self.assertTrue(event.signature_valid)


@override_settings(
    WEBHOOK_SIGNATURE_REQUIRED=True,
    PAYMENTS={"MERCADOPAGO": {"WEBHOOK_SECRET": SECRET}},
)
class SignedPaymentWebhookTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(email="buyer@example.com", password="pass12345!")
        self.course = Course.objects.create(
            title="Django", description="Web", price=Decimal("100.00"), public=True
        )
        self.payment = Payment.objects.create(
            user=self.user,
            amount=Decimal("100.00"),
            item_type=Payment.ITEM_COURSE,
            course=self.course,
            gateway_payment_id="9001",
        )

    def _post(self, signature=None):
        headers = {"HTTP_X_REQUEST_ID": "req-pay"}
        if signature:
            headers["HTTP_X_SIGNATURE"] = signature
        return self.client.post(
            WEBHOOK_URL,
            {"type": "payment", "action": "payment.updated", "data": {"id": "9001"}},
            format="json",
            **headers,
        )

    @patch("payments.services.mercadopago.get_payment")
    def test_unsigned_delivery_cannot_block_genuine_one(self, mock_get):
        mock_get.return_value = {
            "id": 9001,
            "status": "approved",
            "transaction_amount": 100.0,
            "external_reference": self.payment.external_reference,
        }

        response = self._post()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        mock_get.assert_not_called()

        ts = "1704908010"
        manifest = build_signature_manifest(data_id="9001", request_id="req-pay", ts=ts)
        response = self._post(f"ts={ts},v1={compute_signature(secret=SECRET, manifest=manifest)}")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["outcome"], "applied")
        mock_get.assert_called_once_with("9001")
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, Payment.STATUS_APPROVED)
