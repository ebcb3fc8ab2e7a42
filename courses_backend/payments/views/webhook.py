# payments/views/webhook.py

"""
MERCADO PAGO WEBHOOK

POST /api/mercado-pago/webhook/

Accepts both notification styles:
- JSON:   {"type": "payment", "action": "payment.updated", "data": {"id": "123"}}
- legacy: ?topic=payment&id=123  (IPN)

Every delivery is recorded as a WebhookEvent. Payment notifications are
reconciled against the gateway's own view of the payment; refund,
chargeback and merchant_order notifications are recorded and acknowledged.

Responses:
- 200 once the notification is accepted (including business-level no-ops)
- 400 invalid signature / missing or oversized data id

Signatures are checked before the delivery ledger is touched: a rejected
delivery is audited without its x-request-id.
- 502 when the gateway lookup fails, so the gateway retries
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from rest_framework import status
from rest_framework.parsers import FormParser, JSONParser
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle
from rest_framework.views import APIView

from payments.models import WebhookEvent
from payments.services.mercadopago import GatewayError, verify_webhook_signature
from payments.services.reconciliation import OUTCOME_APPLIED, reconcile_gateway_payment
from payments.views.common import error_response

logger = logging.getLogger(__name__)

PAYMENT_TOPICS = {"payment"}
ACKNOWLEDGED_TOPICS = {"refund", "chargeback", "chargebacks", "merchant_order"}

# Mercado Pago ids are numeric strings; matches Payment.gateway_payment_id.
MAX_RESOURCE_ID_LENGTH = 64


class WebhookThrottle(AnonRateThrottle):
    scope = "webhook"


def _resource_id(resource) -> str:
    # Legacy IPN bodies carry either the id or a resource URL ending in it.
    text = str(resource or "").strip().rstrip("/")
    return text.rsplit("/", 1)[-1] if text else ""


def _extract_notification(request) -> tuple[str, str, str, dict]:
    raw = request.data
    if hasattr(raw, "dict"):
        payload = raw.dict()
    else:
        payload = dict(raw) if isinstance(raw, dict) else {}
    params = request.query_params

    topic = payload.get("type") or payload.get("topic") or params.get("type") or params.get("topic") or ""
    action = payload.get("action") or ""

    data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
    data_id = data.get("id") or params.get("data.id") or params.get("id") or ""
    if not data_id and payload.get("topic"):
        data_id = payload.get("id") or _resource_id(payload.get("resource"))

    return str(topic).strip().lower(), str(action).strip(), str(data_id or "").strip(), payload


def _signature_required() -> bool:
    return bool(getattr(settings, "WEBHOOK_SIGNATURE_REQUIRED", True))


def _event_fields(*, topic, action, resource_id, payload, signature_valid) -> dict:
    # Values come from unauthenticated input; clip them to the column sizes.
    return {
        "topic": topic[:64],
        "action": action[:64],
        "resource_id": resource_id[:MAX_RESOURCE_ID_LENGTH],
        "payload": payload,
        "signature_valid": signature_valid,
    }


def _record_rejected(*, request_id, **fields) -> WebhookEvent:
    """
    Audit row for a delivery that failed signature verification. It never
    claims the delivery id, so a genuine delivery with the same
    x-request-id is still processed.
    """
    return WebhookEvent.objects.create(
        delivery_id=None,
        outcome=WebhookEvent.OUTCOME_INVALID_SIGNATURE,
        error=f"x-request-id: {request_id[:128]}" if request_id else "",
        **_event_fields(**fields),
    )


def _record_event(*, delivery_id, **fields):
    """
    Returns (event, already_processed).
    """
    defaults = _event_fields(**fields)

    if not delivery_id:
        return WebhookEvent.objects.create(**defaults), False

    with transaction.atomic():
        event, created = WebhookEvent.objects.select_for_update().get_or_create(
            delivery_id=delivery_id[:128],
            defaults=defaults,
        )

    if created:
        return event, False

    if event.processed_at is not None:
        return event, True

    # A previous attempt failed before finishing; process this retry.
    event.signature_valid = defaults["signature_valid"]
    event.payload = defaults["payload"]
    event.save(update_fields=["signature_valid", "payload"])
    return event, False


def _finish(event: WebhookEvent, outcome: str, *, error: str = "", processed: bool = True):
    event.outcome = outcome
    event.error = error
    event.processed_at = timezone.now() if processed else None
    event.save(update_fields=["outcome", "error", "processed_at"])


class MercadoPagoWebhookView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    parser_classes = [JSONParser, FormParser]
    throttle_classes = [WebhookThrottle]

    def post(self, request, *args, **kwargs):
        topic, action, data_id, payload = _extract_notification(request)
        request_id = (request.headers.get("x-request-id") or "").strip()

        signature_valid = verify_webhook_signature(
            signature_header=request.headers.get("x-signature"),
            request_id=request_id,
            data_id=data_id,
        )

        logger.info(
            "Mercado Pago webhook received",
            extra={"topic": topic, "action": action, "resource_id": data_id, "request_id": request_id},
        )

        fields = dict(
            topic=topic,
            action=action,
            resource_id=data_id,
            payload=payload,
            signature_valid=signature_valid,
        )

        if _signature_required() and not signature_valid:
            logger.warning("Invalid Mercado Pago signature", extra={"request_id": request_id})
            _record_rejected(request_id=request_id, **fields)
            return error_response(
                code="INVALID_SIGNATURE",
                message="Invalid signature",
                http_status=status.HTTP_400_BAD_REQUEST,
            )

        event, already_processed = _record_event(delivery_id=request_id or None, **fields)

        if already_processed:
            logger.info("Duplicate webhook delivery ignored", extra={"request_id": request_id})
            return Response({"ok": True, "detail": "Duplicate delivery"}, status=status.HTTP_200_OK)

        if topic not in PAYMENT_TOPICS and topic not in ACKNOWLEDGED_TOPICS:
            _finish(event, WebhookEvent.OUTCOME_IGNORED)
            return Response({"ok": True, "detail": "Ignored"}, status=status.HTTP_200_OK)

        if not data_id or len(data_id) > MAX_RESOURCE_ID_LENGTH:
            logger.warning("Webhook received without a valid data id", extra={"topic": topic})
            _finish(event, WebhookEvent.OUTCOME_ERROR, error="Missing or invalid data id")
            return error_response(
                code="INVALID_PAYLOAD",
                message="Invalid payload: data.id is required",
                http_status=status.HTTP_400_BAD_REQUEST,
            )

        if topic in ACKNOWLEDGED_TOPICS:
            _finish(event, WebhookEvent.OUTCOME_IGNORED)
            return Response({"ok": True, "detail": "Recorded"}, status=status.HTTP_200_OK)

        try:
            result = reconcile_gateway_payment(data_id)
        except GatewayError as exc:
            logger.error(
                "Gateway lookup failed during webhook",
                extra={"resource_id": data_id, "error": str(exc)},
            )
            _finish(event, WebhookEvent.OUTCOME_ERROR, error=str(exc), processed=False)
            return error_response(
                code="GATEWAY_ERROR",
                message="Could not fetch payment from gateway",
                http_status=status.HTTP_502_BAD_GATEWAY,
            )

        _finish(event, result.outcome, error="" if result.outcome == OUTCOME_APPLIED else result.detail)

        logger.info(
            "Webhook processed",
            extra={"resource_id": data_id, "outcome": result.outcome, "payment_id": result.payment_id},
        )
        return Response(
            {"ok": True, "outcome": result.outcome, "detail": result.detail or "Processed"},
            status=status.HTTP_200_OK,
        )
