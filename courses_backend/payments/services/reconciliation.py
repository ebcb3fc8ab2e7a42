"""
PAYMENT RECONCILIATION

The one path that moves a Payment after checkout. Webhooks, the checkout
response and the maintenance command all end up in `apply_gateway_payment`.

RULES:
- The gateway is the source of truth: webhook bodies are only a hint
  to fetch the payment again.
- Every status change happens under a row lock inside one transaction.
- Same-state notifications are duplicates; disallowed transitions are
  stale (out-of-order) deliveries. Both are no-ops.
- Approval checks the paid amount against the server-side amount.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils import timezone

from catalog.models import Course, Journey
from payments.models import Payment, PaymentItem
from payments.services import mercadopago
from payments.services.payment_lifecycle import (
    TRANSITION_DUPLICATE,
    TRANSITION_STALE,
    can_transition,
    classify_transition,
    map_gateway_status,
    revokes_access,
)
from payments.services.provisioning import provision_payment, revoke_payment

logger = logging.getLogger(__name__)

User = get_user_model()

TWOPLACES = Decimal("0.01")

OUTCOME_APPLIED = "applied"
OUTCOME_DUPLICATE = "duplicate"
OUTCOME_STALE = "stale"
OUTCOME_IGNORED = "ignored"
OUTCOME_AMOUNT_MISMATCH = "amount_mismatch"


@dataclass
class ReconcileResult:
    outcome: str
    payment_id: str | None = None
    status: str | None = None
    detail: str = ""


def _money(v) -> Decimal:
    if v is None or v == "":
        return Decimal("0.00")
    try:
        return Decimal(str(v)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError):
        logger.warning("Invalid money value encountered", extra={"value": v})
        return Decimal("0.00")


# ============================================================
# LOCATE / CREATE
# ============================================================


def _locate_payment_for_update(*, gateway_payment_id: str, external_reference: str):
    qs = Payment.objects.select_for_update()

    if gateway_payment_id:
        payment = qs.filter(gateway_payment_id=gateway_payment_id).first()
        if payment is not None:
            return payment

    if external_reference:
        return qs.filter(external_reference=external_reference).first()

    return None


def _as_uuid(value):
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def _resolve_metadata_items(items):
    resolved = []
    for raw in items or []:
        if not isinstance(raw, dict):
            continue
        item_type = str(raw.get("type") or raw.get("item_type") or "").strip().lower()
        item_id = _as_uuid(raw.get("id"))
        if item_id is None:
            continue

        if item_type in ("course", "curso"):
            target = Course.objects.filter(id=item_id).first()
        elif item_type in ("journey", "jornada"):
            target = Journey.objects.filter(id=item_id).first()
        else:
            target = None

        if target is None:
            continue

        resolved.append(
            {
                "item_type": Payment.ITEM_COURSE if isinstance(target, Course) else Payment.ITEM_JOURNEY,
                "target": target,
                "title": str(raw.get("title") or target.title)[:255],
                "unit_price": _money(target.effective_price),
                "quantity": 1,
            }
        )
    return resolved


def _create_from_gateway(data: dict):
    """
    Builds the local Payment for a gateway payment we never saw at checkout
    (e.g. the checkout response was lost). Returns None when the metadata
    does not identify a known user and at least one known item.

    Prices come from the catalog, never from the metadata, so the approval
    amount check still compares against server-side prices.
    """
    gateway_id = str(data.get("id") or "").strip()
    metadata = data.get("metadata") or {}
    user_id = _as_uuid(metadata.get("user_id") or metadata.get("userId"))
    if not gateway_id or user_id is None:
        return None

    user = User.objects.filter(id=user_id).first()
    if user is None:
        return None

    lines = _resolve_metadata_items(metadata.get("items"))
    if not lines:
        return None

    first = lines[0]
    single = len(lines) == 1

    payment_kwargs = dict(
        user=user,
        gateway_payment_id=gateway_id,
        status=Payment.STATUS_PENDING,
        method=str(data.get("payment_method_id") or "")[:32],
        installments=int(data.get("installments") or 1),
        amount=sum((line["unit_price"] * line["quantity"] for line in lines), Decimal("0.00")),
        currency=str(data.get("currency_id") or "BRL")[:8],
        item_type=first["item_type"] if single else Payment.ITEM_MULTIPLE,
        course=first["target"] if single and first["item_type"] == Payment.ITEM_COURSE else None,
        journey=first["target"] if single and first["item_type"] == Payment.ITEM_JOURNEY else None,
        metadata={"source": "gateway", "items": metadata.get("items") or []},
    )
    if data.get("external_reference"):
        payment_kwargs["external_reference"] = str(data.get("external_reference"))[:64]

    try:
        with transaction.atomic():
            payment = Payment.objects.create(**payment_kwargs)
            for line in lines:
                PaymentItem.objects.create(
                    payment=payment,
                    item_type=line["item_type"],
                    course=line["target"] if line["item_type"] == Payment.ITEM_COURSE else None,
                    journey=line["target"] if line["item_type"] == Payment.ITEM_JOURNEY else None,
                    title=line["title"],
                    unit_price=line["unit_price"],
                    quantity=line["quantity"],
                )
    except IntegrityError:
        # A concurrent delivery created it first.
        logger.info("Payment created concurrently", extra={"gateway_payment_id": gateway_id})
    else:
        logger.info(
            "Payment created from gateway metadata",
            extra={"gateway_payment_id": gateway_id, "user_id": str(user.pk)},
        )

    return Payment.objects.select_for_update().filter(gateway_payment_id=gateway_id).first()


# ============================================================
# APPLY
# ============================================================


def _sync_gateway_fields(payment: Payment, data: dict, gateway_id: str) -> list[str]:
    fields = ["last_gateway_status", "status_detail", "gateway_payload", "updated_at"]

    if gateway_id and not payment.gateway_payment_id:
        payment.gateway_payment_id = gateway_id
        fields.append("gateway_payment_id")

    payment.last_gateway_status = str(data.get("status") or "")[:32]
    payment.status_detail = str(data.get("status_detail") or "")[:128]
    payment.gateway_payload = data
    return fields


@transaction.atomic
def apply_gateway_payment(data: dict) -> ReconcileResult:
    """
    Applies one authoritative gateway payment document to the local Payment.
    """
    gateway_id = str(data.get("id") or "").strip()
    gateway_status = str(data.get("status") or "").strip().lower()
    target = map_gateway_status(gateway_status)

    if target is None:
        logger.warning(
            "Unknown gateway status ignored",
            extra={"gateway_payment_id": gateway_id, "gateway_status": gateway_status},
        )
        return ReconcileResult(outcome=OUTCOME_IGNORED, detail=f"Unknown status '{gateway_status}'")

    payment = _locate_payment_for_update(
        gateway_payment_id=gateway_id,
        external_reference=str(data.get("external_reference") or "").strip(),
    )
    if payment is None:
        payment = _create_from_gateway(data)
    if payment is None:
        logger.warning("Gateway payment not linked to any order", extra={"gateway_payment_id": gateway_id})
        return ReconcileResult(outcome=OUTCOME_IGNORED, detail="Unknown payment")

    fields = _sync_gateway_fields(payment, data, gateway_id)
    current = payment.status
    transition = classify_transition(from_status=current, to_status=target)

    if transition == TRANSITION_DUPLICATE:
        payment.save(update_fields=fields)
        return ReconcileResult(
            outcome=OUTCOME_DUPLICATE, payment_id=str(payment.id), status=payment.status
        )

    if transition == TRANSITION_STALE:
        payment.save(update_fields=fields)
        logger.warning(
            "Stale payment transition ignored",
            extra={"payment_id": str(payment.id), "from": current, "to": target},
        )
        return ReconcileResult(
            outcome=OUTCOME_STALE,
            payment_id=str(payment.id),
            status=payment.status,
            detail=f"{current} -> {target} not allowed",
        )

    now = timezone.now()

    if target == Payment.STATUS_APPROVED:
        paid = _money(data.get("transaction_amount"))
        expected = _money(payment.amount)

        if paid != expected:
            logger.error(
                "Payment amount mismatch",
                extra={"payment_id": str(payment.id), "paid": str(paid), "expected": str(expected)},
            )
            if can_transition(from_status=current, to_status=Payment.STATUS_FAILED):
                payment.status = Payment.STATUS_FAILED
                fields.append("status")
            payment.failure_reason = f"Amount mismatch: paid {paid}, expected {expected}"
            payment.save(update_fields=fields + ["failure_reason"])
            return ReconcileResult(
                outcome=OUTCOME_AMOUNT_MISMATCH,
                payment_id=str(payment.id),
                status=payment.status,
                detail=payment.failure_reason,
            )

        payment.status = Payment.STATUS_APPROVED
        payment.approved_at = payment.approved_at or now
        payment.failure_reason = ""
        payment.save(update_fields=fields + ["status", "approved_at", "failure_reason"])
        provision_payment(payment)

    else:
        payment.status = target
        fields.append("status")
        if target in (Payment.STATUS_REFUNDED, Payment.STATUS_CANCELLED):
            payment.refunded_at = payment.refunded_at or now
            fields.append("refunded_at")
        payment.save(update_fields=fields)

        if revokes_access(from_status=current, to_status=target):
            revoke_payment(payment)

    logger.info(
        "Payment transition applied",
        extra={"payment_id": str(payment.id), "from": current, "to": payment.status},
    )
    return ReconcileResult(outcome=OUTCOME_APPLIED, payment_id=str(payment.id), status=payment.status)


def reconcile_gateway_payment(gateway_payment_id) -> ReconcileResult:
    """
    Fetches the payment from the gateway and applies it.

    Raises mercadopago.GatewayError when the gateway cannot be reached.
    """
    data = mercadopago.get_payment(gateway_payment_id)
    return apply_gateway_payment(data)
