# payments/services/checkout_orchestrator.py

"""
CHECKOUT ORCHESTRATOR (APPLICATION SERVICE)

Purpose:
- Turn a list of courses/journeys (explicit, or the buyer's cart) into a
  PENDING Payment with frozen item snapshots.
- Create the payment at Mercado Pago.
- Apply the synchronous gateway answer through reconciliation, so card
  payments approved on the spot are provisioned immediately.

Hard rules:
- Money values are computed server-side from effective catalog prices;
  client-supplied prices and totals are ignored.
- Items the buyer already has active access to are rejected.
- The local Payment is committed BEFORE calling the gateway, so a
  notification arriving early can always be matched by external_reference.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.db import transaction

from cart.services.cart_service import cart_items, get_cart
from catalog.models import Course, Journey
from enrollments.services.access import owns_item
from payments.models import Payment, PaymentItem
from payments.services import mercadopago
from payments.services.reconciliation import ReconcileResult, apply_gateway_payment

logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")

PIX_METHOD = "pix"

TYPE_ALIASES = {
    "course": Payment.ITEM_COURSE,
    "curso": Payment.ITEM_COURSE,
    "journey": Payment.ITEM_JOURNEY,
    "jornada": Payment.ITEM_JOURNEY,
}


def _money(v) -> Decimal:
    if v is None or v == "":
        return Decimal("0.00")
    return Decimal(str(v)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def _as_uuid(value):
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


class CheckoutError(Exception):
    """Base checkout exception"""


class EmptyCheckoutError(CheckoutError):
    pass


class ItemUnavailableError(CheckoutError):
    pass


class AlreadyOwnedError(CheckoutError):
    pass


@dataclass
class CheckoutLine:
    item_type: str
    target: object
    quantity: int = 1

    @property
    def title(self) -> str:
        if self.item_type == Payment.ITEM_JOURNEY:
            return f"Jornada: {self.target.title}"
        return self.target.title

    @property
    def unit_price(self) -> Decimal:
        return _money(self.target.effective_price)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * Decimal(self.quantity)


@dataclass
class CheckoutResult:
    payment: Payment
    gateway_response: dict
    reconcile: ReconcileResult


# ============================================================
# ITEM RESOLUTION
# ============================================================


def _raw_items_from_cart(user) -> list[dict]:
    out = []
    for item in cart_items(get_cart(user)):
        out.append(
            {
                "type": item.item_type,
                "id": str(item.target_id),
                "quantity": item.quantity,
            }
        )
    return out


def resolve_lines(*, user, items=None) -> list[CheckoutLine]:
    """
    Items: [{"type": "course"|"journey", "id": <uuid>, "quantity"?}]
    Falls back to the user's cart when no items are given.
    """
    raw_items = list(items or []) or _raw_items_from_cart(user)

    lines: list[CheckoutLine] = []
    seen = set()

    for raw in raw_items:
        raw_type = str(raw.get("type") or raw.get("item_type") or "").strip()
        item_type = TYPE_ALIASES.get(raw_type.lower(), raw_type.upper())
        item_id = _as_uuid(raw.get("id"))

        if item_type == Payment.ITEM_COURSE and item_id:
            target = Course.objects.filter(id=item_id).first()
        elif item_type == Payment.ITEM_JOURNEY and item_id:
            target = Journey.objects.filter(id=item_id).first()
        else:
            target = None

        if target is None:
            raise ItemUnavailableError(f"Item not found: {raw.get('id')}")

        key = (item_type, target.pk)
        if key in seen:
            continue
        seen.add(key)

        if item_type == Payment.ITEM_COURSE:
            owned = owns_item(user, course_id=target.pk)
        else:
            owned = owns_item(user, journey_id=target.pk)
        if owned:
            raise AlreadyOwnedError(f"You already have access to '{target.title}'")

        lines.append(CheckoutLine(item_type=item_type, target=target, quantity=1))

    return lines


# ============================================================
# GATEWAY REQUEST
# ============================================================


def _split_name(name: str) -> tuple[str, str]:
    parts = (name or "").split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


def _build_payer(*, user, payer: dict | None) -> dict:
    payer = payer or {}
    first, last = _split_name(payer.get("name") or getattr(user, "name", ""))

    out = {
        "email": (payer.get("email") or user.email).strip(),
        "first_name": payer.get("first_name") or first,
        "last_name": payer.get("last_name") or last,
    }

    cpf = re.sub(r"\D", "", str(payer.get("cpf") or ""))
    if cpf:
        out["identification"] = {"type": "CPF", "number": cpf}

    if payer.get("zip_code"):
        out["address"] = {
            "zip_code": payer.get("zip_code"),
            "street_name": payer.get("street_name") or "",
            "street_number": payer.get("street_number") or "",
            "neighborhood": payer.get("neighborhood") or "",
            "city": payer.get("city") or "",
            "federal_unit": payer.get("state") or "",
        }

    return out


def _notification_url() -> str:
    cfg = (getattr(settings, "PAYMENTS", {}) or {}).get("MERCADOPAGO") or {}
    url = (cfg.get("NOTIFICATION_URL") or "").strip()
    if url:
        return url
    base = (getattr(settings, "PUBLIC_BASE_URL", "") or "").rstrip("/")
    return f"{base}/api/mercado-pago/webhook/" if base else ""


def build_gateway_request(
    *,
    payment: Payment,
    lines: list[CheckoutLine],
    user,
    method: str,
    installments: int,
    token: str | None,
    issuer_id,
    payer: dict | None,
) -> dict:
    cfg = (getattr(settings, "PAYMENTS", {}) or {}).get("MERCADOPAGO") or {}

    description = lines[0].title if len(lines) == 1 else f"{len(lines)} itens no carrinho"

    body = {
        "transaction_amount": float(payment.amount),
        "payment_method_id": method,
        "installments": 1 if method == PIX_METHOD else max(int(installments or 1), 1),
        "payer": _build_payer(user=user, payer=payer),
        "description": description,
        "external_reference": payment.external_reference,
        "metadata": {
            "user_id": str(user.pk),
            "payment_id": str(payment.id),
            "items": [
                {
                    "id": str(line.target.pk),
                    "type": line.item_type.lower(),
                    "title": line.title,
                    "price": str(line.unit_price),
                    "quantity": line.quantity,
                }
                for line in lines
            ],
        },
        "additional_info": {
            "items": [
                {
                    "id": str(line.target.pk),
                    "title": line.title,
                    "description": "Curso" if line.item_type == Payment.ITEM_COURSE else "Jornada",
                    "category_id": line.item_type,
                    "quantity": line.quantity,
                    "unit_price": float(line.unit_price),
                    **({"picture_url": line.target.image_url} if line.target.image_url else {}),
                }
                for line in lines
            ]
        },
        "statement_descriptor": cfg.get("STATEMENT_DESCRIPTOR") or "PROGRAMACAO.DEV",
        "binary_mode": method != PIX_METHOD,
    }

    notification_url = _notification_url()
    if notification_url:
        body["notification_url"] = notification_url
    if token:
        body["token"] = token
    if issuer_id:
        body["issuer_id"] = issuer_id

    return body


def _pix_data(response: dict) -> dict:
    tx = ((response.get("point_of_interaction") or {}).get("transaction_data")) or {}
    out = {}
    for key in ("qr_code", "qr_code_base64", "ticket_url"):
        if tx.get(key):
            out[key] = tx[key]
    return out


# ============================================================
# CHECKOUT
# ============================================================


def start_checkout(
    *,
    user,
    items=None,
    method: str,
    installments: int = 1,
    token: str | None = None,
    issuer_id=None,
    payer: dict | None = None,
) -> CheckoutResult:
    lines = resolve_lines(user=user, items=items)
    if not lines:
        raise EmptyCheckoutError("No items to check out")

    total = sum((line.line_total for line in lines), Decimal("0.00"))
    single = lines[0] if len(lines) == 1 else None
    method = str(method or "").strip().lower()

    cfg = (getattr(settings, "PAYMENTS", {}) or {}).get("MERCADOPAGO") or {}

    with transaction.atomic():
        payment = Payment.objects.create(
            user=user,
            status=Payment.STATUS_PENDING,
            method=method[:32],
            installments=1 if method == PIX_METHOD else max(int(installments or 1), 1),
            amount=_money(total),
            currency=cfg.get("CURRENCY") or "BRL",
            item_type=single.item_type if single else Payment.ITEM_MULTIPLE,
            course=single.target if single and single.item_type == Payment.ITEM_COURSE else None,
            journey=single.target if single and single.item_type == Payment.ITEM_JOURNEY else None,
            metadata={
                "method": method,
                "installments": installments,
                "items": [
                    {"id": str(line.target.pk), "type": line.item_type.lower(), "title": line.title}
                    for line in lines
                ],
            },
        )
        for line in lines:
            PaymentItem.objects.create(
                payment=payment,
                item_type=line.item_type,
                course=line.target if line.item_type == Payment.ITEM_COURSE else None,
                journey=line.target if line.item_type == Payment.ITEM_JOURNEY else None,
                title=line.title[:255],
                unit_price=line.unit_price,
                quantity=line.quantity,
            )

    body = build_gateway_request(
        payment=payment,
        lines=lines,
        user=user,
        method=method,
        installments=installments,
        token=token,
        issuer_id=issuer_id,
        payer=payer,
    )

    logger.info(
        "Creating gateway payment",
        extra={"payment_id": str(payment.id), "reference": payment.external_reference, "amount": str(payment.amount)},
    )

    try:
        response = mercadopago.create_payment(body, idempotency_key=payment.external_reference)
    except mercadopago.GatewayError as exc:
        logger.error(
            "Gateway rejected payment creation",
            extra={"payment_id": str(payment.id), "status_code": exc.status_code},
        )
        Payment.objects.filter(id=payment.id, status=Payment.STATUS_PENDING).update(
            status=Payment.STATUS_FAILED,
            failure_reason=str(exc)[:255],
            gateway_payload=exc.payload or {},
        )
        raise

    with transaction.atomic():
        locked = Payment.objects.select_for_update().get(id=payment.id)
        gateway_id = str(response.get("id") or "").strip()
        if gateway_id and not locked.gateway_payment_id:
            locked.gateway_payment_id = gateway_id
        locked.metadata = {**(locked.metadata or {}), **_pix_data(response)}
        locked.save(update_fields=["gateway_payment_id", "metadata", "updated_at"])

    reconcile = apply_gateway_payment({**response, "external_reference": payment.external_reference})

    payment.refresh_from_db()
    return CheckoutResult(payment=payment, gateway_response=response, reconcile=reconcile)
