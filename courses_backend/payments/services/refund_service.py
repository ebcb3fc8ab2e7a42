# payments/services/refund_service.py

"""
REFUND SERVICE

Customer-initiated full refunds of approved payments.

RULES:
- Only the buyer may request a refund of their payment.
- The payment must be APPROVED and have a gateway payment id.
- At most one APPROVED/COMPLETED refund per payment.
- Requests are accepted up to REFUND_WINDOW_DAYS after the payment was created.
- The gateway refund is created first; the local Refund row, the
  REFUNDED transition and enrollment revocation then commit together.
"""

import logging
import uuid
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from payments.models import Payment, Refund
from payments.services import mercadopago
from payments.services.payment_lifecycle import (
    InvalidPaymentTransitionError,
    validate_transition,
)
from payments.services.provisioning import revoke_payment

logger = logging.getLogger(__name__)


class RefundError(Exception):
    pass


class PaymentNotFoundError(RefundError):
    pass


class RefundNotAllowedError(RefundError):
    pass


class PaymentNotRefundableError(RefundError):
    pass


class DuplicateRefundError(RefundError):
    pass


class RefundWindowExpiredError(RefundError):
    pass


class RefundRejectedError(RefundError):
    pass


GATEWAY_REFUND_STATUS_MAP = {
    "approved": Refund.STATUS_APPROVED,
    "pending": Refund.STATUS_PENDING,
    "in_process": Refund.STATUS_PENDING,
    "rejected": Refund.STATUS_REJECTED,
    "cancelled": Refund.STATUS_CANCELLED,
    "authorized": Refund.STATUS_PENDING,
}


def refund_window_days() -> int:
    return int(getattr(settings, "REFUND_WINDOW_DAYS", 30))


def _get_payment(payment_id) -> Payment:
    try:
        pid = uuid.UUID(str(payment_id))
    except (TypeError, ValueError):
        raise PaymentNotFoundError("Payment not found")

    payment = Payment.objects.filter(id=pid).first()
    if payment is None:
        raise PaymentNotFoundError("Payment not found")
    return payment


def validate_refund_request(*, payment: Payment, user):
    if payment.user_id != getattr(user, "pk", None):
        raise RefundNotAllowedError("Not allowed to refund this payment")

    if payment.status != Payment.STATUS_APPROVED or not payment.gateway_payment_id:
        raise PaymentNotRefundableError("Only approved payments can be refunded")

    if payment.refunds.filter(status__in=Refund.BLOCKING_STATUSES).exists():
        raise DuplicateRefundError("This payment has already been refunded")

    deadline = payment.created_at + timedelta(days=refund_window_days())
    if timezone.now() > deadline:
        raise RefundWindowExpiredError(
            f"Refunds are allowed only within {refund_window_days()} days of purchase"
        )


def request_refund(*, payment_id, user, reason: str = "") -> Refund:
    """
    Raises RefundError subclasses for business rejections and
    mercadopago.GatewayError when the gateway call fails.
    """
    payment = _get_payment(payment_id)
    validate_refund_request(payment=payment, user=user)

    logger.info(
        "Requesting gateway refund",
        extra={"payment_id": str(payment.id), "gateway_payment_id": payment.gateway_payment_id},
    )

    response = mercadopago.create_refund(
        payment.gateway_payment_id,
        idempotency_key=f"refund-{payment.id}",
    )

    refund_status = GATEWAY_REFUND_STATUS_MAP.get(
        str(response.get("status") or "").strip().lower(),
        Refund.STATUS_PENDING,
    )

    if refund_status in (Refund.STATUS_REJECTED, Refund.STATUS_CANCELLED):
        Refund.objects.create(
            payment=payment,
            gateway_refund_id=str(response.get("id")) if response.get("id") else None,
            status=refund_status,
            amount=payment.amount,
            reason=(reason or "")[:255],
            requested_by=user,
        )
        logger.warning("Gateway rejected refund", extra={"payment_id": str(payment.id)})
        raise RefundRejectedError("The payment gateway rejected the refund")

    with transaction.atomic():
        locked = Payment.objects.select_for_update().get(id=payment.id)

        refund = Refund.objects.create(
            payment=locked,
            gateway_refund_id=str(response.get("id")) if response.get("id") else None,
            status=refund_status,
            amount=locked.amount,
            reason=(reason or "")[:255],
            requested_by=user,
        )

        try:
            validate_transition(payment=locked, target_status=Payment.STATUS_REFUNDED)
        except InvalidPaymentTransitionError:
            # A webhook refunded the payment while the gateway call was in flight.
            refund.status = Refund.STATUS_COMPLETED
            refund.save(update_fields=["status", "updated_at"])
        else:
            locked.status = Payment.STATUS_REFUNDED
            locked.refunded_at = timezone.now()
            locked.save(update_fields=["status", "refunded_at", "updated_at"])
            revoke_payment(locked)

    refund.refresh_from_db()
    logger.info(
        "Refund recorded",
        extra={"payment_id": str(payment.id), "refund_id": str(refund.id), "status": refund.status},
    )
    return refund
