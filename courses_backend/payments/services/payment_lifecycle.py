"""
PAYMENT LIFECYCLE DOMAIN RULES

This module defines the ONLY allowed lifecycle transitions
for Payment entities, and how gateway statuses map onto them.

DESIGN PRINCIPLES:
- No database writes
- No enrollment mutation
- No side effects
- Single source of truth
"""

from payments.models import Payment

# ============================================================
# DOMAIN ERRORS
# ============================================================


class PaymentLifecycleError(Exception):
    pass


class InvalidPaymentTransitionError(PaymentLifecycleError):
    pass


# ============================================================
# GATEWAY STATUS MAP
# ============================================================

GATEWAY_STATUS_MAP = {
    "approved": Payment.STATUS_APPROVED,
    "pending": Payment.STATUS_PENDING,
    "in_process": Payment.STATUS_PENDING,
    "authorized": Payment.STATUS_PENDING,
    "in_mediation": Payment.STATUS_PENDING,
    "rejected": Payment.STATUS_FAILED,
    "cancelled": Payment.STATUS_CANCELLED,
    "refunded": Payment.STATUS_REFUNDED,
    "charged_back": Payment.STATUS_REFUNDED,
}


def map_gateway_status(gateway_status):
    """
    Returns the internal status, or None for statuses we do not know.
    """
    return GATEWAY_STATUS_MAP.get(str(gateway_status or "").strip().lower())


# ============================================================
# STATE DEFINITIONS
# ============================================================

TERMINAL_STATES = {
    Payment.STATUS_REFUNDED,
    Payment.STATUS_CANCELLED,
}

ALLOWED_TRANSITIONS = {
    Payment.STATUS_PENDING: {
        Payment.STATUS_APPROVED,
        Payment.STATUS_FAILED,
        Payment.STATUS_CANCELLED,
        Payment.STATUS_REFUNDED,
    },
    Payment.STATUS_APPROVED: {
        Payment.STATUS_REFUNDED,
        Payment.STATUS_CANCELLED,
    },
    # A rejected card can be retried on the same gateway payment.
    Payment.STATUS_FAILED: {
        Payment.STATUS_APPROVED,
    },
}

REVOKING_STATES = {
    Payment.STATUS_REFUNDED,
    Payment.STATUS_CANCELLED,
}

TRANSITION_DUPLICATE = "duplicate"
TRANSITION_ALLOWED = "allowed"
TRANSITION_STALE = "stale"


# ============================================================
# DOMAIN RULES
# ============================================================


def can_transition(*, from_status: str, to_status: str) -> bool:
    if from_status in TERMINAL_STATES:
        return False

    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def classify_transition(*, from_status: str, to_status: str) -> str:
    if from_status == to_status:
        return TRANSITION_DUPLICATE
    if can_transition(from_status=from_status, to_status=to_status):
        return TRANSITION_ALLOWED
    return TRANSITION_STALE


def validate_transition(*, payment: Payment, target_status: str):
    if not can_transition(
        from_status=payment.status,
        to_status=target_status,
    ):
        raise InvalidPaymentTransitionError(
            f"Payment {payment.id} cannot transition from "
            f"'{payment.status}' to '{target_status}'"
        )


def revokes_access(*, from_status: str, to_status: str) -> bool:
    return from_status == Payment.STATUS_APPROVED and to_status in REVOKING_STATES
