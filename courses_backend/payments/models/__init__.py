from .payment import Payment, PaymentItem
from .refund import Refund
from .webhook_event import WebhookEvent

__all__ = [
    "Payment",
    "PaymentItem",
    "Refund",
    "WebhookEvent",
]
