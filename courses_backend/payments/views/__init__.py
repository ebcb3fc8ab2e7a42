from .checkout import CheckoutView
from .history import PaymentDetailView, PaymentListView
from .refunds import LegacyRefundRequestView, RefundRequestView
from .webhook import MercadoPagoWebhookView

__all__ = [
    "CheckoutView",
    "PaymentListView",
    "PaymentDetailView",
    "RefundRequestView",
    "LegacyRefundRequestView",
    "MercadoPagoWebhookView",
]
