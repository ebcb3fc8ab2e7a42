# payments/gateway_urls.py

"""
Gateway-facing routes, kept at the paths the storefront and the
Mercado Pago dashboard are configured with.
"""

from django.urls import path

from payments.views import CheckoutView, LegacyRefundRequestView, MercadoPagoWebhookView

app_name = "mercado_pago"

urlpatterns = [
    path("pay/", CheckoutView.as_view(), name="pay"),
    path("webhook/", MercadoPagoWebhookView.as_view(), name="webhook"),
    path("refund/request/", LegacyRefundRequestView.as_view(), name="refund-request"),
]
