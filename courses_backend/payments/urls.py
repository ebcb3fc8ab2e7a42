# payments/urls.py

from django.urls import path

from payments.views import (
    CheckoutView,
    PaymentDetailView,
    PaymentListView,
    RefundRequestView,
)

app_name = "payments"

urlpatterns = [
    path("", PaymentListView.as_view(), name="payment-list"),
    path("checkout/", CheckoutView.as_view(), name="checkout"),
    path("<uuid:pk>/", PaymentDetailView.as_view(), name="payment-detail"),
    path("<uuid:pk>/refund/", RefundRequestView.as_view(), name="payment-refund"),
]
