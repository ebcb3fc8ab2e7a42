# payments/models/payment.py

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models


def new_external_reference() -> str:
    return f"order-{uuid.uuid4().hex}"


class Payment(models.Model):
    """
    One checkout attempt against the payment gateway.

    Idempotency rules:
    - gateway_payment_id is unique (Mercado Pago payment id).
    - external_reference is unique and is what we send to the gateway, so a
      notification can be matched even before the gateway id is stored.
    - status only moves along payments.services.payment_lifecycle.
    """

    STATUS_PENDING = "PENDING"
    STATUS_APPROVED = "APPROVED"
    STATUS_REFUNDED = "REFUNDED"
    STATUS_CANCELLED = "CANCELLED"
    STATUS_FAILED = "FAILED"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_APPROVED, "Approved"),
        (STATUS_REFUNDED, "Refunded"),
        (STATUS_CANCELLED, "Cancelled"),
        (STATUS_FAILED, "Failed"),
    ]

    ITEM_COURSE = "COURSE"
    ITEM_JOURNEY = "JOURNEY"
    ITEM_MULTIPLE = "MULTIPLE"

    ITEM_TYPE_CHOICES = [
        (ITEM_COURSE, "Course"),
        (ITEM_JOURNEY, "Journey"),
        (ITEM_MULTIPLE, "Multiple"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payments",
    )

    gateway_payment_id = models.CharField(max_length=64, unique=True, null=True, blank=True)
    external_reference = models.CharField(
        max_length=64,
        unique=True,
        default=new_external_reference,
    )

    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING)
    status_detail = models.CharField(max_length=128, blank=True, default="")
    last_gateway_status = models.CharField(max_length=32, blank=True, default="")
    failure_reason = models.CharField(max_length=255, blank=True, default="")

    method = models.CharField(max_length=32, blank=True, default="")
    installments = models.PositiveIntegerField(default=1)

    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=8, default="BRL")

    item_type = models.CharField(max_length=16, choices=ITEM_TYPE_CHOICES)
    course = models.ForeignKey(
        "catalog.Course",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments",
    )
    journey = models.ForeignKey(
        "catalog.Journey",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments",
    )

    metadata = models.JSONField(default=dict, blank=True)
    gateway_payload = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "created_at"], name="payment_user_created_idx"),
            models.Index(fields=["status", "created_at"], name="payment_status_created_idx"),
        ]

    def clean(self):
        if self.amount is None or Decimal(self.amount) < 0:
            raise ValidationError({"amount": "Amount cannot be negative"})

    def purchased_items(self):
        """
        What this payment bought. Single-item payments created before
        item rows existed fall back to the payment's own course/journey.
        """
        items = list(self.items.all())
        if items:
            return items
        if self.course_id or self.journey_id:
            return [self]
        return []

    def __str__(self):
        return f"{self.external_reference} | {self.status} | {self.amount}"


class PaymentItem(models.Model):
    """
    Snapshot of one purchased line. Title and price are frozen at checkout.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    payment = models.ForeignKey(Payment, on_delete=models.CASCADE, related_name="items")

    item_type = models.CharField(
        max_length=16,
        choices=[
            (Payment.ITEM_COURSE, "Course"),
            (Payment.ITEM_JOURNEY, "Journey"),
        ],
    )
    course = models.ForeignKey(
        "catalog.Course",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payment_items",
    )
    journey = models.ForeignKey(
        "catalog.Journey",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payment_items",
    )

    title = models.CharField(max_length=255)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    quantity = models.PositiveIntegerField(default=1)

    class Meta:
        ordering = ["id"]

    @property
    def line_total(self) -> Decimal:
        return (self.unit_price or Decimal("0.00")) * Decimal(int(self.quantity or 0))

    def __str__(self):
        return f"{self.item_type} {self.title} x {self.quantity}"
