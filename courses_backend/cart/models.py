"""
PATH: cart/models.py

PERSISTENT STOREFRONT CART

Rules:
- One cart per user, kept across sessions and devices.
- A line references exactly one course OR one journey, matching item_type.
- The same course/journey appears at most once per cart.
- Prices are NOT stored: they are read from the catalog on every read,
  so a cart never goes stale after a price change.
"""

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q


class Cart(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="cart",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-updated_at"]

    @property
    def total_amount(self) -> Decimal:
        return sum((item.line_total for item in self.items.all()), Decimal("0.00"))

    @property
    def is_empty(self) -> bool:
        return not self.items.exists()

    def __str__(self):
        return f"Cart {self.id} | {self.user}"


class CartItem(models.Model):
    class ItemType(models.TextChoices):
        COURSE = "COURSE", "Course"
        JOURNEY = "JOURNEY", "Journey"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    cart = models.ForeignKey(Cart, on_delete=models.CASCADE, related_name="items")

    item_type = models.CharField(max_length=16, choices=ItemType.choices)
    course = models.ForeignKey(
        "catalog.Course",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="cart_items",
    )
    journey = models.ForeignKey(
        "catalog.Journey",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="cart_items",
    )

    quantity = models.PositiveIntegerField(default=1)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["cart", "course"],
                condition=Q(course__isnull=False),
                name="unique_course_per_cart",
            ),
            models.UniqueConstraint(
                fields=["cart", "journey"],
                condition=Q(journey__isnull=False),
                name="unique_journey_per_cart",
            ),
            models.CheckConstraint(
                condition=(
                    Q(item_type="COURSE", course__isnull=False, journey__isnull=True)
                    | Q(item_type="JOURNEY", course__isnull=True, journey__isnull=False)
                ),
                name="cart_item_target_matches_type",
            ),
            models.CheckConstraint(
                condition=Q(quantity__gte=1),
                name="cart_item_quantity_positive",
            ),
        ]

    def clean(self):
        if self.quantity is None or int(self.quantity) <= 0:
            raise ValidationError({"quantity": "Quantity must be greater than zero"})

    @property
    def target(self):
        return self.course if self.item_type == self.ItemType.COURSE else self.journey

    @property
    def target_id(self):
        return self.course_id if self.item_type == self.ItemType.COURSE else self.journey_id

    @property
    def unit_price(self) -> Decimal:
        target = self.target
        return target.effective_price if target is not None else Decimal("0.00")

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * Decimal(int(self.quantity or 0))

    def __str__(self):
        return f"{self.item_type} {self.target} x {self.quantity}"
