# catalog/models/course.py

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models


class Course(models.Model):
    """
    A purchasable unit of learning content.

    PRICING:
    - `price` is the list price.
    - `discount_price` applies only when `discount_enabled` is set and the
      discount is a positive amount. See `effective_price`.
    """

    class Level(models.TextChoices):
        BEGINNER = "beginner", "Beginner"
        INTERMEDIATE = "intermediate", "Intermediate"
        ADVANCED = "advanced", "Advanced"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    title = models.CharField(max_length=255, db_index=True)
    description = models.TextField()
    image_url = models.URLField(blank=True, default="")

    price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    discount_price = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0.00")
    )
    discount_enabled = models.BooleanField(default=False)

    level = models.CharField(max_length=16, choices=Level.choices, default=Level.BEGINNER)
    public = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["public", "created_at"], name="catalog_course_public_idx"),
        ]

    def clean(self):
        if self.price is None or Decimal(self.price) < 0:
            raise ValidationError({"price": "Price cannot be negative"})

        if self.discount_price is not None and Decimal(self.discount_price) < 0:
            raise ValidationError({"discount_price": "Discount price cannot be negative"})

    @property
    def effective_price(self) -> Decimal:
        discount = Decimal(self.discount_price or 0)
        if self.discount_enabled and discount > 0:
            return discount
        return Decimal(self.price or 0)

    def __str__(self):
        return self.title


class CourseModule(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="modules")
    title = models.CharField(max_length=255)
    order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["order"]

    def __str__(self):
        return f"{self.course} / {self.title}"


class Lesson(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    module = models.ForeignKey(CourseModule, on_delete=models.CASCADE, related_name="lessons")
    title = models.CharField(max_length=255)
    order = models.PositiveIntegerField(default=0)
    duration_minutes = models.PositiveIntegerField(default=0)
    content_url = models.URLField(blank=True, default="")

    class Meta:
        ordering = ["order"]

    def __str__(self):
        return self.title
