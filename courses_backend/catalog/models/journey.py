# catalog/models/journey.py

import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models

from .course import Course


def _default_access_months():
    return int(getattr(settings, "JOURNEY_DEFAULT_DURATION_MONTHS", 12))


class Journey(models.Model):
    """
    A bundle of courses sold together.

    ACCESS RULE:
    - Buying a journey grants time-bounded access for `access_duration_months`.
    - Courses inside the journey are accessible while that access is active.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    title = models.CharField(max_length=255, db_index=True)
    description = models.TextField(blank=True, default="")
    image_url = models.URLField(blank=True, default="")

    price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    access_duration_months = models.PositiveIntegerField(
        default=_default_access_months,
        validators=[MinValueValidator(1)],
    )
    public = models.BooleanField(default=False)

    courses = models.ManyToManyField(
        Course,
        through="JourneyCourse",
        related_name="journeys",
        blank=True,
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def clean(self):
        if self.price is None or Decimal(self.price) < 0:
            raise ValidationError({"price": "Price cannot be negative"})

    @property
    def effective_price(self) -> Decimal:
        return Decimal(self.price or 0)

    def next_course_order(self) -> int:
        last = self.journey_courses.order_by("-order").values_list("order", flat=True).first()
        return 0 if last is None else int(last) + 1

    def __str__(self):
        return self.title


class JourneyCourse(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    journey = models.ForeignKey(Journey, on_delete=models.CASCADE, related_name="journey_courses")
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="journey_links")
    order = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["order", "created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["journey", "course"],
                name="unique_course_per_journey",
            )
        ]

    def __str__(self):
        return f"{self.journey} #{self.order}: {self.course}"
