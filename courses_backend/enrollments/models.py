# enrollments/models.py

import uuid

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone


class EnrollmentQuerySet(models.QuerySet):
    def active(self, at=None):
        at = at or timezone.now()
        return self.filter(Q(end_date__isnull=True) | Q(end_date__gte=at))

    def expired(self, at=None):
        at = at or timezone.now()
        return self.filter(end_date__lt=at)


class Enrollment(models.Model):
    """
    Access grant for one user to one course OR one journey.

    RULES:
    - Exactly one of course / journey is set.
    - end_date NULL means lifetime access (course purchases).
    - Journey access is time-bounded by the journey's access duration.
    - source_payment points at the payment that provisioned the grant, so a
      refund revokes exactly what that payment granted.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="enrollments",
    )

    course = models.ForeignKey(
        "catalog.Course",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="enrollments",
    )
    journey = models.ForeignKey(
        "catalog.Journey",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="enrollments",
    )

    start_date = models.DateTimeField(default=timezone.now)
    end_date = models.DateTimeField(null=True, blank=True)

    source_payment = models.ForeignKey(
        "payments.Payment",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="enrollments",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    objects = EnrollmentQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(course__isnull=False, journey__isnull=True)
                    | Q(course__isnull=True, journey__isnull=False)
                ),
                name="enrollment_course_xor_journey",
            ),
            models.UniqueConstraint(
                fields=["user", "course"],
                condition=Q(course__isnull=False),
                name="unique_course_enrollment_per_user",
            ),
            models.UniqueConstraint(
                fields=["user", "journey"],
                condition=Q(journey__isnull=False),
                name="unique_journey_enrollment_per_user",
            ),
        ]
        indexes = [
            models.Index(fields=["user", "end_date"], name="enroll_user_end_idx"),
        ]

    @property
    def is_active(self) -> bool:
        return self.end_date is None or self.end_date >= timezone.now()

    def __str__(self):
        target = self.course or self.journey
        return f"{self.user} -> {target}"
