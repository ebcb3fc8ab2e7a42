"""
ACCESS GRANTS

Single place that creates, revokes and answers questions about
enrollments.

RULES:
- Course purchases grant lifetime access.
- Journey purchases grant access for N calendar months; the end date is
  clamped to the last day of the target month (Jan 31 + 1 month = Feb 28/29).
- An active journey enrollment grants access to every course in the journey.
- Revocation only removes what a given payment provisioned and no other
  approved payment still covers.
"""

import calendar
import logging
import uuid
from datetime import datetime

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from catalog.models import Course, Journey, Lesson
from enrollments.models import Enrollment
from payments.models import Payment

logger = logging.getLogger(__name__)


# ============================================================
# DATE HELPERS
# ============================================================


def add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + int(months)
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def _as_uuid(value):
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


# ============================================================
# GRANTS
# ============================================================


@transaction.atomic
def grant_course_access(*, user, course: Course, payment=None) -> Enrollment:
    """
    Lifetime access to a single course.

    An active enrollment keeps its dates but follows the newest payment;
    an expired one is renewed.
    """
    enrollment = (
        Enrollment.objects.select_for_update()
        .filter(user=user, course=course)
        .first()
    )

    if enrollment is None:
        enrollment = Enrollment.objects.create(
            user=user,
            course=course,
            end_date=None,
            source_payment=payment,
        )
        logger.info(
            "Course access granted",
            extra={"user_id": str(user.pk), "course_id": str(course.pk)},
        )
        return enrollment

    if enrollment.is_active:
        if payment is not None and enrollment.source_payment_id != payment.pk:
            enrollment.source_payment = payment
            enrollment.save(update_fields=["source_payment"])
        return enrollment

    enrollment.start_date = timezone.now()
    enrollment.end_date = None
    enrollment.source_payment = payment
    enrollment.save(update_fields=["start_date", "end_date", "source_payment"])

    logger.info(
        "Course access renewed",
        extra={"user_id": str(user.pk), "course_id": str(course.pk)},
    )
    return enrollment


@transaction.atomic
def grant_journey_access(*, user, journey: Journey, months=None, payment=None) -> Enrollment:
    """
    Time-bounded access to a journey (and through it, its courses).

    Re-purchasing never shortens an access window that already runs longer.
    """
    months = int(months or journey.access_duration_months)
    now = timezone.now()
    end_date = add_months(now, months)

    enrollment = (
        Enrollment.objects.select_for_update()
        .filter(user=user, journey=journey)
        .first()
    )

    if enrollment is None:
        enrollment = Enrollment.objects.create(
            user=user,
            journey=journey,
            start_date=now,
            end_date=end_date,
            source_payment=payment,
        )
    else:
        if not enrollment.is_active:
            enrollment.start_date = now
        if enrollment.end_date is not None and enrollment.end_date < end_date:
            enrollment.end_date = end_date
        enrollment.source_payment = payment
        enrollment.save(update_fields=["start_date", "end_date", "source_payment"])

    logger.info(
        "Journey access granted",
        extra={
            "user_id": str(user.pk),
            "journey_id": str(journey.pk),
            "end_date": enrollment.end_date.isoformat() if enrollment.end_date else None,
        },
    )
    return enrollment


def _covering_payment(enrollment: Enrollment, *, exclude):
    """
    Another approved payment of the same user that also bought the
    enrollment's course or journey.
    """
    qs = Payment.objects.filter(
        user_id=enrollment.user_id,
        status=Payment.STATUS_APPROVED,
    ).exclude(pk=exclude.pk)

    if enrollment.course_id:
        qs = qs.filter(Q(course_id=enrollment.course_id) | Q(items__course_id=enrollment.course_id))
    else:
        qs = qs.filter(Q(journey_id=enrollment.journey_id) | Q(items__journey_id=enrollment.journey_id))

    return qs.distinct().order_by("-created_at").first()


@transaction.atomic
def revoke_access_for_payment(payment) -> int:
    """
    Deletes the enrollments a payment provisioned.

    Enrollments linked through source_payment are removed. Unlinked
    enrollments for the payment's items are removed too, so grants made
    before source tracking existed do not survive a refund. An enrollment
    that another approved payment also paid for is moved to that payment
    instead.
    """
    course_ids = []
    journey_ids = []
    for item in payment.purchased_items():
        if item.course_id:
            course_ids.append(item.course_id)
        if item.journey_id:
            journey_ids.append(item.journey_id)

    scope = Q(source_payment=payment)
    if course_ids or journey_ids:
        scope |= Q(user_id=payment.user_id, source_payment__isnull=True) & (
            Q(course_id__in=course_ids) | Q(journey_id__in=journey_ids)
        )

    deleted = 0
    kept = 0
    for enrollment in Enrollment.objects.select_for_update().filter(scope):
        other = _covering_payment(enrollment, exclude=payment)
        if other is not None:
            enrollment.source_payment = other
            enrollment.save(update_fields=["source_payment"])
            kept += 1
            continue
        enrollment.delete()
        deleted += 1

    logger.info(
        "Access revoked for payment",
        extra={"payment_id": str(payment.pk), "deleted": deleted, "kept": kept},
    )
    return deleted


# ============================================================
# QUERIES
# ============================================================


def has_course_access(user, course_id) -> bool:
    if not user or not getattr(user, "is_authenticated", False):
        return False

    course_id = _as_uuid(course_id)
    if course_id is None:
        return False

    return (
        Enrollment.objects.active()
        .filter(user=user)
        .filter(Q(course_id=course_id) | Q(journey__journey_courses__course_id=course_id))
        .exists()
    )


def has_journey_access(user, journey_id) -> bool:
    if not user or not getattr(user, "is_authenticated", False):
        return False

    journey_id = _as_uuid(journey_id)
    if journey_id is None:
        return False

    return Enrollment.objects.active().filter(user=user, journey_id=journey_id).exists()


def has_lesson_access(user, lesson_id) -> bool:
    lesson_id = _as_uuid(lesson_id)
    if lesson_id is None:
        return False

    course_id = (
        Lesson.objects.filter(id=lesson_id).values_list("module__course_id", flat=True).first()
    )
    if course_id is None:
        return False

    return has_course_access(user, course_id)


def owns_item(user, *, course_id=None, journey_id=None) -> bool:
    if course_id:
        return has_course_access(user, course_id)
    if journey_id:
        return has_journey_access(user, journey_id)
    return False


def active_enrollments_for(user):
    return (
        Enrollment.objects.active()
        .filter(user=user)
        .select_related("course", "journey")
        .order_by("-created_at")
    )
