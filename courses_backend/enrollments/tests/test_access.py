# enrollments/tests/test_access.py

from datetime import datetime, timedelta
from datetime import timezone as dt_timezone
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.test import SimpleTestCase, TestCase
from django.utils import timezone

from catalog.models import Course, CourseModule, Journey, JourneyCourse, Lesson
from enrollments.models import Enrollment
from enrollments.services.access import (
    add_months,
    grant_course_access,
    grant_journey_access,
    has_course_access,
    has_journey_access,
    has_lesson_access,
    revoke_access_for_payment,
)
from payments.models import Payment, PaymentItem

User = get_user_model()


class AddMonthsTests(SimpleTestCase):
    def test_clamps_to_end_of_month(self):
        start = datetime(2024, 1, 31, 10, 0, tzinfo=dt_timezone.utc)
        self.assertEqual(add_months(start, 1), datetime(2024, 2, 29, 10, 0, tzinfo=dt_timezone.utc))

    def test_non_leap_year(self):
        start = datetime(2023, 1, 31, tzinfo=dt_timezone.utc)
        self.assertEqual(add_months(start, 1).date().isoformat(), "2023-02-28")

    def test_rolls_over_year(self):
        start = datetime(2024, 11, 15, tzinfo=dt_timezone.utc)
        self.assertEqual(add_months(start, 12).date().isoformat(), "2025-11-15")
        self.assertEqual(add_months(start, 3).date().isoformat(), "2025-02-15")


class GrantTests(TestCase):
    """
    GUARANTEES:
    - Course access is lifetime and granting twice keeps one row
    - Journey re-purchase never shortens the access window
    - Expired access is renewed
    """

    def setUp(self):
        self.user = User.objects.create_user(email="student@example.com", password="pass12345!")
        self.course = Course.objects.create(title="Django", description="Web", public=True)
        self.journey = Journey.objects.create(
            title="Backend", price=Decimal("300.00"), access_duration_months=6, public=True
        )

    def test_course_grant_is_idempotent(self):
        first = grant_course_access(user=self.user, course=self.course)
        second = grant_course_access(user=self.user, course=self.course)

        self.assertEqual(first.pk, second.pk)
        self.assertIsNone(second.end_date)
        self.assertEqual(Enrollment.objects.filter(user=self.user).count(), 1)

    def test_active_course_grant_follows_newest_payment(self):
        first = Payment.objects.create(
            user=self.user, amount=Decimal("10.00"), item_type=Payment.ITEM_COURSE, course=self.course
        )
        second = Payment.objects.create(
            user=self.user, amount=Decimal("10.00"), item_type=Payment.ITEM_COURSE, course=self.course
        )

        grant_course_access(user=self.user, course=self.course, payment=first)
        enrollment = grant_course_access(user=self.user, course=self.course, payment=second)

        enrollment.refresh_from_db()
        self.assertEqual(enrollment.source_payment_id, second.id)
        self.assertEqual(Enrollment.objects.filter(user=self.user).count(), 1)

    def test_expired_course_grant_is_renewed(self):
        Enrollment.objects.create(
            user=self.user, course=self.course, end_date=timezone.now() - timedelta(days=1)
        )

        enrollment = grant_course_access(user=self.user, course=self.course)

        self.assertIsNone(enrollment.end_date)
        self.assertTrue(has_course_access(self.user, self.course.id))

    def test_journey_grant_uses_duration(self):
        enrollment = grant_journey_access(user=self.user, journey=self.journey)

        self.assertGreater(enrollment.end_date, timezone.now() + timedelta(days=175))
        self.assertLess(enrollment.end_date, timezone.now() + timedelta(days=186))

    def test_journey_regrant_never_shortens(self):
        far = timezone.now() + timedelta(days=1000)
        Enrollment.objects.create(user=self.user, journey=self.journey, end_date=far)

        enrollment = grant_journey_access(user=self.user, journey=self.journey, months=1)

        self.assertEqual(enrollment.end_date, far)

    def test_journey_regrant_extends_shorter_window(self):
        soon = timezone.now() + timedelta(days=3)
        Enrollment.objects.create(user=self.user, journey=self.journey, end_date=soon)

        enrollment = grant_journey_access(user=self.user, journey=self.journey, months=2)

        self.assertGreater(enrollment.end_date, soon + timedelta(days=50))


class AccessQueryTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(email="student@example.com", password="pass12345!")
        self.course = Course.objects.create(title="Django", description="Web", public=True)
        module = CourseModule.objects.create(course=self.course, title="Intro", order=1)
        self.lesson = Lesson.objects.create(module=module, title="Hello", order=1)

        self.journey = Journey.objects.create(title="Backend", public=True)
        JourneyCourse.objects.create(journey=self.journey, course=self.course, order=0)

    def test_no_enrollment_no_access(self):
        self.assertFalse(has_course_access(self.user, self.course.id))
        self.assertFalse(has_lesson_access(self.user, self.lesson.id))

    def test_direct_course_enrollment(self):
        Enrollment.objects.create(user=self.user, course=self.course)

        self.assertTrue(has_course_access(self.user, self.course.id))
        self.assertTrue(has_lesson_access(self.user, self.lesson.id))
        self.assertFalse(has_journey_access(self.user, self.journey.id))

    def test_active_journey_grants_its_courses(self):
        Enrollment.objects.create(
            user=self.user, journey=self.journey, end_date=timezone.now() + timedelta(days=30)
        )

        self.assertTrue(has_journey_access(self.user, self.journey.id))
        self.assertTrue(has_course_access(self.user, self.course.id))
        self.assertTrue(has_lesson_access(self.user, self.lesson.id))

    def test_expired_journey_grants_nothing(self):
        Enrollment.objects.create(
            user=self.user, journey=self.journey, end_date=timezone.now() - timedelta(seconds=1)
        )

        self.assertFalse(has_journey_access(self.user, self.journey.id))
        self.assertFalse(has_course_access(self.user, self.course.id))

    def test_invalid_ids_and_anonymous(self):
        Enrollment.objects.create(user=self.user, course=self.course)

        self.assertFalse(has_course_access(self.user, "not-a-uuid"))
        self.assertFalse(has_lesson_access(self.user, "not-a-uuid"))
        self.assertFalse(has_course_access(AnonymousUser(), self.course.id))


class RevokeTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(email="student@example.com", password="pass12345!")
        self.course = Course.objects.create(title="Django", description="Web", public=True)
        self.other_course = Course.objects.create(title="Flask", description="Web", public=True)
        self.payment = Payment.objects.create(
            user=self.user,
            amount=Decimal("100.00"),
            item_type=Payment.ITEM_COURSE,
            course=self.course,
        )
        PaymentItem.objects.create(
            payment=self.payment,
            item_type=Payment.ITEM_COURSE,
            course=self.course,
            title="Django",
            unit_price=Decimal("100.00"),
        )

    def test_revokes_only_what_the_payment_granted(self):
        Enrollment.objects.create(user=self.user, course=self.course, source_payment=self.payment)
        Enrollment.objects.create(user=self.user, course=self.other_course)

        deleted = revoke_access_for_payment(self.payment)

        self.assertEqual(deleted, 1)
        self.assertFalse(has_course_access(self.user, self.course.id))
        self.assertTrue(has_course_access(self.user, self.other_course.id))

    def test_revokes_unlinked_grant_for_purchased_item(self):
        Enrollment.objects.create(user=self.user, course=self.course)

        revoke_access_for_payment(self.payment)

        self.assertFalse(Enrollment.objects.filter(user=self.user, course=self.course).exists())

    def test_keeps_grant_from_another_payment(self):
        other_payment = Payment.objects.create(
            user=self.user,
            amount=Decimal("100.00"),
            item_type=Payment.ITEM_COURSE,
            course=self.course,
        )
        Enrollment.objects.create(user=self.user, course=self.course, source_payment=other_payment)

        revoke_access_for_payment(self.payment)

        self.assertTrue(has_course_access(self.user, self.course.id))

    def test_grant_still_paid_by_another_approved_payment_is_kept(self):
        other_payment = Payment.objects.create(
            user=self.user,
            amount=Decimal("100.00"),
            item_type=Payment.ITEM_COURSE,
            course=self.course,
            status=Payment.STATUS_APPROVED,
        )
        enrollment = Enrollment.objects.create(
            user=self.user, course=self.course, source_payment=self.payment
        )

        deleted = revoke_access_for_payment(self.payment)

        self.assertEqual(deleted, 0)
        enrollment.refresh_from_db()
        self.assertEqual(enrollment.source_payment_id, other_payment.id)
        self.assertTrue(has_course_access(self.user, self.course.id))
