# enrollments/tests/test_endpoints.py

from datetime import timedelta

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient

from catalog.models import Course, CourseModule, Journey, Lesson
from enrollments.models import Enrollment

User = get_user_model()


class HasAccessEndpointTests(TestCase):
    url = "/api/user/has-access/"

    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(email="student@example.com", password="pass12345!")
        self.course = Course.objects.create(title="Django", description="Web", public=True)
        module = CourseModule.objects.create(course=self.course, title="Intro")
        self.lesson = Lesson.objects.create(module=module, title="Hello")
        Enrollment.objects.create(user=self.user, course=self.course)

    def test_missing_params(self):
        response = self.client.get(self.url, {"type": "course"})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"]["code"], "VALIDATION_ERROR")

    def test_anonymous_has_no_access(self):
        response = self.client.get(self.url, {"type": "course", "id": str(self.course.id)})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {"hasAccess": False})

    def test_enrolled_user(self):
        self.client.force_authenticate(self.user)

        response = self.client.get(self.url, {"type": "course", "id": str(self.course.id)})

        self.assertEqual(response.data, {"hasAccess": True})

    def test_portuguese_aliases(self):
        self.client.force_authenticate(self.user)

        course = self.client.get(self.url, {"type": "curso", "id": str(self.course.id)})
        lesson = self.client.get(self.url, {"type": "aula", "id": str(self.lesson.id)})

        self.assertTrue(course.data["hasAccess"])
        self.assertTrue(lesson.data["hasAccess"])

    def test_unknown_type_is_false(self):
        self.client.force_authenticate(self.user)

        response = self.client.get(self.url, {"type": "podcast", "id": str(self.course.id)})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data["hasAccess"])


class EnrollmentListEndpointTests(TestCase):
    url = "/api/user/enrollments/"

    def setUp(self):
        self.client = APIClient()
        self.user = User.objects.create_user(email="student@example.com", password="pass12345!")
        self.course = Course.objects.create(title="Django", description="Web", public=True)
        self.journey = Journey.objects.create(title="Backend", public=True)
        self.expired_course = Course.objects.create(title="Old", description="x", public=True)

        self.journey_end = timezone.now() + timedelta(days=90)
        Enrollment.objects.create(user=self.user, course=self.course)
        Enrollment.objects.create(user=self.user, journey=self.journey, end_date=self.journey_end)
        Enrollment.objects.create(
            user=self.user, course=self.expired_course, end_date=timezone.now() - timedelta(days=1)
        )

    def test_requires_authentication(self):
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_lists_active_grants(self):
        self.client.force_authenticate(self.user)

        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([c["title"] for c in response.data["courses"]], ["Django"])
        self.assertIsNone(response.data["courses"][0]["access_end_date"])

        self.assertEqual(len(response.data["journeys"]), 1)
        self.assertEqual(
            response.data["journeys"][0]["access_end_date"], self.journey_end.isoformat()
        )
