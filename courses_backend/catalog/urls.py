# catalog/urls.py

"""
CATALOG URLS

Mounted at /api/:
- /api/courses/
- /api/journeys/ (+ /courses/ composition actions)
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from catalog.views import CourseViewSet, JourneyViewSet

router = DefaultRouter()

router.register(r"courses", CourseViewSet, basename="courses")
router.register(r"journeys", JourneyViewSet, basename="journeys")

urlpatterns = [
    path("", include(router.urls)),
]
