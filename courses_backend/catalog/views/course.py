# catalog/views/course.py

"""
COURSE VIEWSET

Purpose:
- Public course browsing (AllowAny, public courses only)
- Staff course management (CRUD, requires catalog.manage)

Rules:
- `?public=true` forces the public-only listing even for staff.
- Callers without catalog.manage never see non-public courses.
"""

import logging

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import viewsets
from rest_framework.throttling import AnonRateThrottle

from catalog.models import Course
from catalog.serializers import CourseDetailSerializer, CourseSerializer
from permissions.roles import (
    CAP_CATALOG_MANAGE,
    CanManageCatalogOrReadOnly,
    user_has_capability,
)

logger = logging.getLogger(__name__)


class CatalogThrottle(AnonRateThrottle):
    scope = "catalog"


def _wants_public_only(request) -> bool:
    if (request.query_params.get("public") or "").strip().lower() == "true":
        return True
    return not user_has_capability(request.user, CAP_CATALOG_MANAGE)


class CourseViewSet(viewsets.ModelViewSet):
    permission_classes = [CanManageCatalogOrReadOnly]
    throttle_classes = [CatalogThrottle]
    filterset_fields = ["level"]
    http_method_names = ["get", "post", "put", "patch", "delete", "head", "options"]

    def get_queryset(self):
        qs = Course.objects.all()

        if self.action == "retrieve":
            qs = qs.prefetch_related("modules__lessons")

        if _wants_public_only(self.request):
            qs = qs.filter(public=True)

        return qs.order_by("-created_at")

    def get_serializer_class(self):
        if self.action == "retrieve":
            return CourseDetailSerializer
        return CourseSerializer

    @extend_schema(
        parameters=[
            OpenApiParameter(
                name="public",
                type=str,
                required=False,
                description="`true` to list only public courses",
            )
        ]
    )
    def list(self, request, *args, **kwargs):
        return super().list(request, *args, **kwargs)

    def perform_create(self, serializer):
        course = serializer.save()
        logger.info("Course created", extra={"course_id": str(course.id)})

    def perform_destroy(self, instance):
        logger.info("Course deleted", extra={"course_id": str(instance.id)})
        instance.delete()
