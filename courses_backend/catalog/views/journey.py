# catalog/views/journey.py

"""
JOURNEY VIEWSET

Purpose:
- Public journey browsing with ordered courses
- Staff journey management (CRUD)
- Journey composition:
    GET    /journeys/<id>/courses/               ordered course list
    POST   /journeys/<id>/courses/               {"course_id", "order"?}
    GET    /journeys/<id>/courses/<course_id>/   single link
    POST   /journeys/<id>/courses/<course_id>/   append at the end
    DELETE /journeys/<id>/courses/<course_id>/   remove link

Rules:
- A course appears at most once per journey (409 on duplicates).
- Without an explicit order, a course is appended after the current last one.
"""

import logging

from django.db import IntegrityError, transaction
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from catalog.models import Course, Journey, JourneyCourse
from catalog.serializers import (
    JourneyCourseAddSerializer,
    JourneyCourseSerializer,
    JourneySerializer,
)
from catalog.views.course import CatalogThrottle, _wants_public_only
from permissions.roles import CanManageCatalogOrReadOnly

logger = logging.getLogger(__name__)


def error_response(*, code: str, message: str, http_status: int):
    return Response(
        {"error": {"code": code, "message": message}},
        status=http_status,
    )


def _add_course(*, journey: Journey, course: Course, order=None):
    """
    Returns the created link, or None when the course is already in the journey.
    """
    if JourneyCourse.objects.filter(journey=journey, course=course).exists():
        return None

    if order is None:
        order = journey.next_course_order()

    try:
        with transaction.atomic():
            link = JourneyCourse.objects.create(journey=journey, course=course, order=order)
    except IntegrityError:
        return None

    logger.info(
        "Course added to journey",
        extra={"journey_id": str(journey.id), "course_id": str(course.id), "order": order},
    )
    return link


class JourneyViewSet(viewsets.ModelViewSet):
    serializer_class = JourneySerializer
    permission_classes = [CanManageCatalogOrReadOnly]
    throttle_classes = [CatalogThrottle]

    def get_queryset(self):
        qs = Journey.objects.prefetch_related("journey_courses__course")
        if _wants_public_only(self.request):
            qs = qs.filter(public=True)
        return qs.order_by("-created_at")

    # --------------------------------------------------
    # JOURNEY COURSES (collection)
    # --------------------------------------------------

    @extend_schema(
        request=JourneyCourseAddSerializer,
        responses={
            200: JourneyCourseSerializer(many=True),
            201: JourneyCourseSerializer,
            404: OpenApiResponse(description="Course not found"),
            409: OpenApiResponse(description="Course already in journey"),
        },
    )
    @action(detail=True, methods=["get", "post"], url_path="courses")
    def courses(self, request, pk=None):
        journey = self.get_object()

        if request.method == "GET":
            links = journey.journey_courses.select_related("course").order_by("order", "created_at")
            return Response(JourneyCourseSerializer(links, many=True).data)

        serializer = JourneyCourseAddSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        course_id = serializer.validated_data.get("course_id")
        course = Course.objects.filter(id=course_id).first() if course_id else None
        if course is None:
            return error_response(
                code="COURSE_NOT_FOUND",
                message="Course not found",
                http_status=status.HTTP_404_NOT_FOUND,
            )

        link = _add_course(
            journey=journey,
            course=course,
            order=serializer.validated_data.get("order"),
        )
        if link is None:
            return error_response(
                code="COURSE_ALREADY_IN_JOURNEY",
                message="Course already in journey",
                http_status=status.HTTP_409_CONFLICT,
            )

        return Response(JourneyCourseSerializer(link).data, status=status.HTTP_201_CREATED)

    # --------------------------------------------------
    # JOURNEY COURSES (single link)
    # --------------------------------------------------

    @extend_schema(
        request=None,
        responses={
            200: JourneyCourseSerializer,
            201: JourneyCourseSerializer,
            204: OpenApiResponse(description="Removed"),
            404: OpenApiResponse(description="Course not found"),
            409: OpenApiResponse(description="Course already in journey"),
        },
    )
    @action(
        detail=True,
        methods=["get", "post", "delete"],
        url_path=r"courses/(?P<course_id>[0-9a-fA-F-]{36})",
    )
    def course_link(self, request, pk=None, course_id=None):
        journey = self.get_object()

        if request.method == "GET":
            link = (
                JourneyCourse.objects.select_related("course")
                .filter(journey=journey, course_id=course_id)
                .first()
            )
            if link is None:
                return error_response(
                    code="COURSE_NOT_IN_JOURNEY",
                    message="Course not found in journey",
                    http_status=status.HTTP_404_NOT_FOUND,
                )
            return Response(JourneyCourseSerializer(link).data)

        if request.method == "DELETE":
            JourneyCourse.objects.filter(journey=journey, course_id=course_id).delete()
            return Response(status=status.HTTP_204_NO_CONTENT)

        course = Course.objects.filter(id=course_id).first()
        if course is None:
            return error_response(
                code="COURSE_NOT_FOUND",
                message="Course not found",
                http_status=status.HTTP_404_NOT_FOUND,
            )

        link = _add_course(journey=journey, course=course)
        if link is None:
            return error_response(
                code="COURSE_ALREADY_IN_JOURNEY",
                message="Course already in journey",
                http_status=status.HTTP_409_CONFLICT,
            )

        return Response(JourneyCourseSerializer(link).data, status=status.HTTP_201_CREATED)
