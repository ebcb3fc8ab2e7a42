# enrollments/views.py

"""
ACCESS ENDPOINTS

GET /api/user/enrollments/   active course and journey grants of the caller
GET /api/user/has-access/    ?type=course|journey|lesson&id=<uuid>

`curso`, `jornada` and `aula` are accepted as type aliases.
"""

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from enrollments.serializers import (
    EnrolledCourseSerializer,
    EnrolledJourneySerializer,
    EnrollmentsResponseSerializer,
    HasAccessResponseSerializer,
)
from enrollments.services.access import (
    active_enrollments_for,
    has_course_access,
    has_journey_access,
    has_lesson_access,
)

TYPE_ALIASES = {
    "course": "course",
    "curso": "course",
    "journey": "journey",
    "jornada": "journey",
    "lesson": "lesson",
    "aula": "lesson",
}


def error_response(*, code: str, message: str, http_status: int):
    return Response(
        {"error": {"code": code, "message": message}},
        status=http_status,
    )


class EnrollmentListView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: EnrollmentsResponseSerializer})
    def get(self, request):
        enrollments = list(
            active_enrollments_for(request.user).prefetch_related(
                "course__modules__lessons",
                "journey__journey_courses__course",
            )
        )

        courses = [e.course for e in enrollments if e.course_id]
        journeys = [e.journey for e in enrollments if e.journey_id]

        context = {
            "request": request,
            "end_dates": {
                (e.course_id or e.journey_id): e.end_date for e in enrollments
            },
        }

        return Response(
            {
                "courses": EnrolledCourseSerializer(courses, many=True, context=context).data,
                "journeys": EnrolledJourneySerializer(journeys, many=True, context=context).data,
            }
        )


class HasAccessView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(
        parameters=[
            OpenApiParameter(name="type", type=str, required=True),
            OpenApiParameter(name="id", type=str, required=True),
        ],
        responses={200: HasAccessResponseSerializer},
    )
    def get(self, request):
        raw_type = (request.query_params.get("type") or "").strip().lower()
        target_id = (request.query_params.get("id") or "").strip()

        if not raw_type or not target_id:
            return error_response(
                code="VALIDATION_ERROR",
                message="Type and ID are required",
                http_status=status.HTTP_400_BAD_REQUEST,
            )

        if not request.user or not request.user.is_authenticated:
            return Response({"hasAccess": False})

        access_type = TYPE_ALIASES.get(raw_type)

        if access_type == "course":
            has_access = has_course_access(request.user, target_id)
        elif access_type == "journey":
            has_access = has_journey_access(request.user, target_id)
        elif access_type == "lesson":
            has_access = has_lesson_access(request.user, target_id)
        else:
            has_access = False

        return Response({"hasAccess": has_access})
