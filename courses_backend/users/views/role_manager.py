"""
ROLE MANAGER (ADMIN ONLY)

GET    /api/role-manager/   -> list RoleEmail entries (newest first)
POST   /api/role-manager/   -> {"email", "role"} register an email for a role
DELETE /api/role-manager/   -> {"email"} remove an email from the allow-list

Existing users with a matching email are promoted/demoted immediately,
so the allow-list and User.role never drift apart.
"""

import logging

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from permissions.roles import IsAdmin
from users.models import ROLE_USER, RoleEmail
from users.serializers import RoleEmailDeleteSerializer, RoleEmailSerializer

logger = logging.getLogger(__name__)

User = get_user_model()


def error_response(*, code: str, message: str, http_status: int):
    return Response(
        {"error": {"code": code, "message": message}},
        status=http_status,
    )


def _sync_user_role(email: str, role: str):
    user = User.objects.filter(email__iexact=email).first()
    if user and not user.is_superuser and user.role != role:
        user.apply_role(role)


class RoleEmailView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]
    serializer_class = RoleEmailSerializer

    @extend_schema(responses={200: RoleEmailSerializer(many=True)})
    def get(self, request):
        entries = RoleEmail.objects.order_by("-created_at")
        return Response(RoleEmailSerializer(entries, many=True).data)

    @extend_schema(
        request=RoleEmailSerializer,
        responses={
            201: RoleEmailSerializer,
            400: OpenApiResponse(description="Email and role are required"),
            409: OpenApiResponse(description="Email already registered"),
        },
    )
    def post(self, request):
        serializer = RoleEmailSerializer(data=request.data)
        if not serializer.is_valid():
            return error_response(
                code="VALIDATION_ERROR",
                message="Email and role are required.",
                http_status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            with transaction.atomic():
                entry = serializer.save()
                _sync_user_role(entry.email, entry.role)
        except IntegrityError:
            return error_response(
                code="EMAIL_ALREADY_REGISTERED",
                message="Email already registered.",
                http_status=status.HTTP_409_CONFLICT,
            )

        logger.info("Role email registered", extra={"role": entry.role})
        return Response(RoleEmailSerializer(entry).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        request=RoleEmailDeleteSerializer,
        responses={
            200: OpenApiResponse(description="Removed"),
            400: OpenApiResponse(description="Email is required"),
            404: OpenApiResponse(description="Email not registered"),
        },
    )
    def delete(self, request):
        serializer = RoleEmailDeleteSerializer(data=request.data)
        if not serializer.is_valid():
            return error_response(
                code="VALIDATION_ERROR",
                message="Email is required.",
                http_status=status.HTTP_400_BAD_REQUEST,
            )

        email = serializer.validated_data["email"].strip().lower()

        with transaction.atomic():
            deleted, _ = RoleEmail.objects.filter(email__iexact=email).delete()
            if not deleted:
                return error_response(
                    code="NOT_FOUND",
                    message="Email not registered.",
                    http_status=status.HTTP_404_NOT_FOUND,
                )
            _sync_user_role(email, ROLE_USER)

        return Response({"success": True})
