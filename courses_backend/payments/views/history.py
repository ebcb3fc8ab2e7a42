# payments/views/history.py

"""
PAYMENT HISTORY

GET /api/payments/           own payments, newest first (?course_id=)
                             staff with payments.view_all: ?scope=all
GET /api/payments/<id>/      own payment; 404 for anybody else's
"""

import uuid

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from payments.models import Payment
from payments.serializers import PaymentSerializer
from payments.views.common import error_response
from permissions.roles import CAP_PAYMENTS_VIEW_ALL, user_has_capability


def _base_queryset():
    return Payment.objects.prefetch_related("items", "refunds").order_by("-created_at")


class PaymentListView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        parameters=[
            OpenApiParameter(name="course_id", type=str, required=False),
            OpenApiParameter(
                name="scope",
                type=str,
                required=False,
                description="`all` lists every user's payments (payments.view_all)",
            ),
        ],
        responses={200: PaymentSerializer(many=True)},
    )
    def get(self, request):
        qs = _base_queryset()

        scope = (request.query_params.get("scope") or "").strip().lower()
        if scope == "all":
            if not user_has_capability(request.user, CAP_PAYMENTS_VIEW_ALL):
                return error_response(
                    code="FORBIDDEN",
                    message="Not allowed to list all payments",
                    http_status=status.HTTP_403_FORBIDDEN,
                )
        else:
            qs = qs.filter(user=request.user)

        course_id = (request.query_params.get("course_id") or "").strip()
        if course_id:
            try:
                qs = qs.filter(course_id=uuid.UUID(course_id))
            except ValueError:
                return error_response(
                    code="VALIDATION_ERROR",
                    message="course_id must be a UUID",
                    http_status=status.HTTP_400_BAD_REQUEST,
                )

        status_filter = (request.query_params.get("status") or "").strip().upper()
        if status_filter:
            qs = qs.filter(status=status_filter)

        return Response(PaymentSerializer(qs, many=True).data)


class PaymentDetailView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: PaymentSerializer})
    def get(self, request, pk):
        qs = _base_queryset()
        if not user_has_capability(request.user, CAP_PAYMENTS_VIEW_ALL):
            qs = qs.filter(user=request.user)

        payment = qs.filter(id=pk).first()
        if payment is None:
            return error_response(
                code="NOT_FOUND",
                message="Payment not found",
                http_status=status.HTTP_404_NOT_FOUND,
            )

        return Response(PaymentSerializer(payment).data)
