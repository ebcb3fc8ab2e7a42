# payments/views/refunds.py

"""
REFUND REQUESTS

POST /api/payments/<id>/refund/              {"reason"?}
POST /api/mercado-pago/refund/request/       {"paymentId", "reason"?}
"""

import logging

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from payments.serializers import (
    LegacyRefundInputSerializer,
    RefundInputSerializer,
    RefundSerializer,
)
from payments.services.mercadopago import GatewayError
from payments.services.refund_service import (
    DuplicateRefundError,
    PaymentNotFoundError,
    PaymentNotRefundableError,
    RefundNotAllowedError,
    RefundRejectedError,
    RefundWindowExpiredError,
    request_refund,
)
from payments.views.common import error_response

logger = logging.getLogger(__name__)

REFUND_RESPONSES = {
    200: RefundSerializer,
    400: OpenApiResponse(description="Not refundable / window expired / already refunded"),
    403: OpenApiResponse(description="Not the buyer"),
    404: OpenApiResponse(description="Payment not found"),
    502: OpenApiResponse(description="Payment gateway error"),
}


def _refund_response(*, request, payment_id, reason):
    try:
        refund = request_refund(payment_id=payment_id, user=request.user, reason=reason)
    except PaymentNotFoundError as exc:
        return error_response(code="NOT_FOUND", message=str(exc), http_status=status.HTTP_404_NOT_FOUND)
    except RefundNotAllowedError as exc:
        return error_response(code="FORBIDDEN", message=str(exc), http_status=status.HTTP_403_FORBIDDEN)
    except PaymentNotRefundableError as exc:
        return error_response(
            code="PAYMENT_NOT_REFUNDABLE", message=str(exc), http_status=status.HTTP_400_BAD_REQUEST
        )
    except DuplicateRefundError as exc:
        return error_response(
            code="ALREADY_REFUNDED", message=str(exc), http_status=status.HTTP_400_BAD_REQUEST
        )
    except RefundWindowExpiredError as exc:
        return error_response(
            code="REFUND_WINDOW_EXPIRED", message=str(exc), http_status=status.HTTP_400_BAD_REQUEST
        )
    except RefundRejectedError as exc:
        return error_response(
            code="REFUND_REJECTED", message=str(exc), http_status=status.HTTP_502_BAD_GATEWAY
        )
    except GatewayError as exc:
        logger.error("Refund gateway error", extra={"payment_id": str(payment_id), "error": str(exc)})
        return error_response(
            code="GATEWAY_ERROR",
            message="Payment gateway error",
            http_status=status.HTTP_502_BAD_GATEWAY,
        )

    return Response(
        {
            "success": True,
            "refund": RefundSerializer(refund).data,
            "message": "Refund processed. Access to the purchased items was revoked.",
        }
    )


class RefundRequestView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(request=RefundInputSerializer, responses=REFUND_RESPONSES)
    def post(self, request, pk):
        serializer = RefundInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return _refund_response(
            request=request,
            payment_id=pk,
            reason=serializer.validated_data.get("reason") or "",
        )


class LegacyRefundRequestView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(request=LegacyRefundInputSerializer, responses=REFUND_RESPONSES)
    def post(self, request):
        serializer = LegacyRefundInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return _refund_response(
            request=request,
            payment_id=serializer.validated_data["paymentId"],
            reason=serializer.validated_data.get("reason") or "",
        )
