# payments/views/checkout.py

"""
CHECKOUT

POST /api/payments/checkout/      (alias: POST /api/mercado-pago/pay/)

Creates the gateway payment for explicit items or for the caller's cart.
Card payments may come back approved immediately; PIX payments return
the QR code data and are confirmed later by webhook.
"""

import logging

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import UserRateThrottle
from rest_framework.views import APIView

from payments.serializers import (
    CheckoutInputSerializer,
    CheckoutResponseSerializer,
    PaymentSerializer,
)
from payments.services.checkout_orchestrator import (
    AlreadyOwnedError,
    EmptyCheckoutError,
    ItemUnavailableError,
    start_checkout,
)
from payments.services.mercadopago import GatewayError
from payments.views.common import error_response

logger = logging.getLogger(__name__)


class CheckoutThrottle(UserRateThrottle):
    scope = "checkout"


class CheckoutView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_classes = [CheckoutThrottle]

    @extend_schema(
        request=CheckoutInputSerializer,
        responses={
            201: CheckoutResponseSerializer,
            400: OpenApiResponse(description="No items / validation error"),
            404: OpenApiResponse(description="Item not found"),
            409: OpenApiResponse(description="Item already owned"),
            502: OpenApiResponse(description="Payment gateway error"),
        },
    )
    def post(self, request):
        serializer = CheckoutInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            result = start_checkout(
                user=request.user,
                items=[dict(item) for item in data.get("items") or []],
                method=data["method"],
                installments=data.get("installments") or 1,
                token=data.get("token") or None,
                issuer_id=data.get("issuer_id") or None,
                payer=dict(data.get("payer") or {}),
            )
        except EmptyCheckoutError as exc:
            return error_response(
                code="EMPTY_CHECKOUT",
                message=str(exc),
                http_status=status.HTTP_400_BAD_REQUEST,
            )
        except ItemUnavailableError as exc:
            return error_response(
                code="ITEM_NOT_FOUND",
                message=str(exc),
                http_status=status.HTTP_404_NOT_FOUND,
            )
        except AlreadyOwnedError as exc:
            return error_response(
                code="ALREADY_OWNED",
                message=str(exc),
                http_status=status.HTTP_409_CONFLICT,
            )
        except GatewayError as exc:
            logger.error("Checkout gateway error", extra={"user_id": str(request.user.pk), "error": str(exc)})
            return error_response(
                code="GATEWAY_ERROR",
                message="Payment gateway error",
                http_status=status.HTTP_502_BAD_GATEWAY,
            )

        response = result.gateway_response
        return Response(
            {
                "payment": PaymentSerializer(result.payment).data,
                "gateway": {
                    "id": response.get("id"),
                    "status": response.get("status"),
                    "status_detail": response.get("status_detail"),
                    "point_of_interaction": response.get("point_of_interaction"),
                },
                "outcome": result.reconcile.outcome,
            },
            status=status.HTTP_201_CREATED,
        )
