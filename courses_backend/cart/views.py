# cart/views.py

"""
CART API

GET    /api/cart/         current cart with live prices and total
PUT    /api/cart/         replace all lines (invalid lines dropped)
DELETE /api/cart/         {"clear": true} or {"item_id", "item_type"}
POST   /api/cart/items/   add one course/journey

Money rule:
- Prices are never accepted from the client; they are read from the
  catalog (effective price) whenever the cart is rendered.
"""

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from cart.serializers import (
    CartDeleteInputSerializer,
    CartItemInputSerializer,
    CartReplaceInputSerializer,
    cart_payload,
)
from cart.services.cart_service import (
    CartNotFoundError,
    ItemAlreadyInCartError,
    ItemAlreadyOwnedError,
    ItemNotFoundError,
    add_item,
    cart_items,
    clear_cart,
    get_cart,
    remove_item,
    replace_items,
)


def error_response(*, code: str, message: str, http_status: int):
    return Response(
        {"error": {"code": code, "message": message}},
        status=http_status,
    )


def _render(cart, http_status=status.HTTP_200_OK):
    return Response(cart_payload(cart, cart_items(cart)), status=http_status)


class CartView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(responses={200: OpenApiResponse(description="Cart with items and total")})
    def get(self, request):
        return _render(get_cart(request.user))

    @extend_schema(
        request=CartReplaceInputSerializer,
        responses={200: OpenApiResponse(description="Cart with items and total")},
    )
    def put(self, request):
        serializer = CartReplaceInputSerializer(data=request.data)
        if not serializer.is_valid():
            return error_response(
                code="VALIDATION_ERROR",
                message="items must be a list",
                http_status=status.HTTP_400_BAD_REQUEST,
            )

        cart = replace_items(user=request.user, items=serializer.validated_data["items"])
        return _render(cart)

    @extend_schema(
        request=CartDeleteInputSerializer,
        responses={
            200: OpenApiResponse(description="Cart with items and total"),
            400: OpenApiResponse(description="Missing required parameters"),
            404: OpenApiResponse(description="Cart not found"),
        },
    )
    def delete(self, request):
        serializer = CartDeleteInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        item_id = (data.get("item_id") or "").strip()
        item_type = (data.get("item_type") or "").strip()

        if not data.get("clear") and not (item_id and item_type):
            return error_response(
                code="VALIDATION_ERROR",
                message="Missing required parameters",
                http_status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            if data.get("clear"):
                cart = clear_cart(user=request.user)
            else:
                cart = remove_item(user=request.user, item_id=item_id, item_type=item_type)
        except CartNotFoundError as exc:
            return error_response(
                code="CART_NOT_FOUND",
                message=str(exc),
                http_status=status.HTTP_404_NOT_FOUND,
            )

        return _render(cart)


class CartItemView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        request=CartItemInputSerializer,
        responses={
            201: OpenApiResponse(description="Cart with items and total"),
            404: OpenApiResponse(description="Course or journey not found"),
            409: OpenApiResponse(description="Already in cart or already owned"),
        },
    )
    def post(self, request):
        serializer = CartItemInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            cart = add_item(
                user=request.user,
                item_type=data["item_type"],
                course_id=data.get("course_id"),
                journey_id=data.get("journey_id"),
                quantity=data.get("quantity") or 1,
            )
        except ItemNotFoundError as exc:
            return error_response(
                code="ITEM_NOT_FOUND",
                message=str(exc),
                http_status=status.HTTP_404_NOT_FOUND,
            )
        except ItemAlreadyInCartError as exc:
            return error_response(
                code="ALREADY_IN_CART",
                message=str(exc),
                http_status=status.HTTP_409_CONFLICT,
            )
        except ItemAlreadyOwnedError as exc:
            return error_response(
                code="ALREADY_OWNED",
                message=str(exc),
                http_status=status.HTTP_409_CONFLICT,
            )

        return _render(cart, http_status=status.HTTP_201_CREATED)
