from decimal import Decimal

from rest_framework import serializers

from cart.models import CartItem


class CartItemSerializer(serializers.ModelSerializer):
    """
    `id` is the catalog item id (course or journey), which is what the
    storefront keys on; the cart line id is exposed as `cart_item_id`.
    """

    id = serializers.SerializerMethodField()
    cart_item_id = serializers.UUIDField(source="pk", read_only=True)
    course_id = serializers.UUIDField(read_only=True)
    journey_id = serializers.UUIDField(read_only=True)
    title = serializers.SerializerMethodField()
    price = serializers.SerializerMethodField()

    class Meta:
        model = CartItem
        fields = [
            "id",
            "cart_item_id",
            "item_type",
            "course_id",
            "journey_id",
            "quantity",
            "title",
            "price",
        ]

    def get_id(self, obj):
        return str(obj.target_id)

    def get_title(self, obj):
        target = obj.target
        return target.title if target is not None else None

    def get_price(self, obj):
        return str(obj.unit_price.quantize(Decimal("0.01")))


class CartItemInputSerializer(serializers.Serializer):
    item_type = serializers.ChoiceField(choices=CartItem.ItemType.choices)
    course_id = serializers.UUIDField(required=False, allow_null=True)
    journey_id = serializers.UUIDField(required=False, allow_null=True)
    quantity = serializers.IntegerField(required=False, min_value=1, default=1)

    def validate(self, attrs):
        if attrs["item_type"] == CartItem.ItemType.COURSE and not attrs.get("course_id"):
            raise serializers.ValidationError({"course_id": "course_id is required for COURSE items"})
        if attrs["item_type"] == CartItem.ItemType.JOURNEY and not attrs.get("journey_id"):
            raise serializers.ValidationError({"journey_id": "journey_id is required for JOURNEY items"})
        return attrs


class CartReplaceInputSerializer(serializers.Serializer):
    # Lines are sanitized by the service, not rejected.
    items = serializers.ListField(child=serializers.DictField(), allow_empty=True)


class CartDeleteInputSerializer(serializers.Serializer):
    clear = serializers.BooleanField(required=False, default=False)
    item_id = serializers.CharField(required=False, allow_blank=True)
    item_type = serializers.CharField(required=False, allow_blank=True)


def cart_payload(cart, items) -> dict:
    total = sum((item.line_total for item in items), Decimal("0.00"))
    return {
        "id": str(cart.id) if cart is not None else None,
        "updated_at": cart.updated_at.isoformat() if cart is not None else None,
        "items": CartItemSerializer(items, many=True).data,
        "total": str(total.quantize(Decimal("0.01"))),
    }
