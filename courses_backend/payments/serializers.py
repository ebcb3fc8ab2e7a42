from rest_framework import serializers

from payments.models import Payment, PaymentItem, Refund


class RefundSerializer(serializers.ModelSerializer):
    class Meta:
        model = Refund
        fields = [
            "id",
            "gateway_refund_id",
            "status",
            "amount",
            "reason",
            "created_at",
        ]
        read_only_fields = fields


class PaymentItemSerializer(serializers.ModelSerializer):
    course_id = serializers.UUIDField(read_only=True)
    journey_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = PaymentItem
        fields = ["id", "item_type", "course_id", "journey_id", "title", "unit_price", "quantity"]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    items = PaymentItemSerializer(many=True, read_only=True)
    refunds = RefundSerializer(many=True, read_only=True)
    course_id = serializers.UUIDField(read_only=True)
    journey_id = serializers.UUIDField(read_only=True)
    user_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "user_id",
            "gateway_payment_id",
            "external_reference",
            "status",
            "status_detail",
            "method",
            "installments",
            "amount",
            "currency",
            "item_type",
            "course_id",
            "journey_id",
            "metadata",
            "items",
            "refunds",
            "created_at",
            "updated_at",
            "approved_at",
            "refunded_at",
        ]
        read_only_fields = fields


# ---------------- INPUT ----------------
class CheckoutItemInputSerializer(serializers.Serializer):
    type = serializers.CharField()
    id = serializers.UUIDField()
    quantity = serializers.IntegerField(required=False, min_value=1, default=1)


class PayerInputSerializer(serializers.Serializer):
    email = serializers.EmailField(required=False)
    name = serializers.CharField(required=False, allow_blank=True)
    first_name = serializers.CharField(required=False, allow_blank=True)
    last_name = serializers.CharField(required=False, allow_blank=True)
    cpf = serializers.CharField(required=False, allow_blank=True)
    zip_code = serializers.CharField(required=False, allow_blank=True)
    street_name = serializers.CharField(required=False, allow_blank=True)
    street_number = serializers.CharField(required=False, allow_blank=True)
    neighborhood = serializers.CharField(required=False, allow_blank=True)
    city = serializers.CharField(required=False, allow_blank=True)
    state = serializers.CharField(required=False, allow_blank=True)

    def validate_cpf(self, value):
        digits = "".join(ch for ch in value or "" if ch.isdigit())
        if digits and len(digits) != 11:
            raise serializers.ValidationError("CPF must have 11 digits")
        return digits


class CheckoutInputSerializer(serializers.Serializer):
    """
    `items` is optional: without it the buyer's cart is checked out.
    Client prices/totals are not accepted.
    """

    method = serializers.CharField(max_length=32)
    installments = serializers.IntegerField(required=False, min_value=1, max_value=24, default=1)
    token = serializers.CharField(required=False, allow_blank=True)
    issuer_id = serializers.CharField(required=False, allow_blank=True)
    payer = PayerInputSerializer(required=False)
    items = CheckoutItemInputSerializer(many=True, required=False)


class CheckoutResponseSerializer(serializers.Serializer):
    payment = PaymentSerializer()
    gateway = serializers.DictField()
    outcome = serializers.CharField()


class RefundInputSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255, default="")


class LegacyRefundInputSerializer(RefundInputSerializer):
    paymentId = serializers.UUIDField()
