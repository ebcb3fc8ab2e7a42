# payments/admin.py

from django.contrib import admin

from payments.models import Payment, PaymentItem, Refund, WebhookEvent


class PaymentItemInline(admin.TabularInline):
    model = PaymentItem
    extra = 0
    can_delete = False
    readonly_fields = ("item_type", "course", "journey", "title", "unit_price", "quantity")


class RefundInline(admin.TabularInline):
    model = Refund
    extra = 0
    can_delete = False
    readonly_fields = ("gateway_refund_id", "status", "amount", "reason", "requested_by", "created_at")


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = (
        "external_reference",
        "user",
        "status",
        "amount",
        "item_type",
        "method",
        "created_at",
    )
    list_filter = ("status", "item_type", "method")
    search_fields = ("external_reference", "gateway_payment_id", "user__email")
    readonly_fields = (
        "gateway_payment_id",
        "external_reference",
        "status",
        "last_gateway_status",
        "status_detail",
        "amount",
        "gateway_payload",
        "approved_at",
        "refunded_at",
        "created_at",
        "updated_at",
    )
    inlines = [PaymentItemInline, RefundInline]


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    list_display = ("received_at", "topic", "action", "resource_id", "signature_valid", "outcome")
    list_filter = ("topic", "outcome", "signature_valid")
    search_fields = ("resource_id", "delivery_id")
    readonly_fields = [f.name for f in WebhookEvent._meta.fields]
