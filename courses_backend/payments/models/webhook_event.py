# payments/models/webhook_event.py

import uuid

from django.db import models


class WebhookEvent(models.Model):
    """
    Audit trail of every gateway notification.

    delivery_id is the gateway's x-request-id; a delivery that was already
    processed is acknowledged without running reconciliation again.
    """

    OUTCOME_RECEIVED = "received"
    OUTCOME_APPLIED = "applied"
    OUTCOME_DUPLICATE = "duplicate"
    OUTCOME_STALE = "stale"
    OUTCOME_IGNORED = "ignored"
    OUTCOME_AMOUNT_MISMATCH = "amount_mismatch"
    OUTCOME_INVALID_SIGNATURE = "invalid_signature"
    OUTCOME_ERROR = "error"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    delivery_id = models.CharField(max_length=128, unique=True, null=True, blank=True)
    topic = models.CharField(max_length=64, blank=True, default="")
    action = models.CharField(max_length=64, blank=True, default="")
    resource_id = models.CharField(max_length=64, blank=True, default="")

    payload = models.JSONField(default=dict, blank=True)
    signature_valid = models.BooleanField(default=False)

    outcome = models.CharField(max_length=32, default=OUTCOME_RECEIVED)
    error = models.TextField(blank=True, default="")

    received_at = models.DateTimeField(auto_now_add=True)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-received_at"]
        indexes = [
            models.Index(fields=["topic", "resource_id"], name="webhook_topic_resource_idx"),
        ]

    def __str__(self):
        return f"{self.topic}:{self.resource_id} | {self.outcome}"
