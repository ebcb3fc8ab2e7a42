# payments/management/commands/reconcile_pending_payments.py

from __future__ import annotations

import logging
from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand
from django.utils import timezone

from payments.models import Payment
from payments.services.mercadopago import GatewayError
from payments.services.reconciliation import reconcile_gateway_payment

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = (
        "Re-polls Mercado Pago for PENDING payments older than N minutes and "
        "applies their current status (covers lost webhook deliveries)."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--older-than",
            type=int,
            default=None,
            help="Minutes since creation (default: PENDING_PAYMENT_RECONCILE_AFTER_MINUTES).",
        )
        parser.add_argument("--limit", type=int, default=200)
        parser.add_argument("--dry-run", action="store_true")

    def handle(self, *args, **options):
        minutes = options["older_than"]
        if minutes is None:
            minutes = int(getattr(settings, "PENDING_PAYMENT_RECONCILE_AFTER_MINUTES", 30))

        cutoff = timezone.now() - timedelta(minutes=minutes)
        pending = list(
            Payment.objects.filter(
                status=Payment.STATUS_PENDING,
                created_at__lte=cutoff,
                gateway_payment_id__isnull=False,
            )
            .order_by("created_at")
            .values_list("gateway_payment_id", flat=True)[: options["limit"]]
        )

        counts: dict[str, int] = {}
        failures = 0

        for gateway_payment_id in pending:
            if options["dry_run"]:
                self.stdout.write(f"would reconcile {gateway_payment_id}")
                continue

            try:
                result = reconcile_gateway_payment(gateway_payment_id)
            except GatewayError as exc:
                failures += 1
                logger.warning(
                    "Pending payment reconcile failed",
                    extra={"gateway_payment_id": gateway_payment_id, "error": str(exc)},
                )
                continue

            counts[result.outcome] = counts.get(result.outcome, 0) + 1

        summary = ", ".join(f"{k}={v}" for k, v in sorted(counts.items())) or "nothing to do"
        self.stdout.write(self.style.SUCCESS(f"Reconciled pending payments: {summary}; failures={failures}"))
