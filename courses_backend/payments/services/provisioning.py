"""
ACCESS PROVISIONING FOR PAYMENTS

Bridges payments and enrollments:
- approve  -> grant every purchased item, drop it from the buyer's cart
- revoke   -> remove what the payment granted, close open refunds

Callers own the transaction and the row lock on the payment.
"""

import logging

from django.utils import timezone

from cart.services.cart_service import remove_purchased_items
from enrollments.services.access import (
    grant_course_access,
    grant_journey_access,
    revoke_access_for_payment,
)
from payments.models import Payment, Refund

logger = logging.getLogger(__name__)


def provision_payment(payment: Payment) -> int:
    granted = 0
    course_ids = []
    journey_ids = []

    for item in payment.purchased_items():
        if item.course_id and item.course is not None:
            grant_course_access(user=payment.user, course=item.course, payment=payment)
            course_ids.append(item.course_id)
            granted += 1
        elif item.journey_id and item.journey is not None:
            grant_journey_access(
                user=payment.user,
                journey=item.journey,
                months=item.journey.access_duration_months,
                payment=payment,
            )
            journey_ids.append(item.journey_id)
            granted += 1

    removed = remove_purchased_items(
        user=payment.user,
        course_ids=course_ids,
        journey_ids=journey_ids,
    )

    logger.info(
        "Payment provisioned",
        extra={"payment_id": str(payment.id), "granted": granted, "cart_removed": removed},
    )
    return granted


def revoke_payment(payment: Payment) -> int:
    revoked = revoke_access_for_payment(payment)

    Refund.objects.filter(
        payment=payment,
        status__in=[Refund.STATUS_PENDING, Refund.STATUS_APPROVED],
    ).update(status=Refund.STATUS_COMPLETED, updated_at=timezone.now())

    return revoked
