# payments/tests/test_lifecycle.py

from django.test import SimpleTestCase

from payments.models import Payment
from payments.services.payment_lifecycle import (
    TRANSITION_ALLOWED,
    TRANSITION_DUPLICATE,
    TRANSITION_STALE,
    InvalidPaymentTransitionError,
    can_transition,
    classify_transition,
    map_gateway_status,
    revokes_access,
    validate_transition,
)


class GatewayStatusMapTests(SimpleTestCase):
    def test_known_statuses(self):
        expected = {
            "approved": Payment.STATUS_APPROVED,
            "pending": Payment.STATUS_PENDING,
            "in_process": Payment.STATUS_PENDING,
            "authorized": Payment.STATUS_PENDING,
            "in_mediation": Payment.STATUS_PENDING,
            "rejected": Payment.STATUS_FAILED,
            "cancelled": Payment.STATUS_CANCELLED,
            "refunded": Payment.STATUS_REFUNDED,
            "charged_back": Payment.STATUS_REFUNDED,
        }
        for gateway_status, internal in expected.items():
            self.assertEqual(map_gateway_status(gateway_status), internal, gateway_status)

    def test_case_and_whitespace_insensitive(self):
        self.assertEqual(map_gateway_status("  APPROVED "), Payment.STATUS_APPROVED)

    def test_unknown_status_maps_to_none(self):
        self.assertIsNone(map_gateway_status("something_new"))
        self.assertIsNone(map_gateway_status(None))


class TransitionRuleTests(SimpleTestCase):
    def test_pending_can_move_anywhere(self):
        for target in (
            Payment.STATUS_APPROVED,
            Payment.STATUS_FAILED,
            Payment.STATUS_CANCELLED,
            Payment.STATUS_REFUNDED,
        ):
            self.assertTrue(can_transition(from_status=Payment.STATUS_PENDING, to_status=target))

    def test_terminal_states_never_reopen(self):
        for terminal in (Payment.STATUS_REFUNDED, Payment.STATUS_CANCELLED):
            self.assertFalse(can_transition(from_status=terminal, to_status=Payment.STATUS_APPROVED))
            self.assertFalse(can_transition(from_status=terminal, to_status=Payment.STATUS_PENDING))

    def test_failed_can_be_retried_to_approved_only(self):
        self.assertTrue(can_transition(from_status=Payment.STATUS_FAILED, to_status=Payment.STATUS_APPROVED))
        self.assertFalse(can_transition(from_status=Payment.STATUS_FAILED, to_status=Payment.STATUS_REFUNDED))

    def test_approved_does_not_go_back_to_pending(self):
        self.assertEqual(
            classify_transition(from_status=Payment.STATUS_APPROVED, to_status=Payment.STATUS_PENDING),
            TRANSITION_STALE,
        )

    def test_classification(self):
        self.assertEqual(
            classify_transition(from_status=Payment.STATUS_APPROVED, to_status=Payment.STATUS_APPROVED),
            TRANSITION_DUPLICATE,
        )
        self.assertEqual(
            classify_transition(from_status=Payment.STATUS_APPROVED, to_status=Payment.STATUS_REFUNDED),
            TRANSITION_ALLOWED,
        )

    def test_only_approved_to_reversal_revokes(self):
        self.assertTrue(revokes_access(from_status=Payment.STATUS_APPROVED, to_status=Payment.STATUS_REFUNDED))
        self.assertTrue(revokes_access(from_status=Payment.STATUS_APPROVED, to_status=Payment.STATUS_CANCELLED))
        self.assertFalse(revokes_access(from_status=Payment.STATUS_PENDING, to_status=Payment.STATUS_CANCELLED))

    def test_validate_transition_raises(self):
        payment = Payment(status=Payment.STATUS_REFUNDED)
        with self.assertRaises(InvalidPaymentTransitionError):
            validate_transition(payment=payment, target_status=Payment.STATUS_APPROVED)
