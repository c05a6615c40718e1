from django.test import SimpleTestCase

from core.exceptions import InvalidStateTransition
from core.state_machine import validate_transition


class WorkItemTransitionTests(SimpleTestCase):
    def test_happy_path(self):
        path = ["DRAFT", "OPEN", "ASSIGNED", "SUBMITTED", "APPROVED", "PAID"]
        for current, target in zip(path, path[1:]):
            self.assertTrue(validate_transition("WorkItem", current, target))

    def test_resubmission_after_rejection(self):
        validate_transition("WorkItem", "SUBMITTED", "REJECTED")
        self.assertTrue(validate_transition("WorkItem", "REJECTED", "SUBMITTED"))

    def test_approved_item_cannot_be_cancelled(self):
        with self.assertRaises(InvalidStateTransition) as ctx:
            validate_transition("WorkItem", "APPROVED", "CANCELLED")
        self.assertEqual(ctx.exception.details["allowedTransitions"], ["PAID"])

    def test_cannot_skip_review(self):
        with self.assertRaises(InvalidStateTransition):
            validate_transition("WorkItem", "ASSIGNED", "APPROVED")

    def test_terminal_states(self):
        for status in ("PAID", "DECLINED", "CANCELLED"):
            with self.assertRaises(InvalidStateTransition) as ctx:
                validate_transition("WorkItem", status, "OPEN")
            self.assertIn("terminal", ctx.exception.message)
        self.assertTrue(validate_transition("WorkItem", "APPROVED", "PAID"))


class PaymentTransitionTests(SimpleTestCase):
    def test_failed_payment_can_be_retried_or_settle_late(self):
        self.assertTrue(validate_transition("Payment", "FAILED", "PROCESSING"))
        self.assertTrue(validate_transition("Payment", "FAILED", "COMPLETED"))

    def test_completed_is_terminal(self):
        with self.assertRaises(InvalidStateTransition) as ctx:
            validate_transition("Payment", "COMPLETED", "FAILED")
        self.assertEqual(ctx.exception.code, "INVALID_STATE")
        self.assertEqual(ctx.exception.details["currentState"], "COMPLETED")
        self.assertEqual(ctx.exception.details["attemptedState"], "FAILED")

    def test_unknown_status(self):
        with self.assertRaises(InvalidStateTransition):
            validate_transition("Payment", "REFUNDED", "COMPLETED")

    def test_unknown_entity(self):
        with self.assertRaises(ValueError):
            validate_transition("Invoice", "DRAFT", "SENT")
