"""
Reconciliation management command.

Resolves in-flight payments against the processor, retries failed ones,
releases due scheduled payments and verifies the stored invariants.
Run: python manage.py reconcile_payments [--check-only]
"""

from django.core.management.base import BaseCommand

from core.guard import Actor, Operation, Resource, grant
from apps.payments import services


class Command(BaseCommand):
    help = "Reconcile pending payments with the processor and verify invariants"

    def add_arguments(self, parser):
        parser.add_argument(
            "--check-only",
            action="store_true",
            help="Only verify invariants; do not contact the processor",
        )
        parser.add_argument(
            "--max-attempts",
            type=int,
            default=None,
            help="Override PAYMENT_MAX_ATTEMPTS for this run",
        )

    def handle(self, *args, **options):
        if options["check_only"]:
            self.stdout.write("Checking payment invariants...")
            violations = services.check_invariants()
            self._report_violations(violations)
            return

        self.stdout.write("Starting payment reconciliation...")
        capability = grant(
            Actor.system("reconcile-command"),
            Operation.RECONCILE,
            Resource("Payment", None),
        )
        report = services.reconcile_pending_payments(
            capability, max_attempts=options["max_attempts"]
        )

        self.stdout.write(
            f"  checked={report.checked} completed={report.completed} "
            f"failed={report.failed} resent={report.resent} "
            f"retried={report.retried} released={report.released} "
            f"unresolved={report.unresolved}"
        )
        for error in report.errors[:10]:
            self.stdout.write(
                self.style.WARNING(f"  Payment {error['paymentId']}: {error['error']}")
            )
        self._report_violations(report.violations)

    def _report_violations(self, violations):
        if violations:
            self.stdout.write(
                self.style.ERROR(f"\nCONSISTENCY VIOLATIONS: {len(violations)}")
            )
            for violation in violations[:10]:
                self.stdout.write(
                    self.style.ERROR(f"  - {violation.message} {violation.details}")
                )
        else:
            self.stdout.write(self.style.SUCCESS("\nAll payment invariants verified."))
