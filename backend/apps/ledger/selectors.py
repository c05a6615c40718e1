"""
Ledger query layer.

Read-only aggregates over Payment rows. Every filter is a query predicate
evaluated by the database; nothing is loaded and then filtered in Python.

Payments are attributed through their own business / contractor columns,
so direct payments (no contract) are counted exactly like contract-linked
ones. Every payment is in settings.SETTLEMENT_CURRENCY, so sums never mix
currencies.
"""

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.db.models import Count, Q, Sum
from django.db.models.functions import TruncMonth
from django.utils import timezone

from apps.payments.models import Payment, PaymentStatus
from apps.work.models import WorkItem, WorkItemStatus

ZERO = Decimal("0.00")

# Payments that consume budget: everything not FAILED
BUDGET_CONSUMING_STATUSES = [
    PaymentStatus.SCHEDULED,
    PaymentStatus.PROCESSING,
    PaymentStatus.COMPLETED,
]

# Published work that has not produced a payment yet
COMMITTED_WORK_STATUSES = [
    WorkItemStatus.OPEN,
    WorkItemStatus.ASSIGNED,
    WorkItemStatus.SUBMITTED,
    WorkItemStatus.REJECTED,
]


@dataclass(frozen=True)
class Period:
    """Half-open date interval [start, end). None means unbounded."""

    start: Optional[date] = None
    end: Optional[date] = None

    @classmethod
    def all_time(cls):
        return cls()

    @classmethod
    def month(cls, year, month):
        start = date(year, month, 1)
        last_day = calendar.monthrange(year, month)[1]
        return cls(start, start + timedelta(days=last_day))

    @classmethod
    def quarter(cls, year, month):
        first_month = 3 * ((month - 1) // 3) + 1
        start = date(year, first_month, 1)
        end = date(year + 1, 1, 1) if first_month == 10 else date(year, first_month + 3, 1)
        return cls(start, end)

    @classmethod
    def year(cls, year):
        return cls(date(year, 1, 1), date(year + 1, 1, 1))

    @classmethod
    def between(cls, start, end):
        """Explicit range; both bounds inclusive as given by callers."""
        return cls(start, end + timedelta(days=1) if end else None)

    @classmethod
    def current_budget_period(cls, business, today=None):
        """The business's budget window containing today."""
        today = today or timezone.localdate()
        if business.budget_period == "MONTHLY":
            return cls.month(today.year, today.month)
        if business.budget_period == "QUARTERLY":
            return cls.quarter(today.year, today.month)

        anchor = business.budget_start_date
        if anchor is None:
            return cls.year(today.year)
        start = _anniversary(anchor, today.year)
        if start > today:
            start = _anniversary(anchor, today.year - 1)
        return cls(start, _anniversary(anchor, start.year + 1))

    def q(self, field):
        """Q object restricting field to this period."""
        predicate = Q()
        if self.start is not None:
            predicate &= Q(**{f"{field}__gte": self.start})
        if self.end is not None:
            predicate &= Q(**{f"{field}__lt": self.end})
        return predicate

    def as_dict(self):
        return {
            "start": self.start.isoformat() if self.start else None,
            "end": (self.end - timedelta(days=1)).isoformat() if self.end else None,
        }


ALL_TIME = Period.all_time()


def _anniversary(anchor, year):
    # Feb 29 anchors fall back to Feb 28 in non-leap years
    day = min(anchor.day, calendar.monthrange(year, anchor.month)[1])
    return date(year, anchor.month, day)


def _sum_amount(queryset):
    return queryset.aggregate(total=Sum("amount"))["total"] or ZERO


def payments_for(business_id, status=None, period=None):
    """All payments attributed to a business, both linkages."""
    queryset = Payment.objects.filter(business_id=business_id)
    if status:
        queryset = queryset.filter(status=status)
    if period is not None:
        queryset = queryset.filter(period.q("scheduled_date"))
    return queryset.order_by("-created_at")


def payments_for_contractor(contractor_id, status=None, period=None):
    """All payments to a contractor, filtered on the payee column."""
    queryset = Payment.objects.filter(contractor_id=contractor_id)
    if status:
        queryset = queryset.filter(status=status)
    if period is not None:
        queryset = queryset.filter(period.q("scheduled_date"))
    return queryset.order_by("-created_at")


def total_paid(business_id, period=ALL_TIME):
    """Sum of COMPLETED payments completed within period."""
    return _sum_amount(
        Payment.objects.filter(
            business_id=business_id, status=PaymentStatus.COMPLETED
        ).filter(period.q("completed_date"))
    )


def total_earned(contractor_id, period=ALL_TIME):
    """Sum of COMPLETED payments to contractor completed within period."""
    return _sum_amount(
        Payment.objects.filter(
            contractor_id=contractor_id, status=PaymentStatus.COMPLETED
        ).filter(period.q("completed_date"))
    )


def total_pending(business_id=None, contractor_id=None):
    """Sum of payments still SCHEDULED or PROCESSING."""
    queryset = Payment.objects.filter(
        status__in=[PaymentStatus.SCHEDULED, PaymentStatus.PROCESSING]
    )
    if business_id is not None:
        queryset = queryset.filter(business_id=business_id)
    if contractor_id is not None:
        queryset = queryset.filter(contractor_id=contractor_id)
    return _sum_amount(queryset)


def monthly_totals(business_id, year):
    """
    Completed payment totals per calendar month of year.

    Grouping happens in the database. Every month is present in the result,
    months without payments carry zero.
    """
    rows = (
        Payment.objects.filter(
            business_id=business_id,
            status=PaymentStatus.COMPLETED,
            completed_date__year=year,
        )
        .annotate(month=TruncMonth("completed_date"))
        .values("month")
        .annotate(total=Sum("amount"), count=Count("id"))
        .order_by("month")
    )
    by_month = {row["month"].month: row for row in rows}
    return [
        {
            "month": f"{year}-{month:02d}",
            "total": by_month[month]["total"] if month in by_month else ZERO,
            "count": by_month[month]["count"] if month in by_month else 0,
        }
        for month in range(1, 13)
    ]


def budget_used(business_id, period):
    """Budget consumed in period: every non-failed payment scheduled in it."""
    return _sum_amount(
        Payment.objects.filter(
            business_id=business_id, status__in=BUDGET_CONSUMING_STATUSES
        ).filter(period.q("scheduled_date"))
    )


def outstanding_commitments(business_id):
    """Value of published work that has not been approved for payment yet."""
    return _sum_amount(
        WorkItem.objects.filter(
            business_id=business_id, status__in=COMMITTED_WORK_STATUSES
        )
    )


def remaining_budget(business, today=None):
    """Cap minus usage in the current period; None when the business has no cap."""
    if business.budget_cap is None:
        return None
    period = Period.current_budget_period(business, today)
    return business.budget_cap - budget_used(business.id, period)


def budget_summary(business, today=None):
    period = Period.current_budget_period(business, today)
    used = budget_used(business.id, period)
    cap = business.budget_cap
    return {
        "businessId": str(business.id),
        "budgetCap": cap,
        "currency": settings.SETTLEMENT_CURRENCY,
        "budgetPeriod": business.budget_period,
        "budgetStartDate": business.budget_start_date,
        "period": period.as_dict(),
        "budgetUsed": used,
        "remainingBudget": cap - used if cap is not None else None,
        "paidInPeriod": total_paid(business.id, period),
        "outstandingCommitments": outstanding_commitments(business.id),
    }


def contractor_summary(contractor_id, period=ALL_TIME):
    return {
        "contractorId": str(contractor_id),
        "period": period.as_dict(),
        "currency": settings.SETTLEMENT_CURRENCY,
        "totalEarned": total_earned(contractor_id, period),
        "totalPending": total_pending(contractor_id=contractor_id),
    }


def business_summary(business_id, period=ALL_TIME):
    return {
        "businessId": str(business_id),
        "period": period.as_dict(),
        "currency": settings.SETTLEMENT_CURRENCY,
        "totalPaid": total_paid(business_id, period),
        "totalPending": total_pending(business_id=business_id),
    }
