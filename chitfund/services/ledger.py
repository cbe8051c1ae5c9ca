"""Ledger engine: derives enrollment balances from raw payment records.

Payments are the single source of truth. Everything here is recomputed from
(fund, payments, now) on every call:

- monthly target: ``total_amount / duration``
- month-by-month tracking with carry-forward of overpayments
- cumulative totals written back to the enrollment cache
- overdue month count from elapsed time vs. cumulative payments
- current-period balance with daily/weekly installment recommendations

All functions are pure. Records are read by attribute (ORM instances,
dataclasses) or by key (plain mappings), so storage layers can pass whatever
they load. Money is handled as ``Decimal``; intermediate arithmetic uses
``Fraction`` so a target such as 1000/7 never leaves a rounding residue in a
later bucket.
"""

import calendar
import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from fractions import Fraction
from typing import Any

from dateutil.relativedelta import relativedelta

from chitfund.services.parsers import format_month, parse_date_value, to_decimal

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


class BucketStatus(str, Enum):
    """Completion status of a monthly bucket."""

    PENDING = "Pending"
    PARTIAL = "Partial"
    COMPLETED = "Completed"
    NOT_STARTED = "Not Started"
    """Only used for a synthesized current period outside the fund's months."""


class OutOfWindowPolicy(str, Enum):
    """How payments labelled with a month outside the fund count toward totals.

    Such payments never appear in a bucket. With INCLUDE_IN_TOTALS they still
    raise ``total_paid`` and reduce the overdue count; with EXCLUDE_FROM_TOTALS
    totals only see payments that landed in a bucket.
    """

    INCLUDE_IN_TOTALS = "include_in_totals"
    EXCLUDE_FROM_TOTALS = "exclude_from_totals"


@dataclass(frozen=True)
class MonthBucket:
    """One month of a fund's duration after allocation."""

    month: str
    paid: Decimal
    carry_in: Decimal
    total: Decimal
    status: BucketStatus
    balance: Decimal

    def as_dict(self) -> dict[str, Any]:
        return {
            "month": self.month,
            "paid": self.paid,
            "carryIn": self.carry_in,
            "total": self.total,
            "status": self.status.value,
            "balance": self.balance,
        }


@dataclass(frozen=True)
class TrackingResult:
    """Bucket sequence plus the values needed to interpret it."""

    buckets: list[MonthBucket]
    monthly_target: Decimal
    carry_forward_remaining: Decimal

    def as_dict(self) -> dict[str, Any]:
        return {
            "buckets": [bucket.as_dict() for bucket in self.buckets],
            "monthlyTarget": self.monthly_target,
            "carryForwardRemaining": self.carry_forward_remaining,
        }


@dataclass(frozen=True)
class SyncResult:
    """Aggregates written back to an enrollment."""

    total_paid: Decimal
    pending_balance: Decimal
    overdue_months: int

    def as_dict(self) -> dict[str, Any]:
        return {
            "totalPaid": self.total_paid,
            "pendingBalance": self.pending_balance,
            "overdueMonths": self.overdue_months,
        }


@dataclass(frozen=True)
class CurrentPeriodBalance:
    """What is still owed for the calendar month containing ``now``."""

    month: str
    paid: Decimal
    balance: Decimal
    status: BucketStatus
    monthly_target: Decimal
    weeks_in_month: int
    days_in_month: int
    recommended_weekly: Decimal
    recommended_daily: Decimal
    payment_schedule: str | None

    def as_dict(self) -> dict[str, Any]:
        return {
            "month": self.month,
            "paid": self.paid,
            "balance": self.balance,
            "status": self.status.value,
            "monthlyTarget": self.monthly_target,
            "weeksInMonth": self.weeks_in_month,
            "daysInMonth": self.days_in_month,
            "recommendedWeekly": self.recommended_weekly,
            "recommendedDaily": self.recommended_daily,
            "paymentSchedule": self.payment_schedule,
        }


def _field(record: Any, name: str, default: Any = None) -> Any:
    if isinstance(record, Mapping):
        return record.get(name, default)
    return getattr(record, name, default)


def _exact(value: Any) -> Fraction:
    return Fraction(to_decimal(value))


def _to_money(value: Fraction) -> Decimal:
    if value.denominator == 1:
        return Decimal(value.numerator)
    return Decimal(value.numerator) / Decimal(value.denominator)


def as_date(now: date | datetime | None) -> date:
    """Reduce an injected clock value to a date; None means today."""
    if now is None:
        return date.today()
    if isinstance(now, datetime):
        return now.date()
    return now


def _target_fraction(fund: Any) -> Fraction:
    return _exact(_field(fund, "total_amount")) / int(_field(fund, "duration"))


def monthly_target(fund: Any) -> Decimal:
    """Return the fixed per-month obligation: ``total_amount / duration``.

    The fund's nominal schedule label does not change the target. A duration
    of zero is rejected upstream when the fund is created.
    """
    return _to_money(_target_fraction(fund))


def resolve_start_date(fund: Any, now: date | datetime | None = None) -> date:
    """Return the fund's start date, falling back to ``now`` when unusable.

    A missing or unparseable start date is not fatal: the current date is
    substituted and a warning is logged.
    """
    raw = _field(fund, "start_date")
    try:
        start = parse_date_value(raw)
    except ValueError:
        start = None

    if start is None:
        fallback = as_date(now)
        logger.warning(
            "Invalid start_date %r for fund %s, defaulting to %s",
            raw,
            _field(fund, "id"),
            fallback.isoformat(),
        )
        return fallback
    return start


def payment_month_of(payment: Any) -> str | None:
    """Return the bucket label of a payment.

    Uses ``payment_month`` when present, otherwise derives it from
    ``payment_date``. Returns None when neither is usable.
    """
    label = _field(payment, "payment_month")
    if label:
        return str(label).strip()
    try:
        paid_on = parse_date_value(_field(payment, "payment_date"))
    except ValueError:
        return None
    return format_month(paid_on) if paid_on else None


def period_labels(fund: Any, now: date | datetime | None = None) -> list[str]:
    """Return the ``YYYY-MM`` label of every period of the fund, in order."""
    start = resolve_start_date(fund, now)
    return [format_month(start + relativedelta(months=i)) for i in range(int(_field(fund, "duration")))]


def _sum_by_month(payments: Iterable[Any]) -> dict[str | None, Fraction]:
    sums: dict[str | None, Fraction] = {}
    for payment in payments:
        label = payment_month_of(payment)
        sums[label] = sums.get(label, Fraction(0)) + _exact(_field(payment, "amount"))
    return sums


def _allocate(fund: Any, payments: Iterable[Any], now: date | datetime | None) -> tuple[list[MonthBucket], Fraction]:
    target = _target_fraction(fund)
    paid_by_month = _sum_by_month(payments)

    buckets: list[MonthBucket] = []
    carry_forward = Fraction(0)

    for label in period_labels(fund, now):
        paid = paid_by_month.get(label, Fraction(0))
        total = paid + carry_forward

        if total >= target:
            status = BucketStatus.COMPLETED
        elif total > 0:
            status = BucketStatus.PARTIAL
        else:
            status = BucketStatus.PENDING

        buckets.append(
            MonthBucket(
                month=label,
                paid=_to_money(paid),
                carry_in=_to_money(carry_forward),
                total=_to_money(total),
                status=status,
                balance=_to_money(max(Fraction(0), target - total)),
            )
        )
        # A shortfall never borrows from a later month
        carry_forward = max(Fraction(0), total - target)

    return buckets, carry_forward


def build_monthly_tracking(fund: Any, payments: Iterable[Any], now: date | datetime | None = None) -> list[MonthBucket]:
    """Allocate payments into the fund's monthly buckets with carry-forward.

    Periods run from the start date for ``duration`` months. Each period sums
    the payments labelled with its month, adds the excess carried from the
    previous period and is marked Completed, Partial or Pending against the
    monthly target. Only excess over a Completed month rolls forward.

    Payments labelled with a month outside the window are left out of every
    bucket (see ``out_of_window_payments``). The result does not depend on the
    order of ``payments``.

    Args:
        fund: Record with ``total_amount``, ``duration`` and ``start_date``
        payments: Records with ``amount`` and ``payment_month``/``payment_date``
        now: Substitute start date when the fund's start date is unusable

    Returns:
        List of ``duration`` MonthBucket objects in chronological order
    """
    buckets, _ = _allocate(fund, list(payments), now)
    return buckets


def compute_tracking(fund: Any, payments: Iterable[Any], now: date | datetime | None = None) -> TrackingResult:
    """Return the bucket sequence, monthly target and carry left after the last month."""
    buckets, carry_forward = _allocate(fund, list(payments), now)
    return TrackingResult(
        buckets=buckets,
        monthly_target=monthly_target(fund),
        carry_forward_remaining=_to_money(carry_forward),
    )


def out_of_window_payments(fund: Any, payments: Iterable[Any], now: date | datetime | None = None) -> list[Any]:
    """Return payments whose month label matches none of the fund's periods."""
    labels = set(period_labels(fund, now))
    return [payment for payment in payments if payment_month_of(payment) not in labels]


def total_paid(
    fund: Any,
    payments: Iterable[Any],
    policy: OutOfWindowPolicy = OutOfWindowPolicy.INCLUDE_IN_TOTALS,
    now: date | datetime | None = None,
) -> Decimal:
    """Sum payment amounts according to the out-of-window policy."""
    payments = list(payments)
    if policy == OutOfWindowPolicy.EXCLUDE_FROM_TOTALS:
        labels = set(period_labels(fund, now))
        payments = [payment for payment in payments if payment_month_of(payment) in labels]
    return _to_money(sum((_exact(_field(p, "amount")) for p in payments), Fraction(0)))


def overdue_months(
    fund: Any,
    payments: Iterable[Any],
    now: date | datetime | None = None,
    policy: OutOfWindowPolicy = OutOfWindowPolicy.INCLUDE_IN_TOTALS,
) -> int:
    """Count how many months' worth of contributions are behind schedule.

    Compares cumulative payments with ``months_passed * monthly_target`` where
    the start month counts as passed. ``months_passed`` is capped at the fund's
    duration, so the result never exceeds it. Bucket labels play no part here:
    a payment labelled for the wrong month still reduces the count.

    Returns:
        0 when nothing is owed, otherwise ``ceil(shortfall / monthly_target)``
    """
    today = as_date(now)
    start = resolve_start_date(fund, today)
    duration = int(_field(fund, "duration"))

    months_passed = (today.year - start.year) * 12 + (today.month - start.month) + 1
    months_passed = max(0, min(months_passed, duration))

    target = _target_fraction(fund)
    paid = Fraction(total_paid(fund, payments, policy=policy, now=today))

    shortfall = months_passed * target - paid
    if shortfall <= 0:
        return 0
    return math.ceil(shortfall / target)


def compute_enrollment_totals(
    fund: Any,
    payments: Iterable[Any],
    now: date | datetime | None = None,
    policy: OutOfWindowPolicy = OutOfWindowPolicy.INCLUDE_IN_TOTALS,
) -> SyncResult:
    """Derive ``total_paid``, ``pending_balance`` and overdue months."""
    payments = list(payments)
    paid = total_paid(fund, payments, policy=policy, now=now)
    pending = max(Decimal("0"), to_decimal(_field(fund, "total_amount")) - paid)
    return SyncResult(
        total_paid=paid,
        pending_balance=pending,
        overdue_months=overdue_months(fund, payments, now=now, policy=policy),
    )


def sync_enrollment(
    fund: Any,
    enrollment: Any,
    payments: Iterable[Any],
    now: date | datetime | None = None,
    policy: OutOfWindowPolicy = OutOfWindowPolicy.INCLUDE_IN_TOTALS,
) -> SyncResult:
    """Recompute the enrollment's cached totals and set them on ``enrollment``.

    Only the two cache attributes are assigned; persisting them is the
    caller's job. Calling it again with the same payments yields the same
    values.
    """
    result = compute_enrollment_totals(fund, payments, now=now, policy=policy)
    enrollment.total_paid = result.total_paid
    enrollment.pending_balance = result.pending_balance
    return result


def weeks_in_month(year: int, month: int) -> int:
    """Number of calendar weeks (Sunday-first rows) the month spans."""
    first_weekday = (date(year, month, 1).weekday() + 1) % 7  # Sunday=0
    return math.ceil((days_in_month(year, month) + first_weekday) / 7)


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def current_period_balance(
    fund: Any,
    enrollment: Any,
    payments: Iterable[Any],
    now: date | datetime | None = None,
) -> CurrentPeriodBalance:
    """Return the balance of the bucket for ``now``'s month and suggested installments.

    When ``now`` falls outside the fund's months a Not Started period owing
    the full monthly target is reported instead.
    """
    today = as_date(now)
    label = format_month(today)
    tracking = compute_tracking(fund, payments, now=today)

    bucket = next((b for b in tracking.buckets if b.month == label), None)
    if bucket is None:
        paid, balance, status = Decimal("0"), tracking.monthly_target, BucketStatus.NOT_STARTED
    else:
        paid, balance, status = bucket.paid, bucket.balance, bucket.status

    weeks = weeks_in_month(today.year, today.month)
    days = days_in_month(today.year, today.month)

    return CurrentPeriodBalance(
        month=label,
        paid=paid,
        balance=balance,
        status=status,
        monthly_target=tracking.monthly_target,
        weeks_in_month=weeks,
        days_in_month=days,
        recommended_weekly=(balance / weeks).quantize(CENT, rounding=ROUND_HALF_UP),
        recommended_daily=(balance / days).quantize(CENT, rounding=ROUND_HALF_UP),
        payment_schedule=_field(enrollment, "payment_schedule"),
    )


__all__ = [
    "BucketStatus",
    "OutOfWindowPolicy",
    "MonthBucket",
    "TrackingResult",
    "SyncResult",
    "CurrentPeriodBalance",
    "monthly_target",
    "as_date",
    "resolve_start_date",
    "payment_month_of",
    "period_labels",
    "build_monthly_tracking",
    "compute_tracking",
    "out_of_window_payments",
    "total_paid",
    "overdue_months",
    "compute_enrollment_totals",
    "sync_enrollment",
    "weeks_in_month",
    "days_in_month",
    "current_period_balance",
]
