"""Summary service: dashboard views built on the ledger engine."""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from fractions import Fraction

from dateutil.relativedelta import relativedelta
from sqlalchemy import func
from sqlalchemy.orm import Session

from chitfund.models.enrollment import Enrollment
from chitfund.models.fund import Fund, PaymentSchedule
from chitfund.models.payment import Payment
from chitfund.models.user import User, UserRole
from chitfund.services import ledger
from chitfund.services.balance_service import BalanceService
from chitfund.services.errors import FundNotFoundError
from chitfund.services.ledger import CurrentPeriodBalance, OutOfWindowPolicy, TrackingResult
from chitfund.services.parsers import format_month, to_decimal

logger = logging.getLogger(__name__)

MONTHLY_DUE_DAY = 5


@dataclass
class EnrollmentSummary:
    """One fund as seen on a member's dashboard."""

    fund_id: int
    fund_name: str
    total_amount: Decimal
    duration: int
    start_date: date | None
    payment_schedule: str
    joined_at: datetime | None
    total_paid: Decimal
    pending_balance: Decimal
    progress: Decimal
    overdue_months: int
    next_due_month: str
    next_due_date: date | None
    current_period: CurrentPeriodBalance


@dataclass
class UserSummary:
    """Totals across every fund a member joined."""

    user_id: int
    funds_joined: int
    total_paid: Decimal
    pending_balance: Decimal
    funds: list[EnrollmentSummary] = field(default_factory=list)


@dataclass
class MemberTracking:
    user_id: int
    user_name: str
    payment_schedule: str
    tracking: TrackingResult


@dataclass
class AdminStats:
    """Organisation-wide collection figures."""

    total_users: int
    total_funds: int
    total_collected: Decimal
    total_pending: Decimal
    daily_collections: list[tuple[date, Decimal]]
    fund_member_counts: dict[int, int]


def next_due_date(schedule: str, due_month: date, now: date) -> date | None:
    """Next due date for a schedule.

    monthly: the 5th of the next unpaid month; weekly: the coming Sunday
    (today if it is Sunday); daily: None, every day is a due date.
    """
    schedule = (schedule or PaymentSchedule.MONTHLY.value).lower()
    if schedule == PaymentSchedule.MONTHLY.value:
        return due_month.replace(day=MONTHLY_DUE_DAY)
    if schedule == PaymentSchedule.WEEKLY.value:
        days_until_sunday = (6 - now.weekday()) % 7
        return now + timedelta(days=days_until_sunday)
    return None


class SummaryService:
    """Read-only reporting over funds, enrollments and payments."""

    def __init__(self, db: Session, policy: OutOfWindowPolicy | None = None):
        self.db = db
        self.balances = BalanceService(db, policy=policy)
        self.policy = self.balances.policy

    def _summarize(self, fund: Fund, enrollment: Enrollment, payments: list[Payment], today: date) -> EnrollmentSummary:
        totals = ledger.compute_enrollment_totals(fund, payments, now=today, policy=self.policy)
        progress = min(Decimal("100"), totals.total_paid / fund.total_amount * 100)
        progress = progress.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

        # Whole months already covered by cumulative payments
        months_covered = math.floor(
            Fraction(totals.total_paid) * fund.duration / Fraction(to_decimal(fund.total_amount))
        )
        due_month = ledger.resolve_start_date(fund, today) + relativedelta(months=months_covered)

        return EnrollmentSummary(
            fund_id=fund.id,
            fund_name=fund.name,
            total_amount=fund.total_amount,
            duration=fund.duration,
            start_date=fund.start_date,
            payment_schedule=enrollment.payment_schedule,
            joined_at=enrollment.joined_at,
            total_paid=totals.total_paid,
            pending_balance=totals.pending_balance,
            progress=progress,
            overdue_months=totals.overdue_months,
            next_due_month=format_month(due_month),
            next_due_date=next_due_date(enrollment.payment_schedule, due_month, today),
            current_period=ledger.current_period_balance(fund, enrollment, payments, now=today),
        )

    def enrollment_summary(self, user_id: int, fund_id: int, now: date | datetime | None = None) -> EnrollmentSummary:
        """Dashboard entry for one enrollment.

        Raises:
            FundNotFoundError: If the fund does not exist
            EnrollmentNotFoundError: If the user is not enrolled
        """
        today = ledger.as_date(now)
        fund = self.balances.get_fund(fund_id)
        enrollment = self.balances.get_enrollment(user_id, fund_id)
        payments = self.balances.get_payments(user_id, fund_id)
        return self._summarize(fund, enrollment, payments, today)

    def user_summary(self, user_id: int, now: date | datetime | None = None) -> UserSummary:
        """Dashboard totals for a member across all joined funds.

        ``pending_balance`` is ``max(0, sum of fund totals - total paid)``.
        """
        today = ledger.as_date(now)
        enrollments = (
            self.db.query(Enrollment)
            .filter(Enrollment.user_id == user_id)
            .order_by(Enrollment.fund_id.asc())
            .all()
        )

        funds = []
        for enrollment in enrollments:
            payments = self.balances.get_payments(user_id, enrollment.fund_id)
            funds.append(self._summarize(enrollment.fund, enrollment, payments, today))

        total_paid = sum((f.total_paid for f in funds), Decimal("0"))
        fund_value = sum((f.total_amount for f in funds), Decimal("0"))

        return UserSummary(
            user_id=user_id,
            funds_joined=len(enrollments),
            total_paid=total_paid,
            pending_balance=max(Decimal("0"), fund_value - total_paid),
            funds=funds,
        )

    def fund_tracking(self, fund_id: int, now: date | datetime | None = None) -> list[MemberTracking]:
        """Month-by-month ledger of every member of a fund.

        Raises:
            FundNotFoundError: If the fund does not exist
        """
        fund = self.db.query(Fund).filter(Fund.id == fund_id).first()
        if not fund:
            raise FundNotFoundError(fund_id)

        rows = (
            self.db.query(Enrollment, User)
            .join(User, Enrollment.user_id == User.id)
            .filter(Enrollment.fund_id == fund_id)
            .order_by(User.name.asc())
            .all()
        )

        result = []
        for enrollment, user in rows:
            payments = self.balances.get_payments(user.id, fund_id)
            result.append(
                MemberTracking(
                    user_id=user.id,
                    user_name=user.name,
                    payment_schedule=enrollment.payment_schedule,
                    tracking=ledger.compute_tracking(fund, payments, now=now),
                )
            )

        logger.debug("Built tracking for fund %s: %d members", fund_id, len(result))
        return result

    def admin_stats(self, days: int = 7) -> AdminStats:
        """Collection totals and the last ``days`` days with payments."""
        total_users = self.db.query(func.count(User.id)).filter(User.role == UserRole.USER.value).scalar()
        total_funds = self.db.query(func.count(Fund.id)).scalar()

        collected = sum(
            (amount for (amount,) in self.db.query(Payment.amount).all()),
            Decimal("0"),
        )
        pending = sum(
            (balance for (balance,) in self.db.query(Enrollment.pending_balance).all()),
            Decimal("0"),
        )

        per_day: dict[date, Decimal] = {}
        for paid_on, amount in self.db.query(Payment.payment_date, Payment.amount).all():
            per_day[paid_on] = per_day.get(paid_on, Decimal("0")) + amount
        daily = sorted(per_day.items(), reverse=True)[:days]

        member_counts = dict(
            self.db.query(Fund.id, func.count(Enrollment.id))
            .outerjoin(Enrollment, Enrollment.fund_id == Fund.id)
            .group_by(Fund.id)
            .all()
        )

        return AdminStats(
            total_users=total_users or 0,
            total_funds=total_funds or 0,
            total_collected=collected,
            total_pending=pending,
            daily_collections=daily,
            fund_member_counts=member_counts,
        )


__all__ = [
    "SummaryService",
    "EnrollmentSummary",
    "UserSummary",
    "MemberTracking",
    "AdminStats",
    "next_due_date",
]
