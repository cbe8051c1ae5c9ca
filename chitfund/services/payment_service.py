"""Payment service for recording and deleting member contributions.

Provides methods for:
- Recording a payment (with month auto-detection and schedule rules)
- Deleting a payment
- Looking up the schedule already used for a month

Every insert or delete is followed by a balance sync of the owning enrollment
inside the same transaction, so the cached totals never outlive a commit.
"""

import logging
import math
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from chitfund.models.fund import PaymentSchedule
from chitfund.models.payment import Payment
from chitfund.services.audit_service import AuditService, payment_snapshot
from chitfund.services.balance_service import BalanceService
from chitfund.services.errors import (
    PaymentLimitError,
    PaymentNotFoundError,
    PaymentValidationError,
    ScheduleMismatchError,
)
from chitfund.services.ledger import OutOfWindowPolicy, SyncResult, days_in_month
from chitfund.services.parsers import (
    format_month,
    month_label_to_date,
    parse_date_value,
    parse_month_label,
    to_decimal,
)

logger = logging.getLogger(__name__)


def payment_limit(schedule: str, payment_month: str) -> int:
    """Maximum number of payments allowed in one month for a schedule.

    monthly: 1, weekly: ceil(days / 7), daily: one per day.
    """
    first_day = month_label_to_date(payment_month)
    days = days_in_month(first_day.year, first_day.month)

    schedule = schedule.lower()
    if schedule == PaymentSchedule.MONTHLY.value:
        return 1
    if schedule == PaymentSchedule.WEEKLY.value:
        return math.ceil(days / 7)
    if schedule == PaymentSchedule.DAILY.value:
        return days
    raise PaymentValidationError(f"Unknown payment schedule '{schedule}'")


class PaymentService:
    """Core payment recording operations."""

    def __init__(self, db: Session, policy: OutOfWindowPolicy | None = None):
        """Initialize payment service.

        Args:
            db: SQLAlchemy database session
            policy: Out-of-window policy passed to the balance sync
        """
        self.db = db
        self.balances = BalanceService(db, policy=policy)

    def get_payment(self, payment_id: int) -> Optional[Payment]:
        return self.db.query(Payment).filter(Payment.id == payment_id).first()

    def list_payments(self, user_id: int | None = None, fund_id: int | None = None) -> list[Payment]:
        """List payments, newest payment date first.

        Args:
            user_id: Only this member's payments (all members when None)
            fund_id: Only this fund's payments (all funds when None)
        """
        query = self.db.query(Payment)
        if user_id is not None:
            query = query.filter(Payment.user_id == user_id)
        if fund_id is not None:
            query = query.filter(Payment.fund_id == fund_id)
        return query.order_by(Payment.payment_date.desc(), Payment.id.desc()).all()

    def get_schedule_for_month(self, user_id: int, fund_id: int, payment_month: str) -> Optional[str]:
        """Return the schedule already used for a month, or None if it has no payments."""
        existing = (
            self.db.query(Payment)
            .filter(
                Payment.user_id == user_id,
                Payment.fund_id == fund_id,
                Payment.payment_month == parse_month_label(payment_month),
            )
            .order_by(Payment.id.asc())
            .first()
        )
        return existing.payment_schedule if existing else None

    def _check_month_rules(self, user_id: int, fund_id: int, payment_month: str, schedule: str) -> None:
        existing = (
            self.db.query(Payment.payment_schedule)
            .filter(
                Payment.user_id == user_id,
                Payment.fund_id == fund_id,
                Payment.payment_month == payment_month,
            )
            .all()
        )
        if not existing:
            return

        existing_schedule = existing[0].payment_schedule.lower()
        logger.debug(
            "Found %d payments for user %s, fund %s, month %s (schedule %s)",
            len(existing),
            user_id,
            fund_id,
            payment_month,
            existing_schedule,
        )

        if existing_schedule != schedule:
            logger.warning(
                "Schedule mismatch for user %s, fund %s, month %s: %s vs %s",
                user_id,
                fund_id,
                payment_month,
                existing_schedule,
                schedule,
            )
            raise ScheduleMismatchError(
                f"Payments for {payment_month} already use the '{existing_schedule}' schedule; "
                f"cannot switch to '{schedule}' within the same month"
            )

        limit = payment_limit(existing_schedule, payment_month)
        if len(existing) >= limit:
            raise PaymentLimitError(
                f"Payment limit reached for {payment_month}: {len(existing)} payments recorded, "
                f"'{existing_schedule}' schedule allows {limit}"
            )

    def record_payment(
        self,
        user_id: int,
        fund_id: int,
        amount: Decimal | int | str,
        payment_date: date | datetime | str,
        payment_month: str | None = None,
        payment_schedule: str | None = None,
        mode: str | None = None,
        notes: str | None = None,
        penalty: Decimal | int | str = 0,
        actor_id: int | None = None,
        now: date | datetime | None = None,
    ) -> tuple[Payment, SyncResult]:
        """Record a payment and resync the enrollment.

        Args:
            user_id: Member making the payment
            fund_id: Fund being paid into
            amount: Contribution amount (zero or positive)
            payment_date: When the money was received
            payment_month: Bucket label YYYY-MM (default: month of payment_date)
            payment_schedule: daily, weekly or monthly (default: monthly)
            mode: Payment channel
            notes: Free-form notes
            penalty: Late fee collected alongside the payment
            actor_id: User recording the payment, for the audit trail
            now: Reference date for the overdue count

        Returns:
            Tuple of the created Payment and the enrollment's new SyncResult

        Raises:
            FundNotFoundError: If the fund does not exist
            EnrollmentNotFoundError: If the user is not enrolled in the fund
            PaymentValidationError: If amount, date or month label is invalid
            ScheduleMismatchError: If the month already uses another schedule
            PaymentLimitError: If the month already holds the maximum payments
            SyncError: If writing the recalculated totals fails
        """
        fund = self.balances.get_fund(fund_id)
        self.balances.get_enrollment(user_id, fund_id)

        try:
            value = to_decimal(amount)
            penalty_value = to_decimal(penalty)
            paid_on = parse_date_value(payment_date)
            month = parse_month_label(payment_month) if payment_month else None
        except ValueError as e:
            raise PaymentValidationError(str(e)) from e

        if value < 0:
            raise PaymentValidationError(f"Payment amount must not be negative, got {value}")
        if penalty_value < 0:
            raise PaymentValidationError(f"Penalty must not be negative, got {penalty_value}")
        if paid_on is None:
            raise PaymentValidationError("payment_date is required")

        month = month or format_month(paid_on)
        schedule = (payment_schedule or PaymentSchedule.MONTHLY.value).lower()
        if schedule not in {s.value for s in PaymentSchedule}:
            raise PaymentValidationError(f"Unknown payment schedule '{payment_schedule}'")

        self._check_month_rules(user_id, fund_id, month, schedule)

        payment = Payment(
            user_id=user_id,
            fund_id=fund.id,
            amount=value,
            penalty=penalty_value,
            payment_date=paid_on,
            payment_month=month,
            payment_schedule=schedule,
            mode=mode,
            notes=notes,
        )
        self.db.add(payment)
        self.db.flush()

        AuditService.payment_created(self.db, payment, actor_id)

        result = self.balances.sync_enrollment(user_id, fund_id, now=now, actor_id=actor_id)
        logger.info(
            "Recorded payment %s: user=%s, fund=%s, amount=%s, month=%s",
            payment.id,
            user_id,
            fund_id,
            value,
            month,
        )
        return payment, result

    def delete_payment(
        self,
        payment_id: int,
        actor_id: int | None = None,
        now: date | datetime | None = None,
    ) -> SyncResult:
        """Delete a payment and resync its enrollment.

        Raises:
            PaymentNotFoundError: If the payment does not exist
            SyncError: If writing the recalculated totals fails
        """
        payment = self.get_payment(payment_id)
        if not payment:
            raise PaymentNotFoundError(payment_id)

        user_id, fund_id = payment.user_id, payment.fund_id
        snapshot = payment_snapshot(payment)

        self.db.delete(payment)
        self.db.flush()
        AuditService.payment_deleted(self.db, payment_id, snapshot, actor_id)

        result = self.balances.sync_enrollment(user_id, fund_id, now=now, actor_id=actor_id)
        logger.info("Deleted payment %s (user=%s, fund=%s)", payment_id, user_id, fund_id)
        return result


__all__ = ["PaymentService", "payment_limit"]
