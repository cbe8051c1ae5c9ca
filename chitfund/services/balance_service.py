"""Balance service: loads enrollment data, runs the ledger engine, writes back totals.

The ledger engine (``chitfund.services.ledger``) is pure. This service is the
storage-facing caller around it:

- load the fund, the enrollment and every payment for one (user, fund) pair
- recompute aggregates from the payments
- write ``total_paid`` and ``pending_balance`` back to the enrollment

It must run after every payment insert or delete. Failures to load records
surface as ``NotFoundError`` subclasses before any computation; failures to
persist surface as ``SyncError``.
"""

import logging
from datetime import date, datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chitfund.models.enrollment import Enrollment
from chitfund.models.fund import Fund
from chitfund.models.payment import Payment
from chitfund.services import ledger
from chitfund.services.audit_service import AuditService
from chitfund.services.config import get_settings
from chitfund.services.errors import EnrollmentNotFoundError, FundNotFoundError, SyncError
from chitfund.services.ledger import (
    CurrentPeriodBalance,
    OutOfWindowPolicy,
    SyncResult,
    TrackingResult,
)

logger = logging.getLogger(__name__)


class BalanceService:
    """Recompute and persist derived balances for enrollments."""

    def __init__(self, db: Session, policy: OutOfWindowPolicy | None = None):
        """Initialize with database session.

        Args:
            db: Session used for loading and write-back
            policy: How payments outside the fund's months count toward totals
                (default: the configured ``out_of_window_policy``)
        """
        self.db = db
        self.policy = policy or get_settings().out_of_window_policy

    def get_fund(self, fund_id: int) -> Fund:
        fund = self.db.query(Fund).filter(Fund.id == fund_id).first()
        if not fund:
            raise FundNotFoundError(fund_id)
        return fund

    def get_enrollment(self, user_id: int, fund_id: int, for_update: bool = False) -> Enrollment:
        query = self.db.query(Enrollment).filter(
            Enrollment.user_id == user_id,
            Enrollment.fund_id == fund_id,
        )
        if for_update:
            query = query.with_for_update()
        enrollment = query.first()
        if not enrollment:
            raise EnrollmentNotFoundError(user_id, fund_id)
        return enrollment

    def get_payments(self, user_id: int, fund_id: int) -> list[Payment]:
        """Get all payments for one enrollment ordered by month."""
        return (
            self.db.query(Payment)
            .filter(Payment.user_id == user_id, Payment.fund_id == fund_id)
            .order_by(Payment.payment_month.asc(), Payment.id.asc())
            .all()
        )

    def sync_enrollment(
        self,
        user_id: int,
        fund_id: int,
        now: date | datetime | None = None,
        commit: bool = True,
        actor_id: int | None = None,
    ) -> SyncResult:
        """Recalculate and persist cached totals for one enrollment.

        Args:
            user_id: Enrolled member
            fund_id: Fund the member joined
            now: Reference date for the overdue count (default: today)
            commit: Commit the transaction; pass False to let the caller
                commit a larger unit of work (e.g. payment insert + sync)
            actor_id: User who triggered the sync, for the audit trail

        Returns:
            SyncResult with total_paid, pending_balance and overdue_months

        Raises:
            FundNotFoundError: If the fund does not exist
            EnrollmentNotFoundError: If the user is not enrolled
            SyncError: If writing the totals back fails
        """
        fund = self.get_fund(fund_id)
        enrollment = self.get_enrollment(user_id, fund_id, for_update=True)
        payments = self.get_payments(user_id, fund_id)

        return self.sync_enrollment_record(
            fund, enrollment, payments, now=now, commit=commit, actor_id=actor_id
        )

    def sync_enrollment_record(
        self,
        fund: Fund,
        enrollment: Enrollment,
        payments: list[Payment],
        now: date | datetime | None = None,
        commit: bool = True,
        actor_id: int | None = None,
    ) -> SyncResult:
        """Recalculate and persist totals for records the caller already loaded."""
        user_id, fund_id = enrollment.user_id, enrollment.fund_id
        result = ledger.sync_enrollment(fund, enrollment, payments, now=now, policy=self.policy)

        try:
            self.db.flush()
            AuditService.enrollment_synced(self.db, enrollment, result, actor_id)
            if commit:
                self.db.commit()
            else:
                self.db.flush()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "Failed to write back balances for user %s, fund %s: %s",
                user_id,
                fund_id,
                e,
            )
            raise SyncError(f"Could not save balances for user {user_id} in fund {fund_id}") from e

        logger.info(
            "Synced enrollment for user %s, fund %s: total_paid=%s, pending_balance=%s, overdue=%d",
            user_id,
            fund_id,
            result.total_paid,
            result.pending_balance,
            result.overdue_months,
        )
        return result

    def get_tracking(self, user_id: int, fund_id: int, now: date | datetime | None = None) -> TrackingResult:
        """Month-by-month ledger for one enrollment."""
        fund = self.get_fund(fund_id)
        self.get_enrollment(user_id, fund_id)
        return ledger.compute_tracking(fund, self.get_payments(user_id, fund_id), now=now)

    def get_overdue_months(self, user_id: int, fund_id: int, now: date | datetime | None = None) -> int:
        fund = self.get_fund(fund_id)
        self.get_enrollment(user_id, fund_id)
        return ledger.overdue_months(
            fund, self.get_payments(user_id, fund_id), now=now, policy=self.policy
        )

    def get_current_period_balance(
        self,
        user_id: int,
        fund_id: int,
        now: date | datetime | None = None,
    ) -> CurrentPeriodBalance:
        """Balance for the current calendar month with suggested installments.

        Raises:
            FundNotFoundError: If the fund does not exist
            EnrollmentNotFoundError: If the user is not enrolled
        """
        fund = self.get_fund(fund_id)
        enrollment = self.get_enrollment(user_id, fund_id)
        payments = self.get_payments(user_id, fund_id)
        return ledger.current_period_balance(fund, enrollment, payments, now=now)


__all__ = ["BalanceService"]
