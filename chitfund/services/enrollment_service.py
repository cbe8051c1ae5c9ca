"""Enrollment service: members joining funds.

A new enrollment starts with nothing paid and the fund's whole total pending.
Unless the member picks another schedule, it uses the fund's schedule label.
"""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from chitfund.models.enrollment import Enrollment
from chitfund.models.fund import Fund, FundStatus, PaymentSchedule
from chitfund.models.user import User
from chitfund.services.audit_service import AuditService
from chitfund.services.errors import (
    AlreadyEnrolledError,
    FundClosedError,
    FundNotFoundError,
    PaymentValidationError,
    UserNotFoundError,
)
from chitfund.services.parsers import to_decimal

logger = logging.getLogger(__name__)


class EnrollmentService:
    """Create and look up fund memberships."""

    def __init__(self, db: Session):
        self.db = db

    def get_enrollment(self, user_id: int, fund_id: int) -> Optional[Enrollment]:
        return (
            self.db.query(Enrollment)
            .filter(Enrollment.user_id == user_id, Enrollment.fund_id == fund_id)
            .first()
        )

    def list_members(self, fund_id: int) -> list[Enrollment]:
        """Enrollments of a fund in joining order."""
        return (
            self.db.query(Enrollment)
            .filter(Enrollment.fund_id == fund_id)
            .order_by(Enrollment.joined_at.asc(), Enrollment.id.asc())
            .all()
        )

    def enroll(
        self,
        user_id: int,
        fund_id: int,
        payment_schedule: str | None = None,
        actor_id: int | None = None,
    ) -> Enrollment:
        """Enroll a member in an active fund.

        Args:
            user_id: Member joining the fund
            fund_id: Fund being joined
            payment_schedule: daily, weekly or monthly (default: the fund's type)
            actor_id: User performing the enrollment, for the audit trail

        Returns:
            The committed Enrollment with ``pending_balance`` equal to the fund total

        Raises:
            UserNotFoundError: If the user does not exist
            FundNotFoundError: If the fund does not exist
            FundClosedError: If the fund is not active
            AlreadyEnrolledError: If the user already belongs to the fund
            PaymentValidationError: If the schedule label is unknown
        """
        if not self.db.query(User).filter(User.id == user_id).first():
            raise UserNotFoundError(user_id)

        fund = self.db.query(Fund).filter(Fund.id == fund_id).first()
        if not fund:
            raise FundNotFoundError(fund_id)
        if fund.status != FundStatus.ACTIVE.value:
            raise FundClosedError(fund_id)

        if self.get_enrollment(user_id, fund_id):
            logger.info("User %s already enrolled in fund %s", user_id, fund_id)
            raise AlreadyEnrolledError(user_id, fund_id)

        schedule = (payment_schedule or fund.type or PaymentSchedule.MONTHLY.value).lower()
        if schedule not in {s.value for s in PaymentSchedule}:
            raise PaymentValidationError(f"Unknown payment schedule '{payment_schedule}'")

        enrollment = Enrollment(
            user_id=user_id,
            fund_id=fund_id,
            total_paid=Decimal("0"),
            pending_balance=to_decimal(fund.total_amount),
            payment_schedule=schedule,
        )
        self.db.add(enrollment)
        try:
            self.db.flush()
        except IntegrityError as e:
            # unique (user_id, fund_id) index, hit by a concurrent enrollment
            self.db.rollback()
            raise AlreadyEnrolledError(user_id, fund_id) from e

        AuditService.enrollment_created(self.db, enrollment, actor_id)
        self.db.commit()

        logger.info(
            "Enrolled user %s in fund %s (schedule=%s, pending_balance=%s)",
            user_id,
            fund_id,
            schedule,
            enrollment.pending_balance,
        )
        return enrollment


__all__ = ["EnrollmentService"]
