"""Integration tests for enrollment balance sync against a real database."""

from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from chitfund.models import AuditLog, Enrollment, Payment
from chitfund.services.balance_service import BalanceService
from chitfund.services.config import get_settings
from chitfund.services.errors import EnrollmentNotFoundError, FundNotFoundError, SyncError
from chitfund.services.ledger import BucketStatus, OutOfWindowPolicy


def add_payment(db_session, enrollment, amount, month, paid_on=None):
    payment = Payment(
        user_id=enrollment.user_id,
        fund_id=enrollment.fund_id,
        amount=Decimal(amount),
        payment_date=paid_on or date.fromisoformat(f"{month}-05"),
        payment_month=month,
        payment_schedule="monthly",
    )
    db_session.add(payment)
    db_session.commit()
    return payment


class TestSyncEnrollment:
    """Test write-back of cached totals."""

    def test_sync_writes_totals(self, db_session, enrollment):
        add_payment(db_session, enrollment, "100", "2026-01")
        add_payment(db_session, enrollment, "150", "2026-02")

        service = BalanceService(db_session)
        result = service.sync_enrollment(enrollment.user_id, enrollment.fund_id, now=date(2026, 3, 10))

        assert result.total_paid == Decimal("250")
        assert result.pending_balance == Decimal("750")
        assert result.overdue_months == 1

        stored = db_session.query(Enrollment).filter(Enrollment.id == enrollment.id).one()
        assert stored.total_paid == Decimal("250.00")
        assert stored.pending_balance == Decimal("750.00")

    def test_sync_without_payments(self, db_session, enrollment):
        result = BalanceService(db_session).sync_enrollment(
            enrollment.user_id, enrollment.fund_id, now=date(2026, 1, 15)
        )

        assert result.total_paid == Decimal("0")
        assert result.pending_balance == Decimal("1000")
        assert result.overdue_months == 1

    def test_sync_is_idempotent(self, db_session, enrollment):
        add_payment(db_session, enrollment, "300", "2026-01")
        service = BalanceService(db_session)

        first = service.sync_enrollment(enrollment.user_id, enrollment.fund_id, now=date(2026, 2, 1))
        second = service.sync_enrollment(enrollment.user_id, enrollment.fund_id, now=date(2026, 2, 1))

        assert first == second

    def test_overpayment_clamps_pending(self, db_session, enrollment):
        add_payment(db_session, enrollment, "1200", "2026-01")

        result = BalanceService(db_session).sync_enrollment(
            enrollment.user_id, enrollment.fund_id, now=date(2026, 2, 1)
        )

        assert result.total_paid == Decimal("1200")
        assert result.pending_balance == Decimal("0")
        assert result.overdue_months == 0

    def test_sync_records_audit_entry(self, db_session, member, enrollment):
        add_payment(db_session, enrollment, "100", "2026-01")

        BalanceService(db_session).sync_enrollment(
            enrollment.user_id, enrollment.fund_id, now=date(2026, 1, 20), actor_id=member.id
        )

        audit = db_session.query(AuditLog).filter(AuditLog.entity_type == "enrollment").one()
        assert audit.entity_id == enrollment.id
        assert audit.action == "sync"
        assert audit.actor_id == member.id
        assert audit.changes == {"total_paid": "100", "pending_balance": "900.00", "overdue_months": 0}

    def test_out_of_window_payment_policy(self, db_session, enrollment):
        add_payment(db_session, enrollment, "100", "2026-01")
        add_payment(db_session, enrollment, "500", "2025-12")

        included = BalanceService(db_session).sync_enrollment(
            enrollment.user_id, enrollment.fund_id, now=date(2026, 1, 20)
        )
        excluded = BalanceService(
            db_session, policy=OutOfWindowPolicy.EXCLUDE_FROM_TOTALS
        ).sync_enrollment(enrollment.user_id, enrollment.fund_id, now=date(2026, 1, 20))

        assert included.total_paid == Decimal("600")
        assert excluded.total_paid == Decimal("100")


class TestSyncErrors:
    """Test failure paths of the sync."""

    def test_missing_fund(self, db_session, member):
        with pytest.raises(FundNotFoundError, match="Fund 999 not found"):
            BalanceService(db_session).sync_enrollment(member.id, 999)

    def test_missing_enrollment(self, db_session, member, fund):
        with pytest.raises(EnrollmentNotFoundError) as exc_info:
            BalanceService(db_session).sync_enrollment(member.id, fund.id)

        assert exc_info.value.user_id == member.id
        assert exc_info.value.fund_id == fund.id

    def test_commit_failure_raises_sync_error(self, db_session, enrollment):
        add_payment(db_session, enrollment, "100", "2026-01")
        enrollment_id = enrollment.id
        user_id, fund_id = enrollment.user_id, enrollment.fund_id

        with patch.object(db_session, "commit", side_effect=SQLAlchemyError("disk full")):
            with pytest.raises(SyncError) as exc_info:
                BalanceService(db_session).sync_enrollment(user_id, fund_id, now=date(2026, 1, 20))

        assert isinstance(exc_info.value.__cause__, SQLAlchemyError)
        stored = db_session.query(Enrollment).filter(Enrollment.id == enrollment_id).one()
        assert stored.total_paid == Decimal("0")
        assert db_session.query(AuditLog).count() == 0

    def test_sync_error_after_connection_loss(self, db_session, enrollment):
        add_payment(db_session, enrollment, "100", "2026-01")
        user_id, fund_id = enrollment.user_id, enrollment.fund_id
        real_rollback = db_session.rollback

        def rollback_and_lose_connection():
            real_rollback()
            # expired rows can no longer be reloaded from the in-memory database
            db_session.get_bind().dispose()

        with patch.object(db_session, "commit", side_effect=SQLAlchemyError("connection reset")), \
                patch.object(db_session, "rollback", side_effect=rollback_and_lose_connection):
            with pytest.raises(SyncError, match=f"user {user_id} in fund {fund_id}"):
                BalanceService(db_session).sync_enrollment(user_id, fund_id, now=date(2026, 1, 20))


class TestReadViews:
    """Test the read-only views exposed by the balance service."""

    def test_get_tracking(self, db_session, enrollment):
        add_payment(db_session, enrollment, "40", "2026-01")
        add_payment(db_session, enrollment, "160", "2026-02")

        tracking = BalanceService(db_session).get_tracking(
            enrollment.user_id, enrollment.fund_id, now=date(2026, 3, 1)
        )

        assert len(tracking.buckets) == 10
        assert [b.status for b in tracking.buckets[:3]] == [
            BucketStatus.PARTIAL,
            BucketStatus.COMPLETED,
            BucketStatus.PARTIAL,
        ]
        assert all(b.status == BucketStatus.PENDING for b in tracking.buckets[3:])
        assert tracking.buckets[2].carry_in == Decimal("60")
        assert tracking.buckets[2].balance == Decimal("40")

    def test_get_overdue_months(self, db_session, enrollment):
        add_payment(db_session, enrollment, "100", "2026-01")

        overdue = BalanceService(db_session).get_overdue_months(
            enrollment.user_id, enrollment.fund_id, now=date(2026, 4, 2)
        )

        assert overdue == 3

    def test_get_current_period_balance(self, db_session, enrollment):
        add_payment(db_session, enrollment, "30", "2026-03")

        period = BalanceService(db_session).get_current_period_balance(
            enrollment.user_id, enrollment.fund_id, now=date(2026, 3, 12)
        )

        assert period.month == "2026-03"
        assert period.paid == Decimal("30")
        assert period.balance == Decimal("70")
        assert period.status == BucketStatus.PARTIAL
        assert period.recommended_weekly == Decimal("14.00")
        assert period.payment_schedule == "monthly"


class TestConfiguredPolicy:
    """Test the policy default taken from settings."""

    def test_policy_from_environment(self, db_session, monkeypatch):
        monkeypatch.setenv("CHITFUND_OUT_OF_WINDOW_POLICY", "exclude_from_totals")
        get_settings.cache_clear()
        try:
            service = BalanceService(db_session)
        finally:
            get_settings.cache_clear()

        assert service.policy == OutOfWindowPolicy.EXCLUDE_FROM_TOTALS

    def test_explicit_policy_wins(self, db_session):
        service = BalanceService(db_session, policy=OutOfWindowPolicy.EXCLUDE_FROM_TOTALS)

        assert service.policy == OutOfWindowPolicy.EXCLUDE_FROM_TOTALS
