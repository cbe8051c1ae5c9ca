"""Integration tests for recording and deleting payments."""

from datetime import date
from decimal import Decimal

import pytest

from chitfund.models import AuditLog, Enrollment, User
from chitfund.services.errors import (
    EnrollmentNotFoundError,
    FundNotFoundError,
    PaymentLimitError,
    PaymentNotFoundError,
    PaymentValidationError,
    ScheduleMismatchError,
)
from chitfund.services.payment_service import PaymentService, payment_limit


class TestPaymentLimit:
    """Test per-month payment limits by schedule."""

    def test_monthly(self):
        assert payment_limit("monthly", "2026-02") == 1

    def test_weekly(self):
        assert payment_limit("weekly", "2026-02") == 4
        assert payment_limit("Weekly", "2026-03") == 5

    def test_daily(self):
        assert payment_limit("daily", "2024-02") == 29

    def test_unknown_schedule(self):
        with pytest.raises(PaymentValidationError):
            payment_limit("fortnightly", "2026-02")


class TestRecordPayment:
    """Test payment recording and the follow-up sync."""

    def test_records_payment_and_syncs(self, db_session, member, fund, enrollment):
        service = PaymentService(db_session)

        payment, result = service.record_payment(
            member.id, fund.id, "100", "2026-01-15", mode="cash", now=date(2026, 3, 10)
        )

        assert payment.id is not None
        assert payment.payment_month == "2026-01"
        assert payment.payment_schedule == "monthly"
        assert payment.amount == Decimal("100")
        assert result.total_paid == Decimal("100")
        assert result.pending_balance == Decimal("900")
        assert result.overdue_months == 2

        stored = db_session.query(Enrollment).filter(Enrollment.id == enrollment.id).one()
        assert stored.total_paid == Decimal("100.00")

    def test_explicit_month_overrides_date(self, db_session, member, fund, enrollment):
        payment, _ = PaymentService(db_session).record_payment(
            member.id, fund.id, 100, date(2026, 2, 2), payment_month="2026-01", now=date(2026, 2, 2)
        )

        assert payment.payment_month == "2026-01"
        assert payment.payment_date == date(2026, 2, 2)

    def test_writes_audit_entries(self, db_session, member, fund, enrollment):
        payment, _ = PaymentService(db_session).record_payment(
            member.id, fund.id, "100", "2026-01-15", actor_id=member.id
        )

        actions = {(a.entity_type, a.action) for a in db_session.query(AuditLog).all()}
        assert ("payment", "create") in actions
        assert ("enrollment", "sync") in actions
        create = db_session.query(AuditLog).filter(AuditLog.action == "create").one()
        assert create.entity_id == payment.id
        assert create.changes["payment_month"] == "2026-01"

    def test_schedule_mismatch_rejected(self, db_session, member, fund, enrollment):
        service = PaymentService(db_session)
        service.record_payment(member.id, fund.id, "50", "2026-01-03", payment_schedule="weekly")

        with pytest.raises(ScheduleMismatchError, match="weekly"):
            service.record_payment(member.id, fund.id, "50", "2026-01-20", payment_schedule="monthly")

    def test_monthly_limit(self, db_session, member, fund, enrollment):
        service = PaymentService(db_session)
        service.record_payment(member.id, fund.id, "100", "2026-01-05")

        with pytest.raises(PaymentLimitError, match="allows 1"):
            service.record_payment(member.id, fund.id, "100", "2026-01-25")

    def test_weekly_limit(self, db_session, member, fund, enrollment):
        service = PaymentService(db_session)
        for day in (1, 8, 15, 22):
            service.record_payment(member.id, fund.id, "25", date(2026, 2, day), payment_schedule="weekly")

        with pytest.raises(PaymentLimitError):
            service.record_payment(member.id, fund.id, "25", date(2026, 2, 28), payment_schedule="weekly")

    def test_other_month_unaffected_by_limit(self, db_session, member, fund, enrollment):
        service = PaymentService(db_session)
        service.record_payment(member.id, fund.id, "100", "2026-01-05")

        _, result = service.record_payment(member.id, fund.id, "100", "2026-02-05", now=date(2026, 2, 10))

        assert result.total_paid == Decimal("200")
        assert result.overdue_months == 0

    def test_negative_amount_rejected(self, db_session, member, fund, enrollment):
        with pytest.raises(PaymentValidationError, match="must not be negative"):
            PaymentService(db_session).record_payment(member.id, fund.id, "-10", "2026-01-05")

    def test_unparseable_amount_rejected(self, db_session, member, fund, enrollment):
        with pytest.raises(PaymentValidationError, match="Cannot parse amount"):
            PaymentService(db_session).record_payment(member.id, fund.id, "ten", "2026-01-05")

    def test_invalid_month_label_rejected(self, db_session, member, fund, enrollment):
        with pytest.raises(PaymentValidationError, match="Invalid payment month"):
            PaymentService(db_session).record_payment(
                member.id, fund.id, "100", "2026-01-05", payment_month="2026-13"
            )

    def test_missing_date_rejected(self, db_session, member, fund, enrollment):
        with pytest.raises(PaymentValidationError, match="payment_date is required"):
            PaymentService(db_session).record_payment(member.id, fund.id, "100", None)

    def test_unknown_schedule_rejected(self, db_session, member, fund, enrollment):
        with pytest.raises(PaymentValidationError, match="Unknown payment schedule"):
            PaymentService(db_session).record_payment(
                member.id, fund.id, "100", "2026-01-05", payment_schedule="hourly"
            )

    def test_unknown_fund(self, db_session, member):
        with pytest.raises(FundNotFoundError):
            PaymentService(db_session).record_payment(member.id, 999, "100", "2026-01-05")

    def test_member_not_enrolled(self, db_session, fund, enrollment):
        outsider = User(name="Vikram Nair", role="user")
        db_session.add(outsider)
        db_session.commit()

        with pytest.raises(EnrollmentNotFoundError):
            PaymentService(db_session).record_payment(outsider.id, fund.id, "100", "2026-01-05")


class TestDeletePayment:
    """Test payment deletion."""

    def test_delete_resyncs(self, db_session, member, fund, enrollment):
        service = PaymentService(db_session)
        first, _ = service.record_payment(member.id, fund.id, "100", "2026-01-05")
        service.record_payment(member.id, fund.id, "150", "2026-02-05")

        result = service.delete_payment(first.id, actor_id=member.id, now=date(2026, 2, 10))

        assert result.total_paid == Decimal("150")
        assert result.pending_balance == Decimal("850")
        assert service.get_payment(first.id) is None
        stored = db_session.query(Enrollment).filter(Enrollment.id == enrollment.id).one()
        assert stored.total_paid == Decimal("150.00")

        delete = db_session.query(AuditLog).filter(AuditLog.action == "delete").one()
        assert delete.entity_id == first.id
        assert delete.changes["amount"] == "100.00"

    def test_delete_frees_month_slot(self, db_session, member, fund, enrollment):
        service = PaymentService(db_session)
        payment, _ = service.record_payment(member.id, fund.id, "100", "2026-01-05")
        service.delete_payment(payment.id)

        replacement, _ = service.record_payment(member.id, fund.id, "100", "2026-01-06", payment_schedule="weekly")

        assert replacement.payment_schedule == "weekly"

    def test_delete_unknown_payment(self, db_session):
        with pytest.raises(PaymentNotFoundError, match="Payment 404 not found"):
            PaymentService(db_session).delete_payment(404)


class TestPaymentQueries:
    """Test payment lookups."""

    def test_schedule_for_month(self, db_session, member, fund, enrollment):
        service = PaymentService(db_session)
        assert service.get_schedule_for_month(member.id, fund.id, "2026-01") is None

        service.record_payment(member.id, fund.id, "50", "2026-01-04", payment_schedule="weekly")

        assert service.get_schedule_for_month(member.id, fund.id, "2026-01") == "weekly"
        assert service.get_schedule_for_month(member.id, fund.id, "2026-02") is None

    def test_list_payments_newest_first(self, db_session, member, fund, enrollment):
        service = PaymentService(db_session)
        service.record_payment(member.id, fund.id, "100", "2026-01-05")
        service.record_payment(member.id, fund.id, "100", "2026-03-05")
        service.record_payment(member.id, fund.id, "100", "2026-02-05")

        payments = service.list_payments(user_id=member.id, fund_id=fund.id)

        assert [p.payment_month for p in payments] == ["2026-03", "2026-02", "2026-01"]
        assert service.list_payments(fund_id=999) == []
