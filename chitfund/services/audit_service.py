"""Audit trail writes and lookups.

Entries are added to the caller's session and committed with the change they
describe; nothing here commits.
"""

from typing import Any

from sqlalchemy.orm import Session

from chitfund.models.audit_log import AuditAction, AuditLog
from chitfund.models.enrollment import Enrollment
from chitfund.models.payment import Payment
from chitfund.services.ledger import SyncResult


def payment_snapshot(payment: Payment) -> dict[str, Any]:
    return {
        "user_id": payment.user_id,
        "fund_id": payment.fund_id,
        "amount": str(payment.amount),
        "payment_month": payment.payment_month,
    }


class AuditService:
    """Record who changed which payment or enrollment."""

    @staticmethod
    def log(
        db: Session,
        entity_type: str,
        entity_id: int,
        action: AuditAction | str,
        actor_id: int | None = None,
        changes: dict | None = None,
    ) -> AuditLog:
        """Add an audit entry to the session.

        Args:
            db: Session the entry joins
            entity_type: "payment" or "enrollment"
            entity_id: Primary key of the changed row
            action: create, delete or sync
            actor_id: User behind the change (None for system changes)
            changes: JSON-serialisable snapshot

        Returns:
            The pending AuditLog
        """
        entry = AuditLog(
            entity_type=entity_type,
            entity_id=entity_id,
            action=AuditAction(action).value,
            actor_id=actor_id,
            changes=changes,
        )
        db.add(entry)
        return entry

    @classmethod
    def payment_created(cls, db: Session, payment: Payment, actor_id: int | None = None) -> AuditLog:
        return cls.log(db, "payment", payment.id, AuditAction.CREATE, actor_id, payment_snapshot(payment))

    @classmethod
    def payment_deleted(
        cls, db: Session, payment_id: int, snapshot: dict[str, Any], actor_id: int | None = None
    ) -> AuditLog:
        return cls.log(db, "payment", payment_id, AuditAction.DELETE, actor_id, snapshot)

    @classmethod
    def enrollment_created(cls, db: Session, enrollment: Enrollment, actor_id: int | None = None) -> AuditLog:
        changes = {
            "user_id": enrollment.user_id,
            "fund_id": enrollment.fund_id,
            "payment_schedule": enrollment.payment_schedule,
            "pending_balance": str(enrollment.pending_balance),
        }
        return cls.log(db, "enrollment", enrollment.id, AuditAction.CREATE, actor_id, changes)

    @classmethod
    def enrollment_synced(
        cls, db: Session, enrollment: Enrollment, result: SyncResult, actor_id: int | None = None
    ) -> AuditLog:
        changes = {
            "total_paid": str(result.total_paid),
            "pending_balance": str(result.pending_balance),
            "overdue_months": result.overdue_months,
        }
        return cls.log(db, "enrollment", enrollment.id, AuditAction.SYNC, actor_id, changes)

    @staticmethod
    def history(db: Session, entity_type: str, entity_id: int) -> list[AuditLog]:
        """Entries for one row, oldest first."""
        return (
            db.query(AuditLog)
            .filter(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
            .order_by(AuditLog.id.asc())
            .all()
        )


__all__ = ["AuditService", "payment_snapshot"]
