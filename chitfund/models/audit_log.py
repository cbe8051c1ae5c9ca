"""Audit trail of payment and enrollment changes."""

from enum import Enum
from typing import Any

from sqlalchemy import JSON, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from chitfund.models import Base, BaseModel


class AuditAction(str, Enum):
    CREATE = "create"
    DELETE = "delete"
    SYNC = "sync"


class AuditLog(Base, BaseModel):
    """One recorded change.

    ``entity_type`` is ``"payment"`` or ``"enrollment"``. ``changes`` holds a
    JSON snapshot with money rendered as strings, e.g.
    ``{"amount": "100.00", "payment_month": "2026-01"}``.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (Index("idx_audit_entity", "entity_type", "entity_id"),)

    entity_type: Mapped[str] = mapped_column(String(32), nullable=False)
    entity_id: Mapped[int] = mapped_column(nullable=False)
    action: Mapped[str] = mapped_column(String(16), nullable=False)
    # None when the change was made by the system rather than a user
    actor_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    changes: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<AuditLog({self.entity_type}#{self.entity_id} {self.action} by {self.actor_id})>"


__all__ = ["AuditAction", "AuditLog"]
