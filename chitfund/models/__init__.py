"""ORM models for funds, members, enrollments, payments and the audit trail."""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseModel:
    """Surrogate key plus creation and modification times, shared by every table."""

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


# Model modules import Base from here, so they are registered last
from chitfund.models.audit_log import AuditAction, AuditLog  # noqa: E402
from chitfund.models.enrollment import Enrollment  # noqa: E402
from chitfund.models.fund import Fund, FundStatus, PaymentSchedule  # noqa: E402
from chitfund.models.payment import Payment  # noqa: E402
from chitfund.models.user import User, UserRole  # noqa: E402

__all__ = [
    "Base",
    "BaseModel",
    "utcnow",
    "AuditAction",
    "AuditLog",
    "Enrollment",
    "Fund",
    "FundStatus",
    "PaymentSchedule",
    "Payment",
    "User",
    "UserRole",
]
