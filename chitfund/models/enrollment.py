"""Enrollment ORM model: one user's membership in one fund."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from chitfund.models import Base, BaseModel, utcnow


class Enrollment(Base, BaseModel):
    """Model representing a member enrolled in a fund.

    ``total_paid`` and ``pending_balance`` are a cache of values derived from
    the member's payments. They are rewritten by the balance service after
    every payment insert or delete and are never authoritative.
    """

    __tablename__ = "user_funds"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
        comment="Enrolled member",
    )
    fund_id: Mapped[int] = mapped_column(
        ForeignKey("funds.id"),
        nullable=False,
        index=True,
        comment="Fund the member joined",
    )

    # Cached aggregates
    total_paid: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Sum of all payment amounts (derived)",
    )
    pending_balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0"),
        comment="max(0, fund.total_amount - total_paid) (derived)",
    )

    payment_schedule: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="monthly",
        comment="Schedule label chosen by the member",
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        comment="When the member joined the fund",
    )

    # Relationships
    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="enrollments",
    )
    fund: Mapped["Fund"] = relationship(  # noqa: F821
        "Fund",
        back_populates="enrollments",
    )

    __table_args__ = (Index("idx_enrollment_user_fund", "user_id", "fund_id", unique=True),)

    def __repr__(self) -> str:
        return (
            f"<Enrollment(id={self.id}, user_id={self.user_id}, fund_id={self.fund_id}, "
            f"total_paid={self.total_paid}, pending_balance={self.pending_balance})>"
        )


__all__ = ["Enrollment"]
