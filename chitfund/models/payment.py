"""Payment ORM model for member contributions."""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from chitfund.models import Base, BaseModel


class Payment(Base, BaseModel):
    """Model representing one contribution by a member to a fund.

    ``payment_month`` (``YYYY-MM``) is the key used to allocate the amount into
    a monthly bucket; ``payment_date`` only records when the money arrived.
    Payments are never edited, only deleted.
    """

    __tablename__ = "payments"

    # Foreign keys
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
        comment="Member who made the payment",
    )
    fund_id: Mapped[int] = mapped_column(
        ForeignKey("funds.id"),
        nullable=False,
        index=True,
        comment="Fund receiving the payment",
    )

    # Payment details
    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Contribution amount",
    )
    penalty: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Late fee collected with the payment (not counted toward the fund)",
    )
    payment_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        index=True,
        comment="Date the payment was made",
    )
    payment_month: Mapped[str] = mapped_column(
        String(7),
        nullable=False,
        comment="Bucket label YYYY-MM the payment is allocated to",
    )
    payment_schedule: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="monthly",
        comment="Schedule the member used for this month: daily, weekly or monthly",
    )
    mode: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
        comment="Payment channel (Cash, UPI, Bank Transfer)",
    )
    notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Optional payment notes",
    )

    # Relationships
    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="payments",
        foreign_keys=[user_id],
    )
    fund: Mapped["Fund"] = relationship(  # noqa: F821
        "Fund",
        back_populates="payments",
        foreign_keys=[fund_id],
    )

    # Indexes for common queries
    __table_args__ = (
        Index("idx_payment_user_fund", "user_id", "fund_id"),
        Index("idx_payment_user_fund_month", "user_id", "fund_id", "payment_month"),
    )

    def __repr__(self) -> str:
        return (
            f"<Payment(id={self.id}, user_id={self.user_id}, fund_id={self.fund_id}, "
            f"amount={self.amount}, payment_month={self.payment_month})>"
        )


__all__ = ["Payment"]
