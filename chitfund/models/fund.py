"""Fund ORM model: a fixed-total, fixed-duration group savings pool."""

from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum

from sqlalchemy import Date, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from chitfund.models import Base, BaseModel


class PaymentSchedule(str, Enum):
    """Nominal contribution cadence.

    Informational only: balances are always allocated into monthly buckets.
    """

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class FundStatus(str, Enum):
    """Lifecycle status of a fund."""

    ACTIVE = "active"
    CLOSED = "closed"


class Fund(Base, BaseModel):
    """Model representing a chit fund.

    The per-month obligation of every member is ``total_amount / duration``.
    ``duration`` is always a number of months regardless of ``type``.
    """

    __tablename__ = "funds"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Display name of the fund",
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Amount each member contributes over the whole duration",
    )
    duration: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Number of monthly periods",
    )
    start_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
        comment="First day of the first period",
    )
    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentSchedule.MONTHLY.value,
        comment="Nominal schedule label: daily, weekly or monthly",
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=FundStatus.ACTIVE.value,
        comment="Fund status: active or closed",
    )

    # Relationships
    enrollments: Mapped[list["Enrollment"]] = relationship(  # noqa: F821
        "Enrollment",
        back_populates="fund",
        cascade="all, delete-orphan",
    )
    payments: Mapped[list["Payment"]] = relationship(  # noqa: F821
        "Payment",
        back_populates="fund",
        cascade="all, delete-orphan",
    )

    @validates("duration")
    def _validate_duration(self, key: str, value: int) -> int:
        if value is None or int(value) < 1:
            raise ValueError(f"Fund duration must be at least 1 month, got {value!r}")
        return int(value)

    @validates("total_amount")
    def _validate_total_amount(self, key: str, value: Decimal) -> Decimal:
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, TypeError) as e:
            raise ValueError(f"Fund total_amount must be a number, got {value!r}") from e
        if not amount.is_finite() or amount <= 0:
            raise ValueError(f"Fund total_amount must be positive, got {value!r}")
        return amount

    def __repr__(self) -> str:
        return (
            f"<Fund(id={self.id}, name={self.name!r}, total_amount={self.total_amount}, "
            f"duration={self.duration}, start_date={self.start_date})>"
        )


__all__ = ["Fund", "FundStatus", "PaymentSchedule"]
