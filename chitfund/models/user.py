"""User ORM model for fund members and administrators."""

from enum import Enum

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from chitfund.models import Base, BaseModel


class UserRole(str, Enum):
    """Access role of a user."""

    ADMIN = "admin"
    USER = "user"


class User(Base, BaseModel):
    """A person who can enroll in funds and record contributions."""

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Full name of the member",
    )
    email: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        unique=True,
        comment="Contact e-mail, unique when present",
    )
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=UserRole.USER.value,
        comment="Access role: 'admin' or 'user'",
    )

    # Relationships
    enrollments: Mapped[list["Enrollment"]] = relationship(  # noqa: F821
        "Enrollment",
        back_populates="user",
        cascade="all, delete-orphan",
    )
    payments: Mapped[list["Payment"]] = relationship(  # noqa: F821
        "Payment",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    __table_args__ = (Index("idx_user_role", "role"),)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def __repr__(self) -> str:
        return f"<User(id={self.id}, name={self.name!r}, role={self.role})>"


__all__ = ["User", "UserRole"]
