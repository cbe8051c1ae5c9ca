"""Pytest configuration and shared fixtures."""

from datetime import date
from decimal import Decimal

import pytest

from chitfund.models import Enrollment, Fund, User
from chitfund.services.db import create_session_factory


@pytest.fixture
def db_session():
    """Provide a session on a fresh in-memory database with all tables created."""
    SessionLocal = create_session_factory("sqlite:///:memory:", create_tables=True)
    session = SessionLocal()
    yield session
    session.close()
    SessionLocal.kw["bind"].dispose()


@pytest.fixture
def member(db_session):
    """Create a regular member."""
    user = User(name="Asha Rao", email="asha@example.com", role="user")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def fund(db_session):
    """Create a 1000 / 10 month fund starting January 2026."""
    fund = Fund(
        name="Savings 1000",
        total_amount=Decimal("1000.00"),
        duration=10,
        start_date=date(2026, 1, 1),
        type="monthly",
    )
    db_session.add(fund)
    db_session.commit()
    return fund


@pytest.fixture
def enrollment(db_session, member, fund):
    """Enroll the member in the fund with empty cached totals."""
    enrollment = Enrollment(user_id=member.id, fund_id=fund.id, payment_schedule="monthly")
    db_session.add(enrollment)
    db_session.commit()
    return enrollment
