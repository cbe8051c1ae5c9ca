"""Database engine and session management.

SQLite URLs use StaticPool so an in-memory database is shared by every
session created from the same factory.
"""

from typing import Generator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from chitfund.models import Base
from chitfund.services.config import get_settings


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine for the given URL."""
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


def create_session_factory(
    database_url: str | None = None,
    echo: bool | None = None,
    create_tables: bool = False,
) -> sessionmaker:
    """
    Build a session factory bound to a new engine.

    Args:
        database_url: SQLAlchemy database URL (default: ``settings.database_url``)
        echo: Log emitted SQL (default: ``settings.database_echo``)
        create_tables: Create all model tables if they do not exist

    Returns:
        sessionmaker producing Session objects
    """
    settings = get_settings()
    if database_url is None:
        database_url = settings.database_url
    if echo is None:
        echo = settings.database_echo

    engine = create_db_engine(database_url, echo=echo)
    if create_tables:
        Base.metadata.create_all(engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Yield a session and close it afterwards.

    Example:
        ```python
        for session in get_db(factory):
            funds = session.query(Fund).all()
        ```
    """
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


__all__ = ["create_db_engine", "create_session_factory", "get_db"]
