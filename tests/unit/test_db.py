"""Tests for engine and session helpers."""

from sqlalchemy import inspect
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from chitfund.models import Fund
from chitfund.services.config import get_settings
from chitfund.services.db import create_db_engine, create_session_factory, get_db


class TestCreateEngine:
    """Test engine configuration per backend."""

    def test_sqlite_uses_static_pool(self):
        engine = create_db_engine("sqlite:///:memory:")
        try:
            assert isinstance(engine.pool, StaticPool)
        finally:
            engine.dispose()


class TestSessionFactory:
    """Test session factory and table creation."""

    def test_creates_tables(self, tmp_path):
        factory = create_session_factory(f"sqlite:///{tmp_path / 'chitfund.db'}", create_tables=True)
        engine = factory.kw["bind"]
        try:
            tables = set(inspect(engine).get_table_names())
            assert {"users", "funds", "user_funds", "payments", "audit_logs"} <= tables
        finally:
            engine.dispose()

    def test_defaults_from_settings(self, tmp_path, monkeypatch):
        db_file = tmp_path / "configured.db"
        monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_file}")
        get_settings.cache_clear()
        try:
            factory = create_session_factory(create_tables=True)
            factory.kw["bind"].dispose()
        finally:
            get_settings.cache_clear()

        assert db_file.exists()

    def test_sessions_share_in_memory_database(self):
        factory = create_session_factory("sqlite:///:memory:", create_tables=True)
        writer = factory()
        writer.add(Fund(name="Shared", total_amount=500, duration=5))
        writer.commit()
        writer.close()

        reader = factory()
        try:
            assert reader.query(Fund).count() == 1
        finally:
            reader.close()
            factory.kw["bind"].dispose()


class TestGetDb:
    """Test the session generator."""

    def test_yields_and_closes_session(self):
        factory = create_session_factory("sqlite:///:memory:", create_tables=True)
        generator = get_db(factory)

        session = next(generator)
        assert isinstance(session, Session)
        assert session.query(Fund).count() == 0

        generator.close()
        factory.kw["bind"].dispose()
