"""
Tests for database engine construction.
"""

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from backend.src.db.database import build_engine, database_url
from backend.src.models import Attendance, Base


class TestBuildEngine:
    """Tests for build_engine."""

    def test_sqlite_enforces_foreign_keys(self):
        engine = build_engine("sqlite:///:memory:")
        try:
            with engine.connect() as connection:
                assert connection.execute(text("PRAGMA foreign_keys")).scalar() == 1
        finally:
            engine.dispose()

    def test_orphan_attendance_rejected(self):
        engine = build_engine("sqlite:///:memory:")
        Base.metadata.create_all(engine)
        try:
            with engine.begin() as connection:
                with pytest.raises(IntegrityError):
                    connection.execute(
                        Attendance.__table__.insert().values(
                            uuid=b"\x01" * 16,
                            session_record_id=999,
                            member_id=999,
                            status="present",
                        )
                    )
        finally:
            engine.dispose()


class TestDatabaseUrl:
    """Tests for database_url."""

    def test_environment_wins(self, monkeypatch):
        monkeypatch.setenv("LODGE_DB_URL", "sqlite:///./lodge-test.db")

        assert database_url() == "sqlite:///./lodge-test.db"
