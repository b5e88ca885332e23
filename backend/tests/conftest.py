"""
Pytest configuration and fixtures for backend tests.

Provides shared fixtures for:
- Test database sessions
- Application settings and alert review state
- Sample data factories (members, events, session records, attendance,
  accounts)
- FastAPI test client
"""

import os
import pytest
from datetime import date
from decimal import Decimal
from sqlalchemy.orm import sessionmaker

# Set test environment variables before importing app modules
os.environ['LODGE_DB_URL'] = 'sqlite:///:memory:'
os.environ.setdefault('LODGE_ENV', 'development')

from backend.src.config.settings import AppSettings
from backend.src.db.database import build_engine
from backend.src.models import (
    Account,
    Attendance,
    Base,
    Event,
    Member,
    SessionRecord,
)
from backend.src.services.chancellor_service import AlertReviewRegistry
from backend.src.services.lodge_store import SqlLodgeStore


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture(scope='function')
def test_db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = build_engine('sqlite:///:memory:')

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope='function')
def test_db_session(test_db_engine):
    """Create a test database session."""
    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_db_engine
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def lodge_store(test_db_session):
    """SqlLodgeStore over the test session."""
    return SqlLodgeStore(test_db_session)


# ============================================================================
# Utility Fixtures
# ============================================================================

@pytest.fixture(scope='function')
def test_settings():
    """Settings with the default windows and the skip edit policy."""
    return AppSettings(
        LODGE_ROLLING_WINDOW=5,
        LODGE_ALERT_WINDOW=3,
        LODGE_CHARITY_EDIT_POLICY='skip',
    )


@pytest.fixture(scope='function')
def review_registry():
    """Empty alert review registry."""
    return AlertReviewRegistry()


# ============================================================================
# Sample Data Factories
# ============================================================================

@pytest.fixture
def sample_member(test_db_session):
    """Factory for creating sample Member models in the database."""
    def _create(name='John Doe', degree='master', email=None):
        member = Member(name=name, degree=degree, email=email)
        test_db_session.add(member)
        test_db_session.commit()
        test_db_session.refresh(member)
        return member
    return _create


@pytest.fixture
def sample_event(test_db_session):
    """Factory for creating sample Event models in the database."""
    def _create(title='Regular Session', event_date=None, event_type='session'):
        event = Event(
            title=title,
            event_date=event_date or date(2024, 3, 1),
            event_type=event_type,
        )
        test_db_session.add(event)
        test_db_session.commit()
        test_db_session.refresh(event)
        return event
    return _create


@pytest.fixture
def sample_session_record(test_db_session):
    """Factory for creating sample SessionRecord models in the database."""
    def _create(event, status='finalized', charity_collection='0', session_date=None,
                observations=''):
        record = SessionRecord(
            event_id=event.id,
            session_date=session_date or event.event_date,
            charity_collection=Decimal(charity_collection),
            observations=observations,
            status=status,
        )
        test_db_session.add(record)
        test_db_session.commit()
        test_db_session.refresh(record)
        return record
    return _create


@pytest.fixture
def sample_attendance(test_db_session):
    """Factory for creating sample Attendance rows in the database."""
    def _create(record, member, status='present', justification=None):
        row = Attendance(
            session_record_id=record.id,
            member_id=member.id,
            status=status,
            justification=justification,
        )
        test_db_session.add(row)
        test_db_session.commit()
        test_db_session.refresh(row)
        return row
    return _create


@pytest.fixture
def sample_account(test_db_session):
    """Factory for creating sample Account models in the database."""
    def _create(name='Main Checking', account_type='checking'):
        account = Account(name=name, account_type=account_type)
        test_db_session.add(account)
        test_db_session.commit()
        test_db_session.refresh(account)
        return account
    return _create


# ============================================================================
# FastAPI Test Client Fixture
# ============================================================================

@pytest.fixture
def test_client(test_db_session, test_settings, review_registry):
    """Create a test client for FastAPI application."""
    from fastapi.testclient import TestClient
    from backend.src.main import app

    # Override dependencies
    def get_test_db():
        try:
            yield test_db_session
        finally:
            pass

    def get_test_settings():
        return test_settings

    def get_test_registry():
        return review_registry

    # Import and override dependencies
    from backend.src.db.database import get_db
    from backend.src.config.settings import get_settings
    from backend.src.api.chancellor import get_review_registry

    app.dependency_overrides[get_db] = get_test_db
    app.dependency_overrides[get_settings] = get_test_settings
    app.dependency_overrides[get_review_registry] = get_test_registry

    with TestClient(app) as client:
        yield client

    # Clear overrides
    app.dependency_overrides.clear()
