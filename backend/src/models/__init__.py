"""
SQLAlchemy models for the lodge chancellor backend.

This module provides the declarative base class and imports all models
to ensure they are registered with SQLAlchemy's metadata.
"""

from sqlalchemy.orm import declarative_base

# All models inherit from this Base class
Base = declarative_base()


# Import all models here so they are registered with Base.metadata
from backend.src.models.member import Member, MemberDegree, MemberStatus
from backend.src.models.event import Event, EventType
from backend.src.models.session_record import SessionRecord, SessionStatus
from backend.src.models.attendance import Attendance, AttendanceStatus, VisitorAttendance
from backend.src.models.ledger import Account, AccountType, FinancialTransaction, TransactionType

__all__ = [
    "Base",
    "Member",
    "MemberDegree",
    "MemberStatus",
    "Event",
    "EventType",
    "SessionRecord",
    "SessionStatus",
    "Attendance",
    "AttendanceStatus",
    "VisitorAttendance",
    "Account",
    "AccountType",
    "FinancialTransaction",
    "TransactionType",
]
