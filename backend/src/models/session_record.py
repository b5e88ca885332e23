"""
SessionRecord model for finalized event attendance.

A SessionRecord is created the first time a lodge officer saves attendance
for an event and updated on every later save. It is never deleted in the
normal flow.

Design Rationale:
- One record per event, enforced by a unique constraint on event_id
- Status only moves from pending to finalized ("save" means "done")
- financial_transaction_id links the beneficence transaction mirrored into
  the ledger on first finalization, so later edits can find it
"""

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Text, Numeric, ForeignKey
)
from sqlalchemy.orm import relationship

from backend.src.models import Base
from backend.src.models.mixins import GuidMixin


class SessionStatus(enum.Enum):
    """Session record status."""
    PENDING = "pending"
    FINALIZED = "finalized"


class SessionRecord(Base, GuidMixin):
    """
    Per-event record of attendance and beneficence collection.

    Attributes:
        id: Primary key (internal, never exposed)
        uuid / guid: External identifier (ses_xxx)
        event_id: FK to Event (unique, one record per event)
        session_date: Date of the session (copied from the event)
        charity_collection: Beneficence collection amount ("tronco")
        observations: Free text notes
        status: pending or finalized
        financial_transaction_id: FK to the mirrored ledger transaction
        created_at / updated_at: Timestamps

    Relationships:
        event: Event this record belongs to (many-to-one, lookup only)
        attendances: Attendance rows (one-to-many, CASCADE on delete)
        visitors: Visitor attendance rows (one-to-many, CASCADE on delete)
    """

    __tablename__ = "session_records"

    GUID_PREFIX = "ses"

    id = Column(Integer, primary_key=True, autoincrement=True)

    event_id = Column(
        Integer,
        ForeignKey("events.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
        index=True
    )

    session_date = Column(Date, nullable=False, index=True)
    charity_collection = Column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    observations = Column(Text, default="", nullable=False)
    status = Column(String(20), default=SessionStatus.PENDING.value, nullable=False)

    financial_transaction_id = Column(
        Integer,
        ForeignKey("financial_transactions.id", ondelete="SET NULL"),
        nullable=True
    )

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    event = relationship("Event", back_populates="session_record")
    attendances = relationship(
        "Attendance",
        back_populates="session_record",
        cascade="all, delete-orphan",
    )
    visitors = relationship(
        "VisitorAttendance",
        back_populates="session_record",
        cascade="all, delete-orphan",
    )

    @property
    def is_finalized(self) -> bool:
        return self.status == SessionStatus.FINALIZED.value

    def __repr__(self) -> str:
        return (
            f"<SessionRecord("
            f"id={self.id}, "
            f"event_id={self.event_id}, "
            f"date={self.session_date}, "
            f"status={self.status}"
            f")>"
        )
