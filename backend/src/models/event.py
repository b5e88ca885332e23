"""
Event model for lodge calendar events.

Events are created by the agenda area of the dashboard; the chancellor
workflow only reads them and attaches at most one SessionRecord to each.
"""

import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, Date, DateTime, Text
from sqlalchemy.orm import relationship

from backend.src.models import Base
from backend.src.models.mixins import GuidMixin


class EventType(enum.Enum):
    """Kind of calendar event."""
    SESSION = "session"
    MEETING = "meeting"
    SOCIAL_EVENT = "social_event"
    OTHER = "other"


class Event(Base, GuidMixin):
    """
    Calendar event model.

    Attributes:
        id: Primary key (internal, never exposed)
        uuid / guid: External identifier (evt_xxx)
        title: Event title
        event_date: Date of the event
        event_type: session, meeting, social_event or other
        description: Free text description
        created_at / updated_at: Timestamps

    Relationships:
        session_record: The event's SessionRecord, if attendance was saved
            (one-to-one)
    """

    __tablename__ = "events"

    GUID_PREFIX = "evt"

    id = Column(Integer, primary_key=True, autoincrement=True)

    title = Column(String(255), nullable=False)
    event_date = Column(Date, nullable=False, index=True)
    event_type = Column(String(50), default=EventType.SESSION.value, nullable=False)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    session_record = relationship(
        "SessionRecord",
        back_populates="event",
        uselist=False,
    )

    def __repr__(self) -> str:
        return (
            f"<Event("
            f"id={self.id}, "
            f"title='{self.title}', "
            f"date={self.event_date}, "
            f"type={self.event_type}"
            f")>"
        )

    def __str__(self) -> str:
        return f"{self.title} - {self.event_date}"
