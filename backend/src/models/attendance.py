"""
Attendance models for members and visitors of a session.

Attendance rows are written as a batch that replaces the previous set for
the same session record; they are never merged additively.
"""

import enum

from sqlalchemy import Column, Integer, String, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from backend.src.models import Base
from backend.src.models.mixins import GuidMixin


class AttendanceStatus(enum.Enum):
    """Presence status of a member in a session."""
    PRESENT = "present"
    ABSENT = "absent"
    JUSTIFIED = "justified"


class Attendance(Base, GuidMixin):
    """
    Presence of one member in one session record.

    Attributes:
        id: Primary key (internal, never exposed)
        uuid / guid: External identifier (att_xxx)
        session_record_id: FK to SessionRecord
        member_id: FK to Member
        status: present, absent or justified
        justification: Optional reason for a justified absence

    Constraints:
        - (session_record_id, member_id) is unique
    """

    __tablename__ = "attendances"

    GUID_PREFIX = "att"

    id = Column(Integer, primary_key=True, autoincrement=True)

    session_record_id = Column(
        Integer,
        ForeignKey("session_records.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    member_id = Column(
        Integer,
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    status = Column(String(20), default=AttendanceStatus.ABSENT.value, nullable=False)
    justification = Column(Text, nullable=True)

    session_record = relationship("SessionRecord", back_populates="attendances")
    member = relationship("Member", back_populates="attendances")

    __table_args__ = (
        UniqueConstraint(
            "session_record_id",
            "member_id",
            name="uq_attendances_session_member",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Attendance("
            f"session_record_id={self.session_record_id}, "
            f"member_id={self.member_id}, "
            f"status={self.status}"
            f")>"
        )


class VisitorAttendance(Base, GuidMixin):
    """
    Visiting brother from another lodge present at a session.

    Visitors are not members of the roster and never count toward the
    attendance percentage or frequency alerts.
    """

    __tablename__ = "visitor_attendances"

    GUID_PREFIX = "vis"

    id = Column(Integer, primary_key=True, autoincrement=True)

    session_record_id = Column(
        Integer,
        ForeignKey("session_records.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name = Column(String(120), nullable=False)
    degree = Column(String(20), nullable=False)
    lodge = Column(String(120), nullable=False)
    lodge_number = Column(String(10), nullable=False)
    obedience = Column(String(120), nullable=False)
    masonic_number = Column(String(20), nullable=True)

    session_record = relationship("SessionRecord", back_populates="visitors")

    def __repr__(self) -> str:
        return f"<VisitorAttendance(name='{self.name}', lodge='{self.lodge}')>"
