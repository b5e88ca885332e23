"""
Member model for brothers of the lodge.

The member directory is owned elsewhere; this table mirrors the roster the
attendance engine needs (identity, name and masonic degree).
"""

import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship

from backend.src.models import Base
from backend.src.models.mixins import GuidMixin


class MemberDegree(enum.Enum):
    """Masonic degree of a brother."""
    APPRENTICE = "apprentice"
    COMPANION = "companion"
    MASTER = "master"


class MemberStatus(enum.Enum):
    """Membership status, maintained by the secretariat."""
    ACTIVE = "active"
    INACTIVE = "inactive"


class Member(Base, GuidMixin):
    """
    Lodge member ("brother") model.

    Attributes:
        id: Primary key (internal, never exposed)
        uuid: UUIDv7 for external identification (inherited from GuidMixin)
        guid: GUID string property (mbr_xxx, inherited from GuidMixin)
        name: Full name
        email: Contact email (optional)
        degree: Masonic degree (apprentice, companion, master)
        status: Membership status (active, inactive); informational only,
            every member is on the attendance roster
        created_at: Creation timestamp
        updated_at: Last update timestamp

    Relationships:
        attendances: Attendance rows of this member (one-to-many)
    """

    __tablename__ = "members"

    GUID_PREFIX = "mbr"

    id = Column(Integer, primary_key=True, autoincrement=True)

    name = Column(String(255), nullable=False, index=True)
    email = Column(String(255), nullable=True)
    degree = Column(String(20), default=MemberDegree.APPRENTICE.value, nullable=False)
    status = Column(String(20), default=MemberStatus.ACTIVE.value, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    attendances = relationship(
        "Attendance",
        back_populates="member",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Member(id={self.id}, name='{self.name}', degree={self.degree})>"

    def __str__(self) -> str:
        return self.name
