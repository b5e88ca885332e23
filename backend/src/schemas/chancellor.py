"""
Pydantic schemas for the chancellor (lodge operations) API.

Provides data validation and serialization for:
- Session save requests (attendance overwrite, beneficence collection)
- Events merged with their session status
- Attendance sheets for opening a session
- Overview metrics, frequency alerts and the member frequency report

Design:
- GUIDs are exposed, never internal IDs
- Money is carried as Decimal and serialized as a JSON number
"""

import enum
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_serializer, field_validator

from backend.src.schemas.visitor import VisitorAttendanceInput, VisitorAttendanceResponse


# ============================================================================
# Enums
# ============================================================================


class PresenceStatus(str, enum.Enum):
    """Presence of a member in a session."""
    PRESENT = "present"
    ABSENT = "absent"
    JUSTIFIED = "justified"


class SessionStatusValue(str, enum.Enum):
    """Derived status of an event's session."""
    PENDING = "pending"
    FINALIZED = "finalized"


# ============================================================================
# Request Schemas
# ============================================================================


class AttendanceEntry(BaseModel):
    """Presence of one member, as submitted by the officer."""

    member_guid: str = Field(..., description="Member GUID (mbr_xxx)")
    status: PresenceStatus = Field(default=PresenceStatus.ABSENT)
    justification: Optional[str] = Field(default=None, max_length=500)

    @field_validator("justification")
    @classmethod
    def blank_justification_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v.strip() if v else v


class SessionSaveRequest(BaseModel):
    """
    Schema for saving (finalizing) the session of an event.

    The attendance list replaces every row previously saved for the session;
    members left out of it have no row afterwards.

    Example:
        >>> SessionSaveRequest(
        ...     charity_collection=Decimal("50.00"),
        ...     observations="Regular session",
        ...     attendances=[AttendanceEntry(member_guid="mbr_...", status="present")],
        ... )
    """

    charity_collection: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    observations: str = Field(default="", max_length=5000)
    attendances: List[AttendanceEntry] = Field(default_factory=list)
    visitors: List[VisitorAttendanceInput] = Field(default_factory=list)

    @field_validator("attendances")
    @classmethod
    def validate_unique_members(cls, v: List[AttendanceEntry]) -> List[AttendanceEntry]:
        """Each member may appear at most once."""
        seen = set()
        for entry in v:
            if entry.member_guid in seen:
                raise ValueError(f"Member {entry.member_guid} listed more than once")
            seen.add(entry.member_guid)
        return v

    model_config = {
        "json_schema_extra": {
            "example": {
                "charity_collection": "50.00",
                "observations": "Regular session",
                "attendances": [
                    {"member_guid": "mbr_01hgw2bbg00000000000000001", "status": "present"},
                    {
                        "member_guid": "mbr_01hgw2bbg00000000000000002",
                        "status": "justified",
                        "justification": "Travelling",
                    },
                ],
                "visitors": [],
            }
        }
    }


# ============================================================================
# Response Schemas
# ============================================================================


class MemberSummary(BaseModel):
    guid: str
    name: str
    degree: str


class EventSummary(BaseModel):
    guid: str
    title: str
    event_date: Optional[str] = Field(None, description="ISO date as stored")
    event_type: str


class SessionRecordResponse(BaseModel):
    """Session record of an event."""

    guid: str = Field(..., description="External identifier (ses_xxx)")
    event_guid: str
    session_date: date
    charity_collection: Decimal
    observations: str
    status: SessionStatusValue
    ledger_linked: bool = Field(False, description="Collection mirrored into the ledger")

    @field_serializer("charity_collection")
    def serialize_money(self, v: Decimal) -> float:
        return float(v)


class EventWithStatusResponse(BaseModel):
    """One row of the chancellor events table."""

    event: EventSummary
    record: Optional[SessionRecordResponse] = None
    status: SessionStatusValue


class AttendanceSheetLine(BaseModel):
    member: MemberSummary
    status: PresenceStatus
    justification: str = ""


class PresenceSummaryResponse(BaseModel):
    percentage: int
    present_count: int
    visitor_count: int
    total_participants: int


class AttendanceSheetResponse(BaseModel):
    """Everything needed to open a session for editing."""

    event: EventSummary
    record: Optional[SessionRecordResponse] = None
    lines: List[AttendanceSheetLine]
    visitors: List[VisitorAttendanceResponse] = Field(default_factory=list)
    summary: PresenceSummaryResponse


class FrequencyAlertResponse(BaseModel):
    member: MemberSummary
    consecutive_unjustified_absences: int


class SessionHistoryPoint(BaseModel):
    session_guid: str
    session_date: date
    present: int
    justified: int


class OverviewResponse(BaseModel):
    """Chancellor dashboard metrics."""

    member_count: int
    rolling_attendance_percentage: float
    total_charity: Decimal
    alerts: List[FrequencyAlertResponse]
    attendance_history: List[SessionHistoryPoint]
    degree_distribution: Dict[str, int]

    @field_serializer("total_charity")
    def serialize_money(self, v: Decimal) -> float:
        return float(v)


class MemberFrequencyResponse(BaseModel):
    member: MemberSummary
    presences: int
    total_sessions: int
    percentage: int


class ToastResponse(BaseModel):
    kind: str
    title: str
    message: str


class SessionSaveResponse(BaseModel):
    """Result of saving a session, with the toasts raised while saving."""

    record: SessionRecordResponse
    transaction_created: bool
    toasts: List[ToastResponse] = Field(default_factory=list)


class ReviewResponse(BaseModel):
    member_guid: str
    reviewed: bool


class ErrorResponse(BaseModel):
    """Error body of a failed chancellor action, with its error toasts."""

    detail: str
    toasts: List[ToastResponse] = Field(default_factory=list)


class ObedienceOption(BaseModel):
    value: str
    label: str
