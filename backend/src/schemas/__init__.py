"""
Pydantic schemas for API request/response validation.

This module exports all schema classes for use in API endpoints.
"""

from backend.src.schemas.visitor import (
    VisitorDegree,
    OBEDIENCE_OPTIONS,
    VisitorAttendanceInput,
    VisitorAttendanceResponse,
)
from backend.src.schemas.chancellor import (
    PresenceStatus,
    SessionStatusValue,
    AttendanceEntry,
    SessionSaveRequest,
    MemberSummary,
    EventSummary,
    SessionRecordResponse,
    EventWithStatusResponse,
    AttendanceSheetLine,
    PresenceSummaryResponse,
    AttendanceSheetResponse,
    FrequencyAlertResponse,
    SessionHistoryPoint,
    OverviewResponse,
    MemberFrequencyResponse,
    ToastResponse,
    SessionSaveResponse,
    ReviewResponse,
    ErrorResponse,
    ObedienceOption,
)

__all__ = [
    # Visitor schemas
    "VisitorDegree",
    "OBEDIENCE_OPTIONS",
    "VisitorAttendanceInput",
    "VisitorAttendanceResponse",
    # Chancellor schemas
    "PresenceStatus",
    "SessionStatusValue",
    "AttendanceEntry",
    "SessionSaveRequest",
    "MemberSummary",
    "EventSummary",
    "SessionRecordResponse",
    "EventWithStatusResponse",
    "AttendanceSheetLine",
    "PresenceSummaryResponse",
    "AttendanceSheetResponse",
    "FrequencyAlertResponse",
    "SessionHistoryPoint",
    "OverviewResponse",
    "MemberFrequencyResponse",
    "ToastResponse",
    "SessionSaveResponse",
    "ReviewResponse",
    "ErrorResponse",
    "ObedienceOption",
]
