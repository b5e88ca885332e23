"""
Attendance reconciliation and frequency alert computation.

Pure functions over in-memory collections of events, session records,
attendance rows and members. Nothing here touches the database: callers load
the collections through a LodgeStore and re-run these functions whenever one
of their inputs changes.

Provides:
- Event/session merge with derived status, sorted by date descending
- Rolling attendance percentage over the most recent finalized sessions
- Consecutive-absence (frequency) alerts, suppressible by review
- Attendance sheet preparation and chart/report aggregates

Design:
- Inputs are duck-typed: ORM models and plain objects exposing the same
  attributes (id, event_date, event_id, session_date, status, ...) both work
- Unparseable dates never raise; those rows keep their input position
- The reviewed-member set is an argument, never ambient state
"""

import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from backend.src.models.attendance import AttendanceStatus
from backend.src.models.session_record import SessionStatus
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")


PENDING = SessionStatus.PENDING.value
FINALIZED = SessionStatus.FINALIZED.value

# Statuses that count toward the attendance percentage
ATTENDED_STATUSES = frozenset({
    AttendanceStatus.PRESENT.value,
    AttendanceStatus.JUSTIFIED.value,
})

DEFAULT_ROLLING_WINDOW = 5
DEFAULT_ALERT_WINDOW = 3


# ============================================================================
# Result types
# ============================================================================


@dataclass
class EventWithStatus:
    """An event joined with its session record and derived status."""
    event: Any
    record: Optional[Any]
    status: str


@dataclass
class FrequencyAlert:
    """A member absent without justification in every session considered."""
    member: Any
    consecutive_unjustified_absences: int


@dataclass
class SessionAttendanceCount:
    """Present and justified counts of one session, for charts."""
    record: Any
    present: int
    justified: int


@dataclass
class MemberFrequency:
    """Attendance of one member across all finalized sessions."""
    member: Any
    presences: int
    total_sessions: int
    percentage: int


@dataclass
class AttendanceSheetEntry:
    """Editable attendance line of one member when a session is opened."""
    member: Any
    status: str
    justification: str


@dataclass
class PresenceSummary:
    """Live counters shown while a session's attendance is being edited."""
    percentage: int
    present_count: int
    visitor_count: int
    total_participants: int


# ============================================================================
# Date handling
# ============================================================================


def parse_date(value: Any) -> Optional[date]:
    """
    Coerce a date-like value to a date.

    Accepts date and datetime objects and ISO 8601 strings (date or
    date-time). Returns None for anything else instead of raising.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            return None
    return None


def sort_by_date_desc(
    items: Sequence[Any],
    date_of: Callable[[Any], Any],
    label: str = "row",
) -> List[Any]:
    """
    Sort items by date, newest first, leaving unparseable dates in place.

    Items whose date parses are stably sorted descending among the positions
    they already occupy; items whose date does not parse keep their input
    index. Each malformed date is logged so an operator can correct it.

    Args:
        items: Sequence to sort (not modified)
        date_of: Returns the raw date value of an item
        label: Name used in the warning log

    Returns:
        New list
    """
    parsed = [parse_date(date_of(item)) for item in items]

    for item, value in zip(items, parsed):
        if value is None:
            logger.warning(
                f"Malformed {label} date left unsorted: {date_of(item)!r}"
            )

    slots = [i for i, value in enumerate(parsed) if value is not None]
    ordered = sorted(slots, key=lambda i: parsed[i], reverse=True)

    result = list(items)
    for slot, source in zip(slots, ordered):
        result[slot] = items[source]
    return result


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# ============================================================================
# Event / session merge
# ============================================================================


def index_records_by_event(records: Iterable[Any]) -> Dict[Any, Any]:
    """
    Map event id to its session record.

    At most one record may exist per event. A duplicate is logged and
    ignored so the first record seen wins deterministically.
    """
    by_event: Dict[Any, Any] = {}
    for record in records:
        if record.event_id in by_event:
            logger.warning(
                f"Duplicate session record {record.id} for event {record.event_id}; "
                f"keeping record {by_event[record.event_id].id}"
            )
            continue
        by_event[record.event_id] = record
    return by_event


def merge_events_with_records(
    events: Iterable[Any],
    records: Iterable[Any],
) -> List[EventWithStatus]:
    """
    Join each event with its session record and derive its status.

    Args:
        events: Calendar events (any order)
        records: Session records

    Returns:
        One EventWithStatus per event, newest event first. Status is the
        record's status, or "pending" when the event has no record.
    """
    by_event = index_records_by_event(records)

    rows = []
    for event in events:
        record = by_event.get(event.id)
        rows.append(EventWithStatus(
            event=event,
            record=record,
            status=record.status if record is not None else PENDING,
        ))

    return sort_by_date_desc(rows, lambda row: row.event.event_date, label="event")


# ============================================================================
# Rolling attendance percentage
# ============================================================================


def recent_finalized_sessions(
    records: Iterable[Any],
    limit: int = DEFAULT_ROLLING_WINDOW,
) -> List[Any]:
    """Finalized records, newest first, truncated to ``limit``."""
    finalized = [r for r in records if r.status == FINALIZED]
    return sort_by_date_desc(finalized, lambda r: r.session_date, label="session")[:limit]


def group_attendance_by_session(attendances: Iterable[Any]) -> Dict[Any, List[Any]]:
    grouped: Dict[Any, List[Any]] = defaultdict(list)
    for row in attendances:
        grouped[row.session_record_id].append(row)
    return grouped


def rolling_attendance_percentage(
    records: Iterable[Any],
    attendances: Iterable[Any],
    member_count: int,
    window: int = DEFAULT_ROLLING_WINDOW,
) -> float:
    """
    Mean attendance rate of the most recent finalized sessions.

    Each session contributes (present + justified rows) / roster x 100, and
    the result is the arithmetic mean of those rates, so every session
    weighs the same regardless of how the roster changed over time. The
    roster of a session is the set of members recorded by its save; a
    session with no rows recorded falls back to ``member_count``.

    Args:
        records: Session records (any status)
        attendances: Attendance rows of any sessions
        member_count: Current number of members
        window: Number of recent finalized sessions to average

    Returns:
        Percentage in [0, 100]; 0.0 when no session is finalized
    """
    sessions = recent_finalized_sessions(records, window)
    if not sessions:
        return 0.0

    rows_by_session = group_attendance_by_session(attendances)

    total = 0.0
    for session in sessions:
        rows = rows_by_session.get(session.id, [])
        roster = len(rows) or member_count
        if roster <= 0:
            continue
        attended = sum(1 for row in rows if row.status in ATTENDED_STATUSES)
        total += attended / roster * 100

    return total / len(sessions)


# ============================================================================
# Frequency alerts
# ============================================================================


def detect_frequency_alerts(
    members: Iterable[Any],
    records: Iterable[Any],
    attendances: Iterable[Any],
    reviewed: Set[Any],
    rolling_window: int = DEFAULT_ROLLING_WINDOW,
    alert_window: int = DEFAULT_ALERT_WINDOW,
) -> List[FrequencyAlert]:
    """
    Flag members absent without justification in every recent session.

    The sessions considered are the first ``alert_window`` of the
    ``rolling_window`` most recent finalized sessions, so fewer are used when
    fewer exist. A missing row or an "absent" row counts as an unjustified
    absence; "present" and "justified" break the streak.

    Args:
        members: Roster to check
        records: Session records (any status)
        attendances: Attendance rows
        reviewed: Member ids whose alerts an officer already reviewed
        rolling_window: Size of the recent-session window
        alert_window: Sessions a member must have missed

    Returns:
        One FrequencyAlert per flagged member, in roster order
    """
    considered = recent_finalized_sessions(records, rolling_window)[:alert_window]
    if not considered:
        return []

    status_by_key: Dict[Tuple[Any, Any], str] = {
        (row.session_record_id, row.member_id): row.status for row in attendances
    }
    absent = AttendanceStatus.ABSENT.value

    alerts = []
    for member in members:
        if member.id in reviewed:
            continue

        misses = 0
        for session in considered:
            status = status_by_key.get((session.id, member.id))
            if status is None or status == absent:
                misses += 1

        if misses == len(considered):
            alerts.append(FrequencyAlert(
                member=member,
                consecutive_unjustified_absences=len(considered),
            ))

    return alerts


# ============================================================================
# Overview aggregates
# ============================================================================


def total_charity(records: Iterable[Any]) -> Decimal:
    """Sum of beneficence collections over all session records."""
    return sum((Decimal(str(r.charity_collection or 0)) for r in records), Decimal("0"))


def attendance_history(
    records: Iterable[Any],
    attendances: Iterable[Any],
    window: int = DEFAULT_ROLLING_WINDOW,
) -> List[SessionAttendanceCount]:
    """Present/justified counts of the recent finalized sessions, oldest first."""
    rows_by_session = group_attendance_by_session(attendances)
    history = []
    for session in recent_finalized_sessions(records, window):
        rows = rows_by_session.get(session.id, [])
        history.append(SessionAttendanceCount(
            record=session,
            present=sum(1 for r in rows if r.status == AttendanceStatus.PRESENT.value),
            justified=sum(1 for r in rows if r.status == AttendanceStatus.JUSTIFIED.value),
        ))
    history.reverse()
    return history


def degree_distribution(members: Iterable[Any]) -> Dict[str, int]:
    """Member count per degree, in first-seen order."""
    counts: Dict[str, int] = {}
    for member in members:
        counts[member.degree] = counts.get(member.degree, 0) + 1
    return counts


def member_frequency_report(
    members: Iterable[Any],
    records: Iterable[Any],
    attendances: Iterable[Any],
) -> List[MemberFrequency]:
    """
    Presences of each member over all finalized sessions.

    A presence is a present or justified row in a finalized session. The
    percentage is rounded half up; it is 0 when no session is finalized.
    """
    finalized_ids = {r.id for r in records if r.status == FINALIZED}
    total_sessions = len(finalized_ids)

    presences: Dict[Any, int] = defaultdict(int)
    for row in attendances:
        if row.session_record_id in finalized_ids and row.status in ATTENDED_STATUSES:
            presences[row.member_id] += 1

    report = []
    for member in members:
        count = presences.get(member.id, 0) if total_sessions else 0
        percentage = _round_half_up(count / total_sessions * 100) if total_sessions else 0
        report.append(MemberFrequency(
            member=member,
            presences=count,
            total_sessions=total_sessions,
            percentage=percentage,
        ))
    return report


# ============================================================================
# Attendance sheet
# ============================================================================


def build_attendance_sheet(
    members: Iterable[Any],
    record: Optional[Any],
    attendances: Iterable[Any],
) -> List[AttendanceSheetEntry]:
    """
    Prepare one editable line per member for opening a session.

    When the session already has a record, each member starts from their
    saved status and justification; otherwise everyone starts "absent"
    until checked.
    """
    existing: Dict[Any, Any] = {}
    if record is not None:
        existing = {
            row.member_id: row for row in attendances
            if row.session_record_id == record.id
        }

    sheet = []
    for member in members:
        row = existing.get(member.id)
        sheet.append(AttendanceSheetEntry(
            member=member,
            status=row.status if row is not None else AttendanceStatus.ABSENT.value,
            justification=(row.justification or "") if row is not None else "",
        ))
    return sheet


def presence_summary(
    statuses: Iterable[str],
    member_count: int,
    visitor_count: int = 0,
) -> PresenceSummary:
    """Live presence percentage and participant counts of a session."""
    present = sum(1 for s in statuses if s == AttendanceStatus.PRESENT.value)
    return PresenceSummary(
        percentage=_round_half_up(present / max(member_count, 1) * 100),
        present_count=present,
        visitor_count=visitor_count,
        total_participants=present + visitor_count,
    )
