"""
Unit tests for the attendance engine.

Tests the pure reconciliation functions over plain objects:
- Event/session merge and date sorting
- Rolling attendance percentage
- Consecutive-absence alerts and review suppression
- Overview aggregates and the attendance sheet
"""

import pytest
from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace

from backend.src.services import attendance_engine as engine


# ============================================================================
# Helpers
# ============================================================================


def make_event(id, event_date):
    return SimpleNamespace(id=id, event_date=event_date)


def make_record(id, session_date, status="finalized", event_id=None, charity="0"):
    return SimpleNamespace(
        id=id,
        event_id=event_id if event_id is not None else id,
        session_date=session_date,
        status=status,
        charity_collection=Decimal(charity),
    )


def make_row(record_id, member_id, status, justification=None):
    return SimpleNamespace(
        session_record_id=record_id,
        member_id=member_id,
        status=status,
        justification=justification,
    )


def make_member(id, degree="master"):
    return SimpleNamespace(id=id, degree=degree)


# ============================================================================
# Date handling
# ============================================================================


class TestParseDate:
    """Tests for date coercion."""

    def test_accepts_date_and_datetime(self):
        assert engine.parse_date(date(2024, 3, 1)) == date(2024, 3, 1)
        assert engine.parse_date(datetime(2024, 3, 1, 20, 0)) == date(2024, 3, 1)

    def test_accepts_iso_strings(self):
        assert engine.parse_date("2024-03-01") == date(2024, 3, 1)
        assert engine.parse_date("2024-03-01T20:00:00Z") == date(2024, 3, 1)

    def test_rejects_garbage(self):
        assert engine.parse_date("not a date") is None
        assert engine.parse_date(None) is None
        assert engine.parse_date(42) is None


class TestSortByDateDesc:
    """Tests for stable descending sort with malformed dates."""

    def test_sorts_newest_first(self):
        items = ["2024-01-01", "2024-03-01", "2024-02-01"]

        result = engine.sort_by_date_desc(items, lambda x: x)

        assert result == ["2024-03-01", "2024-02-01", "2024-01-01"]

    def test_malformed_dates_keep_their_position(self, mocker):
        mock_logger = mocker.patch.object(engine, "logger")
        items = ["2024-01-01", "garbage", "2024-03-01", None]

        result = engine.sort_by_date_desc(items, lambda x: x, label="event")

        assert result == ["2024-03-01", "garbage", "2024-01-01", None]
        assert mock_logger.warning.call_count == 2

    def test_equal_dates_keep_input_order(self):
        first = SimpleNamespace(name="first", when="2024-03-01")
        second = SimpleNamespace(name="second", when="2024-03-01")

        result = engine.sort_by_date_desc([first, second], lambda x: x.when)

        assert [r.name for r in result] == ["first", "second"]

    def test_input_not_modified(self):
        items = ["2024-01-01", "2024-03-01"]

        engine.sort_by_date_desc(items, lambda x: x)

        assert items == ["2024-01-01", "2024-03-01"]


# ============================================================================
# Merge
# ============================================================================


class TestMergeEventsWithRecords:
    """Tests for joining events with their session records."""

    def test_status_from_record_or_pending(self):
        events = [make_event(1, date(2024, 1, 5)), make_event(2, date(2024, 2, 2))]
        records = [make_record(10, date(2024, 2, 2), status="finalized", event_id=2)]

        rows = engine.merge_events_with_records(events, records)

        assert [row.event.id for row in rows] == [2, 1]
        assert rows[0].status == "finalized"
        assert rows[0].record is records[0]
        assert rows[1].status == "pending"
        assert rows[1].record is None

    def test_one_row_per_event(self):
        events = [make_event(i, date(2024, 1, i)) for i in range(1, 6)]

        rows = engine.merge_events_with_records(events, [])

        assert len(rows) == 5
        assert all(row.status == "pending" for row in rows)

    def test_duplicate_record_first_wins(self, mocker):
        mock_logger = mocker.patch.object(engine, "logger")
        events = [make_event(1, date(2024, 1, 5))]
        first = make_record(10, date(2024, 1, 5), status="finalized", event_id=1)
        second = make_record(11, date(2024, 1, 5), status="pending", event_id=1)

        rows = engine.merge_events_with_records(events, [first, second])

        assert rows[0].record is first
        mock_logger.warning.assert_called_once()

    def test_malformed_event_date_does_not_raise(self, mocker):
        mocker.patch.object(engine, "logger")
        events = [
            make_event(1, date(2024, 1, 5)),
            make_event(2, "31/02/2024"),
            make_event(3, date(2024, 6, 1)),
        ]

        rows = engine.merge_events_with_records(events, [])

        assert [row.event.id for row in rows] == [3, 2, 1]


# ============================================================================
# Rolling attendance percentage
# ============================================================================


class TestRollingAttendancePercentage:
    """Tests for the per-session mean attendance rate."""

    def test_mean_of_session_rates(self):
        # Session 1: 4 of 5 attended (80%), session 2: 1 of 2 attended (50%)
        records = [
            make_record(1, date(2024, 1, 10)),
            make_record(2, date(2024, 1, 17)),
        ]
        attendances = [
            make_row(1, 1, "present"),
            make_row(1, 2, "present"),
            make_row(1, 3, "justified"),
            make_row(1, 4, "present"),
            make_row(1, 5, "absent"),
            make_row(2, 1, "present"),
            make_row(2, 2, "absent"),
        ]

        result = engine.rolling_attendance_percentage(records, attendances, member_count=5)

        assert result == pytest.approx(65.0)

    def test_no_finalized_sessions_is_zero(self):
        records = [make_record(1, date(2024, 1, 10), status="pending")]
        attendances = [make_row(1, 1, "present")]

        assert engine.rolling_attendance_percentage(records, attendances, member_count=3) == 0.0

    def test_empty_input_is_zero(self):
        assert engine.rolling_attendance_percentage([], [], member_count=0) == 0.0

    def test_only_most_recent_window_counts(self):
        # Oldest session is 0%, the five newest are 100%
        records = [make_record(i, date(2024, 1, i)) for i in range(1, 7)]
        attendances = [make_row(1, 1, "absent")]
        attendances += [make_row(i, 1, "present") for i in range(2, 7)]

        result = engine.rolling_attendance_percentage(records, attendances, member_count=1)

        assert result == pytest.approx(100.0)

    def test_session_without_rows_uses_member_count(self):
        records = [
            make_record(1, date(2024, 1, 10)),
            make_record(2, date(2024, 1, 17)),
        ]
        attendances = [make_row(1, 1, "present"), make_row(1, 2, "present")]

        result = engine.rolling_attendance_percentage(records, attendances, member_count=2)

        assert result == pytest.approx(50.0)

    def test_result_within_bounds(self):
        records = [make_record(i, date(2024, 2, i)) for i in range(1, 4)]
        attendances = [make_row(i, m, "present") for i in range(1, 4) for m in range(1, 4)]

        result = engine.rolling_attendance_percentage(records, attendances, member_count=3)

        assert 0.0 <= result <= 100.0


# ============================================================================
# Frequency alerts
# ============================================================================


class TestDetectFrequencyAlerts:
    """Tests for consecutive-absence alerts."""

    @pytest.fixture
    def three_sessions(self):
        return [
            make_record(1, date(2024, 3, 1)),
            make_record(2, date(2024, 3, 8)),
            make_record(3, date(2024, 3, 15)),
        ]

    def test_absent_missing_absent_is_flagged(self, three_sessions):
        members = [make_member(7)]
        attendances = [make_row(1, 7, "absent"), make_row(3, 7, "absent")]

        alerts = engine.detect_frequency_alerts(members, three_sessions, attendances, reviewed=set())

        assert len(alerts) == 1
        assert alerts[0].member.id == 7
        assert alerts[0].consecutive_unjustified_absences == 3

    def test_justified_breaks_the_streak(self, three_sessions):
        members = [make_member(7)]
        attendances = [
            make_row(1, 7, "absent"),
            make_row(2, 7, "justified"),
            make_row(3, 7, "absent"),
        ]

        alerts = engine.detect_frequency_alerts(members, three_sessions, attendances, reviewed=set())

        assert alerts == []

    def test_present_breaks_the_streak(self, three_sessions):
        members = [make_member(7)]
        attendances = [make_row(3, 7, "present")]

        alerts = engine.detect_frequency_alerts(members, three_sessions, attendances, reviewed=set())

        assert alerts == []

    def test_reviewed_member_is_suppressed(self, three_sessions):
        members = [make_member(7), make_member(8)]

        alerts = engine.detect_frequency_alerts(members, three_sessions, [], reviewed={7})

        assert [alert.member.id for alert in alerts] == [8]

    def test_no_finalized_sessions_no_alerts(self):
        records = [make_record(1, date(2024, 3, 1), status="pending")]

        alerts = engine.detect_frequency_alerts([make_member(7)], records, [], reviewed=set())

        assert alerts == []

    def test_fewer_sessions_than_window(self):
        records = [make_record(1, date(2024, 3, 1)), make_record(2, date(2024, 3, 8))]

        alerts = engine.detect_frequency_alerts([make_member(7)], records, [], reviewed=set())

        assert alerts[0].consecutive_unjustified_absences == 2

    def test_only_most_recent_sessions_considered(self, three_sessions):
        # Present in an older session does not clear absences in the latest three
        older = make_record(9, date(2024, 2, 1))
        attendances = [make_row(9, 7, "present")]

        alerts = engine.detect_frequency_alerts(
            [make_member(7)], three_sessions + [older], attendances, reviewed=set()
        )

        assert len(alerts) == 1


# ============================================================================
# Aggregates
# ============================================================================


class TestOverviewAggregates:
    """Tests for totals, history, distribution and the frequency report."""

    def test_total_charity_sums_all_records(self):
        records = [
            make_record(1, date(2024, 1, 1), charity="50.00"),
            make_record(2, date(2024, 1, 8), status="pending", charity="25.50"),
        ]

        assert engine.total_charity(records) == Decimal("75.50")

    def test_attendance_history_is_chronological(self):
        records = [make_record(1, date(2024, 1, 8)), make_record(2, date(2024, 1, 1))]
        attendances = [
            make_row(1, 1, "present"),
            make_row(1, 2, "justified"),
            make_row(2, 1, "present"),
        ]

        history = engine.attendance_history(records, attendances)

        assert [point.record.id for point in history] == [2, 1]
        assert (history[1].present, history[1].justified) == (1, 1)

    def test_degree_distribution(self):
        members = [make_member(1, "master"), make_member(2, "apprentice"), make_member(3, "master")]

        assert engine.degree_distribution(members) == {"master": 2, "apprentice": 1}

    def test_member_frequency_report(self):
        records = [
            make_record(1, date(2024, 1, 1)),
            make_record(2, date(2024, 1, 8)),
            make_record(3, date(2024, 1, 15)),
            make_record(4, date(2024, 1, 22), status="pending"),
        ]
        attendances = [
            make_row(1, 1, "present"),
            make_row(2, 1, "justified"),
            make_row(3, 1, "absent"),
            make_row(4, 1, "present"),
        ]

        report = engine.member_frequency_report([make_member(1)], records, attendances)

        assert report[0].presences == 2
        assert report[0].total_sessions == 3
        assert report[0].percentage == 67

    def test_member_frequency_report_without_sessions(self):
        report = engine.member_frequency_report([make_member(1)], [], [])

        assert report[0].percentage == 0
        assert report[0].total_sessions == 0


# ============================================================================
# Attendance sheet
# ============================================================================


class TestAttendanceSheet:
    """Tests for preparing the editable attendance sheet."""

    def test_new_session_defaults_to_absent(self):
        sheet = engine.build_attendance_sheet([make_member(1), make_member(2)], None, [])

        assert [entry.status for entry in sheet] == ["absent", "absent"]
        assert all(entry.justification == "" for entry in sheet)

    def test_existing_session_prefills_rows(self):
        record = make_record(5, date(2024, 1, 1))
        attendances = [
            make_row(5, 1, "justified", "Travelling"),
            make_row(6, 2, "present"),
        ]

        sheet = engine.build_attendance_sheet([make_member(1), make_member(2)], record, attendances)

        assert sheet[0].status == "justified"
        assert sheet[0].justification == "Travelling"
        assert sheet[1].status == "absent"

    def test_presence_summary(self):
        summary = engine.presence_summary(
            ["present", "present", "absent"], member_count=3, visitor_count=2
        )

        assert summary.percentage == 67
        assert summary.present_count == 2
        assert summary.total_participants == 4

    def test_presence_summary_without_members(self):
        summary = engine.presence_summary([], member_count=0)

        assert summary.percentage == 0
