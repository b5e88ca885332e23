"""
Chancellor service: the lodge operations controller.

Loads members, events, session records and attendance from the store,
feeds them to the attendance engine and builds API-ready dictionaries for:
- The events table (events merged with their session status)
- The attendance sheet used to open a session
- Overview metrics and consecutive-absence alerts
- The member frequency report
- Saving a session

Every action is a boundary: failures of the store are reported to the
officer with an error toast and re-raised as a service error. A successful
save is reported with a success toast.

Alert review state lives in an AlertReviewRegistry held for the lifetime of
the application; reviewed members stay suppressed until unmarked.
"""

import threading
from typing import Any, Callable, Dict, FrozenSet, List, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from backend.src.config.settings import AppSettings, get_settings
from backend.src.models import Event, Member, SessionRecord, VisitorAttendance
from backend.src.schemas.chancellor import SessionSaveRequest
from backend.src.services import attendance_engine as engine
from backend.src.services.exceptions import (
    NotFoundError,
    PersistenceError,
    ServiceError,
    ValidationError,
)
from backend.src.services.lodge_store import AttendanceDraft, LodgeStore, VisitorDraft
from backend.src.services.notifier import LogNotifier, Notifier, ToastKind
from backend.src.services.session_service import SessionSaveResult, SessionSaveService
from backend.src.utils.logging_config import action_context, get_logger


logger = get_logger("services")

T = TypeVar("T")


class AlertReviewRegistry:
    """
    Member ids whose frequency alerts an officer has reviewed.

    Usage:
        >>> registry = AlertReviewRegistry()
        >>> registry.mark_reviewed(7)
        >>> registry.is_reviewed(7)
        True
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._reviewed = set()

    def mark_reviewed(self, member_id: int) -> None:
        with self._lock:
            self._reviewed.add(member_id)

    def unmark_reviewed(self, member_id: int) -> None:
        with self._lock:
            self._reviewed.discard(member_id)

    def is_reviewed(self, member_id: int) -> bool:
        with self._lock:
            return member_id in self._reviewed

    def snapshot(self) -> FrozenSet[int]:
        with self._lock:
            return frozenset(self._reviewed)


class ChancellorService:
    """
    Controller for the chancellor workflow.

    Usage:
        >>> service = ChancellorService(
        ...     store=SqlLodgeStore(db),
        ...     registry=AlertReviewRegistry(),
        ...     notifier=ToastCollector(),
        ... )
        >>> rows = service.list_events()
    """

    def __init__(
        self,
        store: LodgeStore,
        registry: AlertReviewRegistry,
        notifier: Optional[Notifier] = None,
        settings: Optional[AppSettings] = None,
        save_service: Optional[SessionSaveService] = None,
    ):
        """
        Initialize chancellor service.

        Args:
            store: Persistence collaborator
            registry: Reviewed-alert state shared across requests
            notifier: Toast sink (defaults to logging only)
            settings: Application settings (defaults to environment settings)
            save_service: Session save service (built from store and settings
                when omitted)
        """
        self.store = store
        self.registry = registry
        self.notifier = notifier or LogNotifier()
        self.settings = settings or get_settings()
        self.save_service = save_service or SessionSaveService(store, settings=self.settings)

    # ------------------------------------------------------------------
    # Action boundary
    # ------------------------------------------------------------------

    def _run(
        self,
        title: str,
        failure_message: str,
        action: Callable[[], T],
        **context: Any,
    ) -> T:
        """
        Run one controller action, reporting failures as error toasts.

        NotFoundError and ValidationError describe a bad request rather than a
        failed action and are re-raised untouched without a toast. Records
        logged while the action runs carry its title and ``context``.
        """
        with action_context(action=title, **context):
            try:
                return action()
            except (NotFoundError, ValidationError):
                raise
            except PersistenceError as e:
                logger.error(f"{title} failed: {e}", exc_info=True)
                self.notifier.notify(ToastKind.ERROR, title, failure_message)
                raise
            except ServiceError as e:
                logger.error(f"{title} failed: {e}")
                self.notifier.notify(ToastKind.ERROR, title, str(e) or failure_message)
                raise
            except SQLAlchemyError as e:
                logger.error(f"{title} failed: {e}", exc_info=True)
                self.notifier.notify(ToastKind.ERROR, title, failure_message)
                raise PersistenceError(title, cause=e) from e

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_events(self) -> List[Dict[str, Any]]:
        """Events merged with their session records, newest first."""
        def action():
            rows = engine.merge_events_with_records(
                self.store.list_events(),
                self.store.list_session_records(),
            )
            return [self.build_event_with_status(row) for row in rows]

        return self._run("Loading events", "Could not load events.", action)

    def get_attendance_sheet(self, event_guid: str) -> Dict[str, Any]:
        """
        Attendance sheet for opening the session of an event.

        Raises:
            NotFoundError: If the event does not exist
        """
        def action():
            event = self.store.get_event(event_guid)
            record = self.store.get_session_record_for_event(event.id)
            members = self.store.list_members()

            attendances = self.store.list_attendance(record.id) if record is not None else []
            visitors = self.store.list_visitors(record.id) if record is not None else []

            sheet = engine.build_attendance_sheet(members, record, attendances)
            summary = engine.presence_summary(
                [entry.status for entry in sheet],
                member_count=len(members),
                visitor_count=len(visitors),
            )

            return {
                "event": self.build_event_summary(event),
                "record": self.build_record_response(record, event) if record is not None else None,
                "lines": [
                    {
                        "member": self.build_member_summary(entry.member),
                        "status": entry.status,
                        "justification": entry.justification,
                    }
                    for entry in sheet
                ],
                "visitors": [self.build_visitor_response(visitor) for visitor in visitors],
                "summary": {
                    "percentage": summary.percentage,
                    "present_count": summary.present_count,
                    "visitor_count": summary.visitor_count,
                    "total_participants": summary.total_participants,
                },
            }

        return self._run(
            "Opening session", "Could not load the attendance sheet.", action, event=event_guid
        )

    def get_alerts(self) -> List[Dict[str, Any]]:
        """Members absent without justification in every recent session."""
        def action():
            alerts = engine.detect_frequency_alerts(
                self.store.list_members(),
                self.store.list_session_records(),
                self.store.list_attendance(),
                reviewed=self.registry.snapshot(),
                rolling_window=self.settings.rolling_window,
                alert_window=self.settings.alert_window,
            )
            return [self.build_alert(alert) for alert in alerts]

        return self._run("Loading alerts", "Could not load frequency alerts.", action)

    def get_overview(self) -> Dict[str, Any]:
        """Chancellor dashboard metrics."""
        def action():
            members = self.store.list_members()
            records = self.store.list_session_records()
            attendances = self.store.list_attendance()

            percentage = engine.rolling_attendance_percentage(
                records, attendances,
                member_count=len(members),
                window=self.settings.rolling_window,
            )
            alerts = engine.detect_frequency_alerts(
                members, records, attendances,
                reviewed=self.registry.snapshot(),
                rolling_window=self.settings.rolling_window,
                alert_window=self.settings.alert_window,
            )
            history = engine.attendance_history(
                records, attendances, window=self.settings.rolling_window
            )

            return {
                "member_count": len(members),
                "rolling_attendance_percentage": round(percentage, 2),
                "total_charity": engine.total_charity(records),
                "alerts": [self.build_alert(alert) for alert in alerts],
                "attendance_history": [
                    {
                        "session_guid": point.record.guid,
                        "session_date": point.record.session_date,
                        "present": point.present,
                        "justified": point.justified,
                    }
                    for point in history
                ],
                "degree_distribution": engine.degree_distribution(members),
            }

        return self._run("Loading overview", "Could not load the overview.", action)

    def get_frequency_report(self) -> List[Dict[str, Any]]:
        def action():
            report = engine.member_frequency_report(
                self.store.list_members(),
                self.store.list_session_records(),
                self.store.list_attendance(),
            )
            return [
                {
                    "member": self.build_member_summary(line.member),
                    "presences": line.presences,
                    "total_sessions": line.total_sessions,
                    "percentage": line.percentage,
                }
                for line in report
            ]

        return self._run("Loading frequency report", "Could not load the frequency report.", action)

    # ------------------------------------------------------------------
    # Alert review
    # ------------------------------------------------------------------

    def mark_alert_reviewed(self, member_guid: str) -> Dict[str, Any]:
        def action():
            member = self.store.get_member(member_guid)
            self.registry.mark_reviewed(member.id)
            logger.info(f"Frequency alert of {member.guid} marked as reviewed")
            return {"member_guid": member.guid, "reviewed": True}

        return self._run(
            "Reviewing alert", "Could not mark the alert as reviewed.", action, member=member_guid
        )

    def unmark_alert_reviewed(self, member_guid: str) -> Dict[str, Any]:
        def action():
            member = self.store.get_member(member_guid)
            self.registry.unmark_reviewed(member.id)
            logger.info(f"Frequency alert of {member.guid} review cleared")
            return {"member_guid": member.guid, "reviewed": False}

        return self._run(
            "Clearing alert review", "Could not clear the alert review.", action, member=member_guid
        )

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    def save_session(self, event_guid: str, request: SessionSaveRequest) -> Dict[str, Any]:
        """
        Save and finalize the session of an event.

        Args:
            event_guid: Event GUID (evt_xxx)
            request: Validated save payload

        Returns:
            Dict with the finalized record and whether a ledger transaction
            was created

        Raises:
            NotFoundError: If the event does not exist
            ValidationError: If an attendance entry names an unknown member
            ConflictError: If the event is already being saved
            PersistenceError: If a write fails (earlier writes are kept)
        """
        def action():
            event = self.store.get_event(event_guid)
            existing = self.store.get_session_record_for_event(event.id)

            result = self.save_service.save_session(
                event=event,
                existing_record=existing,
                charity_collection=request.charity_collection,
                observations=request.observations,
                attendances=self._resolve_attendance(request),
                visitors=[VisitorDraft(**visitor.model_dump(mode="json")) for visitor in request.visitors],
            )
            return event, result

        event, result = self._run(
            "Saving session", "Could not save the session.", action, event=event_guid
        )

        self.notifier.notify(
            ToastKind.SUCCESS,
            "Session saved",
            f"Attendance for '{event.title}' was saved and the session finalized.",
        )
        return self.build_save_response(event, result)

    def _resolve_attendance(self, request: SessionSaveRequest) -> List[AttendanceDraft]:
        members_by_guid = {member.guid: member for member in self.store.list_members()}

        drafts = []
        for entry in request.attendances:
            member = members_by_guid.get(entry.member_guid)
            if member is None:
                raise ValidationError(
                    f"Unknown member {entry.member_guid}", field="attendances"
                )
            drafts.append(AttendanceDraft(
                member_id=member.id,
                status=entry.status.value,
                justification=entry.justification,
            ))
        return drafts

    # ------------------------------------------------------------------
    # Response builders
    # ------------------------------------------------------------------

    @staticmethod
    def build_member_summary(member: Member) -> Dict[str, Any]:
        return {"guid": member.guid, "name": member.name, "degree": member.degree}

    @staticmethod
    def build_event_summary(event: Event) -> Dict[str, Any]:
        when = event.event_date
        return {
            "guid": event.guid,
            "title": event.title,
            "event_date": when.isoformat() if hasattr(when, "isoformat") else (str(when) if when else None),
            "event_type": event.event_type,
        }

    @staticmethod
    def build_record_response(record: SessionRecord, event: Event) -> Dict[str, Any]:
        return {
            "guid": record.guid,
            "event_guid": event.guid,
            "session_date": record.session_date,
            "charity_collection": record.charity_collection,
            "observations": record.observations or "",
            "status": record.status,
            "ledger_linked": record.financial_transaction_id is not None,
        }

    @staticmethod
    def build_visitor_response(visitor: VisitorAttendance) -> Dict[str, Any]:
        return {
            "guid": visitor.guid,
            "name": visitor.name,
            "degree": visitor.degree,
            "lodge": visitor.lodge,
            "lodge_number": visitor.lodge_number,
            "obedience": visitor.obedience,
            "masonic_number": visitor.masonic_number,
        }

    def build_event_with_status(self, row: engine.EventWithStatus) -> Dict[str, Any]:
        return {
            "event": self.build_event_summary(row.event),
            "record": self.build_record_response(row.record, row.event) if row.record is not None else None,
            "status": row.status,
        }

    def build_alert(self, alert: engine.FrequencyAlert) -> Dict[str, Any]:
        return {
            "member": self.build_member_summary(alert.member),
            "consecutive_unjustified_absences": alert.consecutive_unjustified_absences,
        }

    def build_save_response(self, event: Event, result: SessionSaveResult) -> Dict[str, Any]:
        return {
            "record": self.build_record_response(result.record, event),
            "transaction_created": result.transaction_created,
        }
