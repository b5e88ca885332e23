"""
Persistence collaborator for the chancellor workflow.

LodgeStore is the boundary between the attendance logic and the hosted
lodge database: members, events, session records, attendance, visitors,
accounts and ledger transactions. SqlLodgeStore implements it over a
SQLAlchemy session.

Design:
- Every write commits on its own; there is no transaction spanning two
  writes, so a failure leaves earlier writes in place
- Database failures are rolled back, logged and re-raised as PersistenceError
- The one-record-per-event rule is checked here, keyed by event id
"""

import uuid as uuid_module
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.src.models import (
    Account,
    Attendance,
    Event,
    FinancialTransaction,
    Member,
    SessionRecord,
    VisitorAttendance,
)
from backend.src.services.exceptions import ConflictError, NotFoundError, PersistenceError
from backend.src.utils.logging_config import get_logger


logger = get_logger("db")


# ============================================================================
# Write payloads
# ============================================================================


@dataclass
class SessionRecordDraft:
    """Values written by upsert_session_record."""
    uuid: uuid_module.UUID
    event_id: int
    session_date: date
    charity_collection: Decimal
    observations: str
    status: str


@dataclass
class AttendanceDraft:
    member_id: int
    status: str
    justification: Optional[str] = None


@dataclass
class VisitorDraft:
    name: str
    degree: str
    lodge: str
    lodge_number: str
    obedience: str
    masonic_number: Optional[str] = None


@dataclass
class TransactionDraft:
    transaction_date: date
    description: str
    category: str
    transaction_type: str
    amount: Decimal
    account_id: Optional[int]


# ============================================================================
# Collaborator interface
# ============================================================================


class LodgeStore(ABC):
    """
    Abstract persistence collaborator.

    Every method may raise PersistenceError when the backing store rejects
    the call; lookups by GUID raise NotFoundError.
    """

    @abstractmethod
    def list_members(self) -> List[Member]:
        """All members of the roster, ordered by name."""

    @abstractmethod
    def get_member(self, guid: str) -> Member:
        """Member by GUID."""

    @abstractmethod
    def list_events(self) -> List[Event]:
        """All calendar events."""

    @abstractmethod
    def get_event(self, guid: str) -> Event:
        """Event by GUID."""

    @abstractmethod
    def list_session_records(self) -> List[SessionRecord]:
        """All session records."""

    @abstractmethod
    def get_session_record_for_event(self, event_id: int) -> Optional[SessionRecord]:
        """The session record of an event, if one exists."""

    @abstractmethod
    def list_attendance(self, session_record_id: Optional[int] = None) -> List[Attendance]:
        """Attendance rows, optionally restricted to one session record."""

    @abstractmethod
    def upsert_session_record(self, draft: SessionRecordDraft) -> SessionRecord:
        """Create the event's record or update the existing one."""

    @abstractmethod
    def bulk_replace_attendance(
        self, session_record_id: int, rows: List[AttendanceDraft]
    ) -> None:
        """Replace every attendance row of a session record."""

    @abstractmethod
    def list_visitors(self, session_record_id: int) -> List[VisitorAttendance]:
        """Visitors recorded for a session record."""

    @abstractmethod
    def bulk_replace_visitors(
        self, session_record_id: int, rows: List[VisitorDraft]
    ) -> None:
        """Replace every visitor row of a session record."""

    @abstractmethod
    def list_accounts(self) -> List[Account]:
        """Ledger accounts in creation order."""

    @abstractmethod
    def create_transaction(self, draft: TransactionDraft) -> FinancialTransaction:
        """Append a ledger transaction."""

    @abstractmethod
    def update_transaction_amount(self, transaction_id: int, amount: Decimal) -> None:
        """Rewrite the amount of an existing ledger transaction."""

    @abstractmethod
    def link_transaction(self, session_record_id: int, transaction_id: int) -> None:
        """Remember which ledger transaction mirrors a session's collection."""


# ============================================================================
# SQLAlchemy implementation
# ============================================================================


class SqlLodgeStore(LodgeStore):
    """
    LodgeStore backed by a SQLAlchemy session.

    Usage:
        >>> store = SqlLodgeStore(db_session)
        >>> events = store.list_events()
    """

    def __init__(self, db: Session):
        self.db = db

    # -- reads ---------------------------------------------------------------

    def list_members(self) -> List[Member]:
        return self.db.query(Member).order_by(Member.name.asc(), Member.id.asc()).all()

    def get_member(self, guid: str) -> Member:
        return self._get_by_guid(Member, guid)

    def list_events(self) -> List[Event]:
        return self.db.query(Event).order_by(Event.id.asc()).all()

    def get_event(self, guid: str) -> Event:
        return self._get_by_guid(Event, guid)

    def list_session_records(self) -> List[SessionRecord]:
        return self.db.query(SessionRecord).order_by(SessionRecord.id.asc()).all()

    def get_session_record_for_event(self, event_id: int) -> Optional[SessionRecord]:
        return (
            self.db.query(SessionRecord)
            .filter(SessionRecord.event_id == event_id)
            .first()
        )

    def list_attendance(self, session_record_id: Optional[int] = None) -> List[Attendance]:
        query = self.db.query(Attendance)
        if session_record_id is not None:
            query = query.filter(Attendance.session_record_id == session_record_id)
        return query.order_by(Attendance.id.asc()).all()

    def list_visitors(self, session_record_id: int) -> List[VisitorAttendance]:
        return (
            self.db.query(VisitorAttendance)
            .filter(VisitorAttendance.session_record_id == session_record_id)
            .order_by(VisitorAttendance.id.asc())
            .all()
        )

    def list_accounts(self) -> List[Account]:
        return self.db.query(Account).order_by(Account.id.asc()).all()

    # -- writes --------------------------------------------------------------

    def upsert_session_record(self, draft: SessionRecordDraft) -> SessionRecord:
        """
        Create or update the session record of ``draft.event_id``.

        Raises:
            ConflictError: If the event already has a record with another id
            PersistenceError: If the database rejects the write
        """
        record = self.get_session_record_for_event(draft.event_id)

        if record is not None and record.uuid != draft.uuid:
            raise ConflictError(
                f"Event {draft.event_id} already has session record {record.guid}"
            )

        if record is None:
            record = SessionRecord(uuid=draft.uuid, event_id=draft.event_id)
            self.db.add(record)

        record.session_date = draft.session_date
        record.charity_collection = draft.charity_collection
        record.observations = draft.observations
        record.status = draft.status

        self._commit("upsert_session_record")
        self.db.refresh(record)
        return record

    def bulk_replace_attendance(
        self, session_record_id: int, rows: List[AttendanceDraft]
    ) -> None:
        (
            self.db.query(Attendance)
            .filter(Attendance.session_record_id == session_record_id)
            .delete(synchronize_session=False)
        )
        for row in rows:
            self.db.add(Attendance(
                session_record_id=session_record_id,
                member_id=row.member_id,
                status=row.status,
                justification=row.justification or None,
            ))
        self._commit("bulk_replace_attendance")
        self.db.expire_all()

    def bulk_replace_visitors(
        self, session_record_id: int, rows: List[VisitorDraft]
    ) -> None:
        (
            self.db.query(VisitorAttendance)
            .filter(VisitorAttendance.session_record_id == session_record_id)
            .delete(synchronize_session=False)
        )
        for row in rows:
            self.db.add(VisitorAttendance(
                session_record_id=session_record_id,
                name=row.name,
                degree=row.degree,
                lodge=row.lodge,
                lodge_number=row.lodge_number,
                obedience=row.obedience,
                masonic_number=row.masonic_number,
            ))
        self._commit("bulk_replace_visitors")
        self.db.expire_all()

    def create_transaction(self, draft: TransactionDraft) -> FinancialTransaction:
        transaction = FinancialTransaction(
            transaction_date=draft.transaction_date,
            description=draft.description,
            category=draft.category,
            transaction_type=draft.transaction_type,
            amount=draft.amount,
            account_id=draft.account_id,
        )
        self.db.add(transaction)
        self._commit("create_transaction")
        self.db.refresh(transaction)
        return transaction

    def update_transaction_amount(self, transaction_id: int, amount: Decimal) -> None:
        transaction = self.db.get(FinancialTransaction, transaction_id)
        if transaction is None:
            raise NotFoundError("FinancialTransaction", transaction_id)
        transaction.amount = amount
        self._commit("update_transaction_amount")

    def link_transaction(self, session_record_id: int, transaction_id: int) -> None:
        record = self.db.get(SessionRecord, session_record_id)
        if record is None:
            raise NotFoundError("SessionRecord", session_record_id)
        record.financial_transaction_id = transaction_id
        self._commit("link_transaction")

    # -- helpers -------------------------------------------------------------

    def _get_by_guid(self, model, guid: str):
        try:
            uuid_value = model.parse_guid(guid)
        except ValueError:
            raise NotFoundError(model.__name__, guid)

        instance = self.db.query(model).filter(model.uuid == uuid_value).first()
        if instance is None:
            raise NotFoundError(model.__name__, guid)
        return instance

    def _commit(self, operation: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Persistence call '{operation}' failed: {e}")
            raise PersistenceError(operation, cause=e) from e
