"""
Session save service.

Persists one session of an event: the session record, the full attendance
batch, the visitor batch and, on first finalization with a positive
beneficence collection, one income transaction in the financial ledger.

Design:
- Saving always finalizes the record; there is no partial save
- Attendance and visitors are overwritten, never merged
- The ledger is written only when the record did not exist before the save;
  what an edit does to it is the configured charity edit policy
- Writes run sequentially and independently; a failure after the first write
  does not undo earlier writes
- A per-event in-flight guard rejects a second save of the same event while
  one is still running
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterator, List, Optional, Sequence, Set

from backend.src.config.settings import AppSettings, get_settings
from backend.src.models import Account, Event, FinancialTransaction, SessionRecord
from backend.src.models.ledger import TransactionType
from backend.src.models.session_record import SessionStatus
from backend.src.services.exceptions import SaveInProgressError
from backend.src.services.guid import new_uuid
from backend.src.services.lodge_store import (
    AttendanceDraft,
    LodgeStore,
    SessionRecordDraft,
    TransactionDraft,
    VisitorDraft,
)
from backend.src.utils.logging_config import action_context, get_logger


logger = get_logger("services")

DESCRIPTION_MAX_LENGTH = FinancialTransaction.__table__.c.description.type.length


class SaveGuard:
    """
    In-flight marker for session saves, keyed by event id.

    Usage:
        >>> guard = SaveGuard()
        >>> with guard.hold(event.id, event.guid):
        ...     ...  # a second hold() on the same key raises SaveInProgressError
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._in_flight: Set[Any] = set()

    @contextmanager
    def hold(self, key: Any, label: str) -> Iterator[None]:
        with self._lock:
            if key in self._in_flight:
                raise SaveInProgressError(label)
            self._in_flight.add(key)
        try:
            yield
        finally:
            with self._lock:
                self._in_flight.discard(key)

    def is_in_flight(self, key: Any) -> bool:
        with self._lock:
            return key in self._in_flight


# Process-wide guard shared by every SessionSaveService
_default_guard = SaveGuard()


@dataclass
class SessionSaveResult:
    """Outcome of a session save."""
    record: SessionRecord
    created: bool
    transaction: Optional[FinancialTransaction] = None

    @property
    def transaction_created(self) -> bool:
        return self.created and self.transaction is not None


class SessionSaveService:
    """
    Service finalizing the session of an event.

    Usage:
        >>> service = SessionSaveService(SqlLodgeStore(db))
        >>> result = service.save_session(
        ...     event=event,
        ...     existing_record=None,
        ...     charity_collection=Decimal("50.00"),
        ...     observations="",
        ...     attendances=[AttendanceDraft(member_id=1, status="present")],
        ... )
    """

    def __init__(
        self,
        store: LodgeStore,
        settings: Optional[AppSettings] = None,
        guard: Optional[SaveGuard] = None,
    ):
        """
        Initialize session save service.

        Args:
            store: Persistence collaborator
            settings: Application settings (defaults to environment settings)
            guard: In-flight guard (defaults to the process-wide guard)
        """
        self.store = store
        self.settings = settings or get_settings()
        self.guard = guard or _default_guard

    def save_session(
        self,
        event: Event,
        existing_record: Optional[SessionRecord],
        charity_collection: Decimal,
        observations: str,
        attendances: List[AttendanceDraft],
        visitors: Sequence[VisitorDraft] = (),
    ) -> SessionSaveResult:
        """
        Save and finalize the session of an event.

        Args:
            event: Event whose session is saved
            existing_record: The event's record before this save (None when
                the session is saved for the first time)
            charity_collection: Beneficence collection amount (>= 0)
            observations: Free text notes
            attendances: Attendance of every member; replaces prior rows
            visitors: Visitors of the session; replaces prior rows

        Returns:
            SessionSaveResult with the finalized record and, when one was
            created, the ledger transaction

        Raises:
            SaveInProgressError: If the same event is already being saved
            PersistenceError: If a write is rejected (earlier writes stay)
        """
        with self.guard.hold(event.id, event.guid), action_context(event=event.guid):
            creating = existing_record is None
            record_uuid = new_uuid() if creating else existing_record.uuid

            record = self.store.upsert_session_record(SessionRecordDraft(
                uuid=record_uuid,
                event_id=event.id,
                session_date=event.event_date,
                charity_collection=charity_collection,
                observations=observations,
                status=SessionStatus.FINALIZED.value,
            ))
            self.store.bulk_replace_attendance(record.id, list(attendances))
            self.store.bulk_replace_visitors(record.id, list(visitors))

            logger.info(
                f"{'Created' if creating else 'Updated'} session record {record.guid} "
                f"for event {event.guid} with {len(attendances)} attendance row(s)"
            )

            transaction = self._mirror_charity(event, record, creating, charity_collection)

            return SessionSaveResult(record=record, created=creating, transaction=transaction)

    def select_account(self, accounts: Sequence[Account]) -> Optional[Account]:
        """
        Pick the account receiving a beneficence collection.

        The first cash (till) account, else the first account, else None.
        """
        for account in accounts:
            if account.account_type == self.settings.cash_account_type:
                return account
        return accounts[0] if accounts else None

    def _mirror_charity(
        self,
        event: Event,
        record: SessionRecord,
        creating: bool,
        amount: Decimal,
    ) -> Optional[FinancialTransaction]:
        if not creating:
            self._apply_edit_policy(record, amount)
            return None

        if amount <= 0:
            return None

        account = self.select_account(self.store.list_accounts())
        if account is None:
            logger.warning(
                f"No account available for the beneficence collection of {event.guid}; "
                "posting the transaction without an account"
            )

        transaction = self.store.create_transaction(TransactionDraft(
            transaction_date=record.session_date,
            description=self._describe(event),
            category=self.settings.charity_category,
            transaction_type=TransactionType.INCOME.value,
            amount=amount,
            account_id=account.id if account is not None else None,
        ))
        self.store.link_transaction(record.id, transaction.id)

        logger.info(
            f"Mirrored beneficence collection of {amount} for {record.guid} "
            f"into transaction {transaction.guid}"
        )
        return transaction

    def _apply_edit_policy(self, record: SessionRecord, amount: Decimal) -> None:
        if self.settings.charity_edit_policy != "update":
            return
        if record.financial_transaction_id is None:
            logger.info(
                f"Session {record.guid} has no ledger transaction; edit policy has nothing to update"
            )
            return
        self.store.update_transaction_amount(record.financial_transaction_id, amount)
        logger.info(f"Updated ledger amount of session {record.guid} to {amount}")

    def _describe(self, event: Event) -> str:
        """
        Ledger description "{category} - {title} - dd/mm/yyyy".

        The event title is shortened so the description fits the ledger
        column; the category and date are always kept whole.
        """
        when = event.event_date
        formatted = when.strftime("%d/%m/%Y") if hasattr(when, "strftime") else str(when)
        head = f"{self.settings.charity_category} - "
        tail = f" - {formatted}"

        title = event.title or ""
        room = DESCRIPTION_MAX_LENGTH - len(head) - len(tail)
        if len(title) > room:
            title = title[:max(room - 3, 0)].rstrip() + "..." if room > 3 else ""
        return f"{head}{title}{tail}"[:DESCRIPTION_MAX_LENGTH]
