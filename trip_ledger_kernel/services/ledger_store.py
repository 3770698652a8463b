"""
LedgerStore -- persistence collaborator for trip ledgers.

Responsibility:
    Load a trip's ledger as an immutable ``Ledger`` snapshot and append new
    events (participants, expenses, transfers) to it.  The engines never see
    storage; they only consume snapshots produced here.

Architecture position:
    Kernel > Services -- imperative shell around the pure domain.
    ``LedgerRepository`` is the interface; ``SqlLedgerStore`` (SQLAlchemy)
    and ``InMemoryLedgerStore`` implement it.

Invariants enforced:
    - Single writer per trip: appends to one trip are serialized by an
      in-process per-trip lock and, on PostgreSQL, a SELECT ... FOR UPDATE
      on the trip row.  Appends to different trips proceed in parallel.
    - Validate-then-write under the lock: the event is validated against a
      snapshot loaded inside the same transaction, via ``Ledger.append``.
    - Append-only: stores never update or delete ledger rows.

Failure modes:
    - TripNotFoundError when the trip id is unknown.
    - ValidationError subclasses when the event is rejected; nothing is
      written.
    - DuplicateIdError when creating a trip whose id already exists.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import Callable, Protocol

from sqlalchemy import Select, select
from sqlalchemy.orm import Session, sessionmaker

from trip_ledger_kernel.db.engine import is_postgres, session_scope
from trip_ledger_kernel.domain.ledger import (
    Expense,
    Ledger,
    LedgerEvent,
    Participant,
    Share,
    Transfer,
)
from trip_ledger_kernel.domain.values import from_minor_units, to_minor_units
from trip_ledger_kernel.exceptions import DuplicateIdError, TripNotFoundError
from trip_ledger_kernel.logging_config import get_logger
from trip_ledger_kernel.models.trip import (
    ExpenseRecord,
    ExpenseShareRecord,
    ParticipantRecord,
    TransferRecord,
    TripRecord,
)

logger = get_logger("services.ledger_store")


class LedgerRepository(Protocol):
    """Interface the trip service depends on."""

    def create(self, ledger: Ledger) -> Ledger: ...

    def list_ledgers(self) -> list[Ledger]: ...

    def load(self, trip_id: str) -> Ledger: ...

    def append(self, trip_id: str, event: LedgerEvent) -> LedgerEvent: ...


class TripLocks:
    """
    Mutex per existing trip id, plus one lock serializing trip creation.

    A per-trip lock is created the first time an existing trip is appended
    to; ids that fail the ``exists`` check never get an entry, so the map
    is bounded by the number of trips.  Trips are never deleted, so a lock
    once created stays valid.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self.creating = threading.Lock()

    def lock_for(self, trip_id: str, exists: Callable[[str], bool]) -> threading.Lock:
        """
        Lock for ``trip_id``.

        Raises:
            TripNotFoundError: no lock exists yet and ``exists(trip_id)`` is false.
        """
        with self._guard:
            lock = self._locks.get(trip_id)
        if lock is not None:
            return lock
        if not exists(trip_id):
            raise TripNotFoundError(trip_id)
        with self._guard:
            return self._locks.setdefault(trip_id, threading.Lock())

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class InMemoryLedgerStore:
    """
    Dict-backed ledger store.

    Holds the latest snapshot per trip.  Because snapshots are immutable,
    a reader that loaded a ledger keeps a consistent view even while
    another thread appends.
    """

    def __init__(self) -> None:
        self._ledgers: dict[str, Ledger] = {}
        self._locks = TripLocks()

    def create(self, ledger: Ledger) -> Ledger:
        with self._locks.creating:
            if ledger.id in self._ledgers:
                raise DuplicateIdError("trip", ledger.id)
            self._ledgers[ledger.id] = ledger
        logger.info("trip_created", extra={"trip_id": ledger.id, "store": "memory"})
        return ledger

    def list_ledgers(self) -> list[Ledger]:
        return list(self._ledgers.values())

    def load(self, trip_id: str) -> Ledger:
        try:
            return self._ledgers[trip_id]
        except KeyError:
            raise TripNotFoundError(trip_id) from None

    def append(self, trip_id: str, event: LedgerEvent) -> LedgerEvent:
        with self._locks.lock_for(trip_id, self._ledgers.__contains__):
            ledger = self.load(trip_id)
            self._ledgers[trip_id] = ledger.append(event)
        logger.info("ledger_event_appended", extra={
            "trip_id": trip_id,
            "entry_type": type(event).__name__,
            "entry_id": event.id,
            "store": "memory",
        })
        return event


def trip_query(trip_id: str, *, lock: bool = False) -> Select:
    """SELECT of one trip row, with FOR UPDATE when ``lock`` is set."""
    stmt = select(TripRecord).where(TripRecord.id == trip_id)
    return stmt.with_for_update() if lock else stmt


class SqlLedgerStore:
    """
    SQLAlchemy-backed ledger store.

    Contract:
        Each public method runs in its own transaction via
        ``session_scope``; the store owns commit/rollback.
    Guarantees:
        - ``load`` reproduces append order (per-table ``seq`` columns and
          share ``position``).
        - ``append`` writes nothing when validation fails.
    Non-goals:
        - Does not validate references when *loading*; a corrupted row is
          surfaced by the engines as an InvariantViolation.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory
        self._locks = TripLocks()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def create(self, ledger: Ledger) -> Ledger:
        with self._locks.creating:
            with session_scope(self._session_factory) as session:
                if session.get(TripRecord, ledger.id) is not None:
                    raise DuplicateIdError("trip", ledger.id)
                session.add(TripRecord(
                    id=ledger.id,
                    name=ledger.name,
                    location=ledger.location,
                    start_date=ledger.start_date,
                    end_date=ledger.end_date,
                ))
                for seq, participant in enumerate(ledger.participants):
                    self._insert(session, ledger.id, participant, seq)
                for seq, expense in enumerate(ledger.expenses):
                    self._insert(session, ledger.id, expense, seq)
                for seq, transfer in enumerate(ledger.transfers):
                    self._insert(session, ledger.id, transfer, seq)

        logger.info("trip_created", extra={"trip_id": ledger.id, "store": "sql"})
        return ledger

    def list_ledgers(self) -> list[Ledger]:
        with session_scope(self._session_factory) as session:
            trip_ids = session.execute(
                select(TripRecord.id).order_by(TripRecord.created_at, TripRecord.id)
            ).scalars().all()
            return [self._load(session, trip_id) for trip_id in trip_ids]

    def load(self, trip_id: str) -> Ledger:
        with session_scope(self._session_factory) as session:
            return self._load(session, trip_id)

    def append(self, trip_id: str, event: LedgerEvent) -> LedgerEvent:
        with self._locks.lock_for(trip_id, self._trip_exists):
            with session_scope(self._session_factory) as session:
                ledger = self._load(session, trip_id, for_update=True)
                ledger.append(event)
                self._insert(session, trip_id, event, self._next_seq(ledger, event))

        logger.info("ledger_event_appended", extra={
            "trip_id": trip_id,
            "entry_type": type(event).__name__,
            "entry_id": event.id,
            "store": "sql",
        })
        return event

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _trip_exists(self, trip_id: str) -> bool:
        with session_scope(self._session_factory) as session:
            return session.get(TripRecord, trip_id) is not None

    @staticmethod
    def _next_seq(ledger: Ledger, event: LedgerEvent) -> int:
        match event:
            case Participant():
                return len(ledger.participants)
            case Expense():
                return len(ledger.expenses)
            case Transfer():
                return len(ledger.transfers)
            case _:
                raise TypeError(f"Unsupported ledger event: {type(event).__name__}")

    @staticmethod
    def _insert(session: Session, trip_id: str, event: LedgerEvent, seq: int) -> None:
        match event:
            case Participant():
                session.add(ParticipantRecord(
                    trip_id=trip_id, id=event.id, seq=seq, name=event.name,
                ))
            case Expense():
                session.add(ExpenseRecord(
                    trip_id=trip_id,
                    id=event.id,
                    seq=seq,
                    payer_id=event.payer_id,
                    amount_cents=to_minor_units(event.amount),
                    description=event.description,
                    date=event.date,
                ))
                for position, share in enumerate(event.shares):
                    session.add(ExpenseShareRecord(
                        trip_id=trip_id,
                        expense_id=event.id,
                        position=position,
                        participant_id=share.participant_id,
                        amount_cents=to_minor_units(share.amount),
                    ))
            case Transfer():
                session.add(TransferRecord(
                    trip_id=trip_id,
                    id=event.id,
                    seq=seq,
                    from_id=event.from_id,
                    to_id=event.to_id,
                    amount_cents=to_minor_units(event.amount),
                    date=event.date,
                ))
            case _:
                raise TypeError(f"Unsupported ledger event: {type(event).__name__}")
        session.flush()

    @staticmethod
    def _load(session: Session, trip_id: str, for_update: bool = False) -> Ledger:
        stmt = trip_query(trip_id, lock=for_update and is_postgres(session.get_bind()))
        trip = session.execute(stmt).scalar_one_or_none()
        if trip is None:
            raise TripNotFoundError(trip_id)

        participants = session.execute(
            select(ParticipantRecord)
            .where(ParticipantRecord.trip_id == trip_id)
            .order_by(ParticipantRecord.seq)
        ).scalars().all()

        share_rows = session.execute(
            select(ExpenseShareRecord)
            .where(ExpenseShareRecord.trip_id == trip_id)
            .order_by(ExpenseShareRecord.expense_id, ExpenseShareRecord.position)
        ).scalars().all()
        shares_by_expense: dict[str, list[Share]] = defaultdict(list)
        for row in share_rows:
            shares_by_expense[row.expense_id].append(
                Share(participant_id=row.participant_id, amount=from_minor_units(row.amount_cents))
            )

        expenses = session.execute(
            select(ExpenseRecord)
            .where(ExpenseRecord.trip_id == trip_id)
            .order_by(ExpenseRecord.seq)
        ).scalars().all()

        transfers = session.execute(
            select(TransferRecord)
            .where(TransferRecord.trip_id == trip_id)
            .order_by(TransferRecord.seq)
        ).scalars().all()

        return Ledger(
            id=trip.id,
            name=trip.name,
            location=trip.location,
            start_date=trip.start_date,
            end_date=trip.end_date,
            participants=tuple(Participant(id=p.id, name=p.name) for p in participants),
            expenses=tuple(
                Expense(
                    id=e.id,
                    payer_id=e.payer_id,
                    amount=from_minor_units(e.amount_cents),
                    description=e.description,
                    shares=tuple(shares_by_expense.get(e.id, ())),
                    date=e.date,
                )
                for e in expenses
            ),
            transfers=tuple(
                Transfer(
                    id=t.id,
                    from_id=t.from_id,
                    to_id=t.to_id,
                    amount=from_minor_units(t.amount_cents),
                    date=t.date,
                )
                for t in transfers
            ),
        )
