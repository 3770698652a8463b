"""
Ledger -- immutable snapshot of one trip's participants, expenses and transfers.

Responsibility:
    Defines the trip ledger value objects and the append operations that
    produce a new snapshot from an old one. Every append validates the
    referential and arithmetic invariants of the record being added, so a
    Ledger built only through these operations is always internally
    consistent.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Consumed by the engines (read-only) and by the ledger stores, which
    rebuild snapshots from storage and validate appends through here.

Invariants enforced:
    - Participants, expenses and transfers are append-only; a snapshot is
      never mutated, appends return a new Ledger.
    - Expense: amount > 0, shares reference known participants, no
      participant appears twice, share total equals amount to the cent.
    - Transfer: amount > 0, both ends known and distinct.
    - Record ids are unique per record type within a trip.

Failure modes:
    - ValidationError subclasses on any rejected append or construction.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field, replace
from decimal import Decimal

from trip_ledger_kernel.domain.values import (
    ZERO,
    to_iso_date,
    to_minor_units,
    to_positive_amount,
    to_share_amount,
)
from trip_ledger_kernel.exceptions import (
    DuplicateIdError,
    DuplicateShareError,
    MissingFieldError,
    NegativeShareError,
    SelfTransferError,
    ShareSumMismatchError,
    UnknownParticipantError,
)


@dataclass(frozen=True)
class Participant:
    """A person registered on a trip."""

    id: str
    name: str

    def __post_init__(self) -> None:
        if not self.id:
            raise MissingFieldError("participant.id")
        if not self.name or not self.name.strip():
            raise MissingFieldError("name")


@dataclass(frozen=True)
class Share:
    """
    One participant's portion of an expense.

    The amount must already be whole cents. Sign is not checked
    here; allocation and Expense validation reject negative shares.
    """

    participant_id: str
    amount: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_share_amount(self.amount))


@dataclass(frozen=True)
class Expense:
    """
    Money fronted by one participant on behalf of the group.

    Contract:
        Frozen dataclass; construction normalizes amount/date and checks
        the self-contained invariants (positivity, no duplicate or negative
        shares, share total == amount). Membership of the referenced
        participants is checked by ``Ledger.with_expense``.
    """

    id: str
    payer_id: str
    amount: Decimal
    description: str
    shares: tuple[Share, ...]
    date: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_positive_amount(self.amount))
        object.__setattr__(self, "shares", tuple(self.shares))
        object.__setattr__(self, "date", to_iso_date(self.date))

        seen: set[str] = set()
        for share in self.shares:
            if share.participant_id in seen:
                raise DuplicateShareError(share.participant_id)
            seen.add(share.participant_id)
            if share.amount < ZERO:
                raise NegativeShareError(share.participant_id, share.amount)

        if to_minor_units(self.share_total) != to_minor_units(self.amount):
            raise ShareSumMismatchError(self.amount, self.share_total)

    @property
    def share_total(self) -> Decimal:
        """Sum of all share amounts."""
        return sum((s.amount for s in self.shares), ZERO)


@dataclass(frozen=True)
class Transfer:
    """A direct repayment from one participant to another."""

    id: str
    from_id: str
    to_id: str
    amount: Decimal
    date: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_positive_amount(self.amount))
        object.__setattr__(self, "date", to_iso_date(self.date))
        if self.from_id == self.to_id:
            raise SelfTransferError(self.from_id)


LedgerEvent = Participant | Expense | Transfer


@dataclass(frozen=True)
class Ledger:
    """
    Snapshot of one trip.

    Contract:
        Frozen dataclass. ``participants``, ``expenses`` and ``transfers``
        are tuples in append order. The ``with_*`` methods validate and
        return a new snapshot; the receiver is unchanged.
    Guarantees:
        - Every expense/transfer in the snapshot references participants
          present in ``participants`` (when built through ``with_*``).
    Non-goals:
        - Does not persist anything; see ``services.ledger_store``.
        - Does not compute balances; see ``trip_ledger_engines``.
    """

    id: str
    name: str
    location: str = ""
    start_date: str | None = None
    end_date: str | None = None
    participants: tuple[Participant, ...] = field(default_factory=tuple)
    expenses: tuple[Expense, ...] = field(default_factory=tuple)
    transfers: tuple[Transfer, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise MissingFieldError("name")
        object.__setattr__(self, "start_date", to_iso_date(self.start_date, "start_date"))
        object.__setattr__(self, "end_date", to_iso_date(self.end_date, "end_date"))
        object.__setattr__(self, "participants", tuple(self.participants))
        object.__setattr__(self, "expenses", tuple(self.expenses))
        object.__setattr__(self, "transfers", tuple(self.transfers))

    @property
    def participant_ids(self) -> tuple[str, ...]:
        """Participant ids in registration order."""
        return tuple(p.id for p in self.participants)

    def has_participant(self, participant_id: str) -> bool:
        return any(p.id == participant_id for p in self.participants)

    def dated_records(self) -> Iterator[str]:
        """Yield every non-null expense and transfer date."""
        for expense in self.expenses:
            if expense.date:
                yield expense.date
        for transfer in self.transfers:
            if transfer.date:
                yield transfer.date

    # ------------------------------------------------------------------
    # Appends
    # ------------------------------------------------------------------

    def append(self, event: LedgerEvent) -> Ledger:
        """Append any ledger event, dispatching on its type."""
        match event:
            case Participant():
                return self.with_participant(event)
            case Expense():
                return self.with_expense(event)
            case Transfer():
                return self.with_transfer(event)
            case _:
                raise TypeError(f"Unsupported ledger event: {type(event).__name__}")

    def with_participant(self, participant: Participant) -> Ledger:
        if self.has_participant(participant.id):
            raise DuplicateIdError("participant", participant.id)
        return replace(self, participants=self.participants + (participant,))

    def with_expense(self, expense: Expense) -> Ledger:
        if any(e.id == expense.id for e in self.expenses):
            raise DuplicateIdError("expense", expense.id)
        self._require_participant(expense.payer_id, "payer")
        for share in expense.shares:
            self._require_participant(share.participant_id, "share")
        return replace(self, expenses=self.expenses + (expense,))

    def with_transfer(self, transfer: Transfer) -> Ledger:
        if any(t.id == transfer.id for t in self.transfers):
            raise DuplicateIdError("transfer", transfer.id)
        self._require_participant(transfer.from_id, "transfer.from_id")
        self._require_participant(transfer.to_id, "transfer.to_id")
        return replace(self, transfers=self.transfers + (transfer,))

    def _require_participant(self, participant_id: str, role: str) -> None:
        if not self.has_participant(participant_id):
            raise UnknownParticipantError(participant_id, role)


def build_ledger(
    trip_id: str,
    name: str,
    *,
    location: str = "",
    start_date: str | None = None,
    end_date: str | None = None,
    events: Sequence[LedgerEvent] = (),
) -> Ledger:
    """Build a validated ledger by appending ``events`` in order."""
    ledger = Ledger(
        id=trip_id,
        name=name,
        location=location,
        start_date=start_date,
        end_date=end_date,
    )
    for event in events:
        ledger = ledger.append(event)
    return ledger
