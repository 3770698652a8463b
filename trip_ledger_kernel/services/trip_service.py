"""
TripService -- use cases for recording and reading trip ledgers.

Responsibility:
    The boundary an API layer calls.  Normalizes caller input, checks the
    references the core treats as preconditions (payer, transfer ends),
    asks the allocator for shares, appends through the ledger store, and
    assembles trip detail by running the read pipeline
    (dates -> balances -> settlement) over a loaded snapshot.

Architecture position:
    Kernel > Services -- imperative shell.  Depends on a ``LedgerRepository``
    and on the pure engines; never touches SQLAlchemy directly.

Invariants enforced:
    - Validation happens before anything is appended; a rejected request
      leaves the ledger unchanged.
    - Derived values (dates, balances, matrix) are computed on read and
      never written back.  Explicit trip dates are stored as given.

Failure modes:
    - ValidationError subclasses for bad input.
    - TripNotFoundError for an unknown trip id.
    - InvariantViolation subclasses from the engines; logged at ERROR and
      re-raised, no partial detail is returned.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Callable
from uuid import uuid4

from trip_ledger_engines.allocation import ExpenseShareAllocator
from trip_ledger_engines.balances import BalanceCalculator
from trip_ledger_engines.dates import DateRange, DateRangeDeriver
from trip_ledger_engines.settlement import (
    SettlementInstruction,
    SettlementMatrix,
    SettlementMatrixBuilder,
)
from trip_ledger_kernel.domain.ledger import (
    Expense,
    Ledger,
    Participant,
    Share,
    Transfer,
)
from trip_ledger_kernel.domain.values import (
    format_amount,
    to_iso_date,
    to_positive_amount,
)
from trip_ledger_kernel.exceptions import (
    InvariantViolation,
    MissingFieldError,
    UnknownParticipantError,
    ValidationError,
)
from trip_ledger_kernel.logging_config import LogContext, get_logger
from trip_ledger_kernel.services.ledger_store import LedgerRepository

logger = get_logger("services.trip")

ShareInput = Share | Mapping[str, Any]


def new_id(prefix: str) -> str:
    """Generate a record id such as ``e_1f0c9a7d3b2e``."""
    return f"{prefix}_{uuid4().hex[:12]}"


def _required_text(value: Any, field: str) -> str:
    if value is None or not str(value).strip():
        raise MissingFieldError(field)
    return str(value).strip()


def coerce_shares(shares: Sequence[ShareInput] | None) -> tuple[Share, ...]:
    """Read explicit shares given as Share objects or ``{"participant_id", "amount"}`` dicts."""
    if not shares:
        return ()
    result: list[Share] = []
    for item in shares:
        if isinstance(item, Share):
            result.append(item)
            continue
        participant_id = item.get("participant_id")
        if not participant_id:
            raise MissingFieldError("shares.participant_id")
        if item.get("amount") is None:
            raise MissingFieldError("shares.amount")
        result.append(Share(participant_id=str(participant_id), amount=item["amount"]))
    return tuple(result)


@dataclass(frozen=True)
class TripSummary:
    """Trip listing row with derived dates."""

    id: str
    name: str
    location: str
    start_date: str | None
    end_date: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "start_date": self.start_date,
            "end_date": self.end_date,
        }


@dataclass(frozen=True)
class TripDetail:
    """
    A ledger snapshot with everything derived from it.

    Contract:
        Immutable DTO; ``balances`` and ``matrix`` were computed from
        ``ledger`` in one pass and are consistent with it.
    """

    ledger: Ledger
    dates: DateRange
    balances: dict[str, Decimal]
    matrix: SettlementMatrix

    @property
    def settlements(self) -> tuple[SettlementInstruction, ...]:
        return SettlementMatrixBuilder.instructions(self.matrix)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready shape: trip fields, derived dates, records, balances, matrix."""
        ledger = self.ledger
        return {
            "id": ledger.id,
            "name": ledger.name,
            "location": ledger.location,
            "start_date": self.dates.start,
            "end_date": self.dates.end,
            "participants": [{"id": p.id, "name": p.name} for p in ledger.participants],
            "expenses": [
                {
                    "id": e.id,
                    "payer_id": e.payer_id,
                    "amount": format_amount(e.amount),
                    "description": e.description,
                    "date": e.date,
                    "shares": [
                        {"participant_id": s.participant_id, "amount": format_amount(s.amount)}
                        for s in e.shares
                    ],
                }
                for e in ledger.expenses
            ],
            "transfers": [
                {
                    "id": t.id,
                    "from_id": t.from_id,
                    "to_id": t.to_id,
                    "amount": format_amount(t.amount),
                    "date": t.date,
                }
                for t in ledger.transfers
            ],
            "net_balances": {pid: format_amount(v) for pid, v in self.balances.items()},
            "debt_matrix": {
                debtor: {creditor: format_amount(v) for creditor, v in row.items()}
                for debtor, row in self.matrix.items()
            },
        }


class TripService:
    """
    Record expenses and transfers on trips and read back who owes whom.

    Contract:
        Stateless apart from its collaborators; safe to share between
        threads when the store is.
    Non-goals:
        - No HTTP, no JSON encoding; ``to_dict`` output is left to the caller.
        - No editing or deleting of recorded entries.
    """

    def __init__(
        self,
        store: LedgerRepository,
        *,
        allocator: ExpenseShareAllocator | None = None,
        deriver: DateRangeDeriver | None = None,
        calculator: BalanceCalculator | None = None,
        builder: SettlementMatrixBuilder | None = None,
        id_factory: Callable[[str], str] = new_id,
    ):
        self._store = store
        self._allocator = allocator or ExpenseShareAllocator()
        self._deriver = deriver or DateRangeDeriver()
        self._calculator = calculator or BalanceCalculator()
        self._builder = builder or SettlementMatrixBuilder()
        self._new_id = id_factory

    # ------------------------------------------------------------------
    # Trips
    # ------------------------------------------------------------------

    def create_trip(
        self,
        name: str,
        location: str | None = "",
        start_date: str | date | None = None,
        end_date: str | date | None = None,
        *,
        trip_id: str | None = None,
    ) -> Ledger:
        ledger = Ledger(
            id=trip_id or self._new_id("trip"),
            name=_required_text(name, "name"),
            location=(location or "").strip(),
            start_date=to_iso_date(start_date, "start_date"),
            end_date=to_iso_date(end_date, "end_date"),
        )
        return self._store.create(ledger)

    def list_trips(self) -> list[TripSummary]:
        summaries = []
        for ledger in self._store.list_ledgers():
            dates = self._deriver.derive_for(ledger)
            summaries.append(TripSummary(
                id=ledger.id,
                name=ledger.name,
                location=ledger.location,
                start_date=dates.start,
                end_date=dates.end,
            ))
        return summaries

    def get_trip_detail(self, trip_id: str) -> TripDetail:
        with LogContext.bind(trip_id=trip_id):
            ledger = self._store.load(trip_id)
            try:
                dates = self._deriver.derive_for(ledger)
                balances = self._calculator.compute(ledger)
                matrix = self._builder.build(balances)
            except InvariantViolation:
                logger.error("trip_detail_invariant_violation", exc_info=True)
                raise
            return TripDetail(ledger=ledger, dates=dates, balances=balances, matrix=matrix)

    # ------------------------------------------------------------------
    # Appends
    # ------------------------------------------------------------------

    def add_participant(
        self,
        trip_id: str,
        name: str,
        *,
        participant_id: str | None = None,
    ) -> Participant:
        participant = Participant(
            id=participant_id or self._new_id("p"),
            name=_required_text(name, "name"),
        )
        with LogContext.bind(trip_id=trip_id, entry_id=participant.id):
            return self._store.append(trip_id, participant)

    def record_expense(
        self,
        trip_id: str,
        payer_id: str,
        amount: Decimal | str | int | float,
        description: str,
        date: str | None = None,
        shares: Sequence[ShareInput] | None = None,
        *,
        expense_id: str | None = None,
    ) -> Expense:
        """
        Record an expense, splitting equally when no shares are given.

        Raises:
            MissingFieldError: payer_id or description empty.
            InvalidAmountError: amount not a positive number.
            UnknownParticipantError: payer or a share participant not on the trip.
            NegativeShareError / ShareSumMismatchError / DuplicateShareError:
                invalid explicit shares.
            NoParticipantsError: equal split on a trip with no participants.
            TripNotFoundError: unknown trip.
        """
        payer_id = _required_text(payer_id, "payer_id")
        description = _required_text(description, "description")
        amount = to_positive_amount(amount)
        expense_date = to_iso_date(date)
        explicit = coerce_shares(shares)
        expense_id = expense_id or self._new_id("e")

        with LogContext.bind(trip_id=trip_id, participant_id=payer_id, entry_id=expense_id):
            ledger = self._store.load(trip_id)
            try:
                if not ledger.has_participant(payer_id):
                    raise UnknownParticipantError(payer_id, "payer")

                allocated = self._allocator.allocate(amount, ledger.participant_ids, explicit)
                expense = Expense(
                    id=expense_id,
                    payer_id=payer_id,
                    amount=amount,
                    description=description,
                    shares=allocated,
                    date=expense_date,
                )
                self._store.append(trip_id, expense)
            except ValidationError:
                logger.warning("expense_rejected", exc_info=True)
                raise
            logger.info("expense_recorded", extra={
                "amount": expense.amount,
                "shares": expense.shares,
                "explicit_shares": bool(explicit),
            })
            return expense

    def record_transfer(
        self,
        trip_id: str,
        from_id: str,
        to_id: str,
        amount: Decimal | str | int | float,
        date: str | None = None,
        *,
        transfer_id: str | None = None,
    ) -> Transfer:
        transfer = Transfer(
            id=transfer_id or self._new_id("t"),
            from_id=_required_text(from_id, "from_id"),
            to_id=_required_text(to_id, "to_id"),
            amount=to_positive_amount(amount),
            date=to_iso_date(date),
        )
        with LogContext.bind(
            trip_id=trip_id, participant_id=transfer.from_id, entry_id=transfer.id,
        ):
            try:
                self._store.append(trip_id, transfer)
            except ValidationError:
                logger.warning("transfer_rejected", exc_info=True)
                raise
            logger.info("transfer_recorded", extra={
                "to_id": transfer.to_id,
                "amount": transfer.amount,
            })
            return transfer
