"""
Module: trip_ledger_kernel.models.trip
Responsibility: ORM persistence for trips and their append-only ledger rows
    (participants, expenses with their shares, transfers).
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, domain/, or outer layers.

Invariants enforced:
    - Append order: each ledger row carries a per-trip ``seq`` so a loaded
      snapshot reproduces insertion order exactly.
    - Amounts are integer cents (``amount_cents``).
    - Ledger rows are never updated or deleted by the application; only
      the stores in services/ write these tables, and only by INSERT.

Failure modes:
    - IntegrityError on a duplicate (trip_id, id) or (trip_id, seq).

Non-goals:
    - No foreign keys from shares/transfers to participants: referential
      checks happen in the domain on append, and a dangling reference in
      stored data is surfaced by the balance engine as an invariant
      violation rather than masked by the database.
"""

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from trip_ledger_kernel.db.base import TimestampedBase

ID_LENGTH = 64


class TripRecord(TimestampedBase):
    """A trip header row; the ledger itself lives in the child tables."""

    __tablename__ = "trips"

    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    location: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    # Explicit dates only; derived dates are never stored.
    start_date: Mapped[str | None] = mapped_column(String(10), nullable=True)
    end_date: Mapped[str | None] = mapped_column(String(10), nullable=True)

    def __repr__(self) -> str:
        return f"<TripRecord {self.id}: {self.name}>"


class ParticipantRecord(TimestampedBase):
    """A participant registered on a trip."""

    __tablename__ = "trip_participants"

    __table_args__ = (
        UniqueConstraint("trip_id", "seq", name="uq_participant_seq"),
    )

    trip_id: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("trips.id"), primary_key=True
    )
    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    seq: Mapped[int] = mapped_column(nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class ExpenseRecord(TimestampedBase):
    """An expense paid by one participant."""

    __tablename__ = "trip_expenses"

    __table_args__ = (
        UniqueConstraint("trip_id", "seq", name="uq_expense_seq"),
        Index("idx_expense_trip_date", "trip_id", "date"),
    )

    trip_id: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("trips.id"), primary_key=True
    )
    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    seq: Mapped[int] = mapped_column(nullable=False)
    payer_id: Mapped[str] = mapped_column(String(ID_LENGTH), nullable=False)
    amount_cents: Mapped[int] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(String(1000), nullable=False)
    date: Mapped[str | None] = mapped_column(String(10), nullable=True)


class ExpenseShareRecord(TimestampedBase):
    """One participant's share of an expense, in share order."""

    __tablename__ = "trip_expense_shares"

    trip_id: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("trips.id"), primary_key=True
    )
    expense_id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    position: Mapped[int] = mapped_column(primary_key=True)
    participant_id: Mapped[str] = mapped_column(String(ID_LENGTH), nullable=False)
    amount_cents: Mapped[int] = mapped_column(nullable=False)


class TransferRecord(TimestampedBase):
    """A direct repayment between two participants."""

    __tablename__ = "trip_transfers"

    __table_args__ = (
        UniqueConstraint("trip_id", "seq", name="uq_transfer_seq"),
        Index("idx_transfer_trip_date", "trip_id", "date"),
    )

    trip_id: Mapped[str] = mapped_column(
        String(ID_LENGTH), ForeignKey("trips.id"), primary_key=True
    )
    id: Mapped[str] = mapped_column(String(ID_LENGTH), primary_key=True)
    seq: Mapped[int] = mapped_column(nullable=False)
    from_id: Mapped[str] = mapped_column(String(ID_LENGTH), nullable=False)
    to_id: Mapped[str] = mapped_column(String(ID_LENGTH), nullable=False)
    amount_cents: Mapped[int] = mapped_column(nullable=False)
    date: Mapped[str | None] = mapped_column(String(10), nullable=True)
