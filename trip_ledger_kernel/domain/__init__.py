"""
Pure domain layer.

This module contains the trip ledger value objects and amount/date
normalization with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock
- I/O

All domain objects are immutable and deterministic.
"""

from trip_ledger_kernel.domain.ledger import (
    Expense,
    Ledger,
    LedgerEvent,
    Participant,
    Share,
    Transfer,
    build_ledger,
)
from trip_ledger_kernel.domain.values import (
    CENT,
    ZERO,
    format_amount,
    from_minor_units,
    to_amount,
    to_iso_date,
    to_minor_units,
    to_positive_amount,
    to_share_amount,
)

__all__ = [
    # Ledger model
    "Ledger",
    "LedgerEvent",
    "Participant",
    "Expense",
    "Share",
    "Transfer",
    "build_ledger",
    # Values
    "CENT",
    "ZERO",
    "to_amount",
    "to_positive_amount",
    "to_share_amount",
    "to_minor_units",
    "from_minor_units",
    "format_amount",
    "to_iso_date",
]
