"""ORM models for the trip ledger."""

from trip_ledger_kernel.models.trip import (
    ExpenseRecord,
    ExpenseShareRecord,
    ParticipantRecord,
    TransferRecord,
    TripRecord,
)

__all__ = [
    "TripRecord",
    "ParticipantRecord",
    "ExpenseRecord",
    "ExpenseShareRecord",
    "TransferRecord",
]
