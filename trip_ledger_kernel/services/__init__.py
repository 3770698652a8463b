"""Services: ledger persistence and trip use cases."""

from trip_ledger_kernel.services.ledger_store import (
    InMemoryLedgerStore,
    LedgerRepository,
    SqlLedgerStore,
    TripLocks,
)
from trip_ledger_kernel.services.trip_service import (
    TripDetail,
    TripService,
    TripSummary,
    coerce_shares,
    new_id,
)

__all__ = [
    "LedgerRepository",
    "InMemoryLedgerStore",
    "SqlLedgerStore",
    "TripLocks",
    "TripService",
    "TripDetail",
    "TripSummary",
    "coerce_shares",
    "new_id",
]
