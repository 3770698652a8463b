"""
Module: trip_ledger_engines
Responsibility:
    Package entrypoint that re-exports the pure ledger computation engines.
    This is the canonical import surface for the trip service and scripts.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import trip_ledger_kernel.domain, trip_ledger_kernel.exceptions
    and trip_ledger_kernel.logging_config.
    MUST NOT import trip_ledger_kernel.services or trip_ledger_kernel.db.

Invariants enforced:
    - Purity: engines never read the clock or touch storage.
    - Integer-cent arithmetic for every amount computation.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every engine invocation is traced via ``@traced_engine`` (see
    ``trip_ledger_engines.tracer``), emitting TRIP_LEDGER_ENGINE_TRACE log
    records with engine name, version, input fingerprint and duration.

Usage:
    from trip_ledger_engines import (
        allocate_shares,
        build_settlement_matrix,
        compute_net_balances,
        derive_dates,
    )

    dates = derive_dates(ledger)
    balances = compute_net_balances(ledger)
    matrix = build_settlement_matrix(balances)
"""

from trip_ledger_engines.allocation import (
    SHARE_SUM_TOLERANCE,
    ExpenseShareAllocator,
    allocate_shares,
)
from trip_ledger_engines.balances import BalanceCalculator, compute_net_balances
from trip_ledger_engines.dates import DateRange, DateRangeDeriver, derive_dates
from trip_ledger_engines.settlement import (
    SETTLEMENT_EPSILON,
    SettlementInstruction,
    SettlementMatrix,
    SettlementMatrixBuilder,
    build_settlement_matrix,
)

__all__ = [
    # Allocation
    "ExpenseShareAllocator",
    "allocate_shares",
    "SHARE_SUM_TOLERANCE",
    # Dates
    "DateRangeDeriver",
    "DateRange",
    "derive_dates",
    # Balances
    "BalanceCalculator",
    "compute_net_balances",
    # Settlement
    "SettlementMatrixBuilder",
    "SettlementMatrix",
    "SettlementInstruction",
    "SETTLEMENT_EPSILON",
    "build_settlement_matrix",
]
