"""
Module: trip_ledger_engines.settlement
Responsibility:
    Turn net balances into pairwise settlement instructions
    (debtor -> creditor -> amount) that, if paid, bring every participant
    to zero.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Algorithm:
    Greedy two-pointer matching. Debtors and creditors are each sorted by
    magnitude descending, ties broken by participant id ascending. At each
    step the current debtor pays the current creditor
    min(debtor.remaining, creditor.remaining); a cursor advances when its
    side is within SETTLEMENT_EPSILON of settled (both advance when both
    are). This is a deterministic approximation; it does not minimise the
    number of transfers.

Invariants enforced:
    - Row sums: sum(matrix[d].values()) == -balances[d] for every debtor.
    - Column sums: sum(matrix[*][c]) == balances[c] for every creditor.
    - Determinism: identical balances yield an identical matrix, including
      dict ordering.
    - Exactness: matching runs on the Decimal magnitudes as given. Decimal
      subtraction is exact, so sub-cent balances settle without rounding.

Failure modes:
    - SettlementResidualError if debt or credit beyond SETTLEMENT_EPSILON
      remains after the loop, which only happens when the balances do not
      sum to zero (corrupted upstream state).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal

from trip_ledger_engines.tracer import traced_engine
from trip_ledger_kernel.exceptions import SettlementResidualError
from trip_ledger_kernel.logging_config import get_logger

logger = get_logger("engines.settlement")

# Balances and remainders within this of zero count as settled.
SETTLEMENT_EPSILON = Decimal("0.000001")

_ZERO = Decimal("0.00")

SettlementMatrix = dict[str, dict[str, Decimal]]


@dataclass
class _Position:
    """A debtor or creditor with the magnitude still to settle."""

    participant_id: str
    remaining: Decimal


@dataclass(frozen=True)
class SettlementInstruction:
    """One payment: ``debtor_id`` pays ``creditor_id`` ``amount``."""

    debtor_id: str
    creditor_id: str
    amount: Decimal


class SettlementMatrixBuilder:
    """
    Build the greedy debt matrix from net balances.

    Contract:
        Pure function of the balances mapping.
    Guarantees:
        - One (possibly empty) row per debtor, i.e. per balance below
          -SETTLEMENT_EPSILON; settled participants and creditors never
          appear as rows.
        - Every amount in the matrix is > 0.
    Non-goals:
        - Not minimum-cardinality optimal.
    """

    @traced_engine("settlement", "1.0", fingerprint_fields=("balances",))
    def build(self, balances: Mapping[str, Decimal]) -> SettlementMatrix:
        debtors, creditors = self._partition(balances)

        matrix: SettlementMatrix = {d.participant_id: {} for d in debtors}

        i = j = 0
        while i < len(debtors) and j < len(creditors):
            debtor = debtors[i]
            creditor = creditors[j]
            amount = min(debtor.remaining, creditor.remaining)

            row = matrix[debtor.participant_id]
            # Accumulate: a pair can in principle be matched more than once.
            row[creditor.participant_id] = row.get(creditor.participant_id, _ZERO) + amount

            debtor.remaining -= amount
            creditor.remaining -= amount
            if debtor.remaining <= SETTLEMENT_EPSILON:
                i += 1
            if creditor.remaining <= SETTLEMENT_EPSILON:
                j += 1

        debtor_residual = sum((d.remaining for d in debtors[i:]), _ZERO)
        creditor_residual = sum((c.remaining for c in creditors[j:]), _ZERO)
        if debtor_residual > SETTLEMENT_EPSILON or creditor_residual > SETTLEMENT_EPSILON:
            logger.error("settlement_residual", extra={
                "debtor_residual": debtor_residual,
                "creditor_residual": creditor_residual,
                "debtor_count": len(debtors),
                "creditor_count": len(creditors),
            })
            raise SettlementResidualError(debtor_residual, creditor_residual)

        logger.info("settlement_matrix_built", extra={
            "debtor_count": len(debtors),
            "creditor_count": len(creditors),
            "instruction_count": sum(len(row) for row in matrix.values()),
        })
        return matrix

    @staticmethod
    def instructions(matrix: SettlementMatrix) -> tuple[SettlementInstruction, ...]:
        """Flatten a matrix into instructions, in matrix order."""
        return tuple(
            SettlementInstruction(debtor_id=debtor_id, creditor_id=creditor_id, amount=amount)
            for debtor_id, row in matrix.items()
            for creditor_id, amount in row.items()
        )

    @staticmethod
    def _partition(
        balances: Mapping[str, Decimal],
    ) -> tuple[list[_Position], list[_Position]]:
        debtors: list[_Position] = []
        creditors: list[_Position] = []
        for participant_id, balance in balances.items():
            if not isinstance(balance, Decimal):
                balance = Decimal(str(balance))
            if balance < -SETTLEMENT_EPSILON:
                debtors.append(_Position(participant_id, -balance))
            elif balance > SETTLEMENT_EPSILON:
                creditors.append(_Position(participant_id, balance))

        # Magnitude descending, then participant id ascending for ties.
        debtors.sort(key=lambda p: (-p.remaining, p.participant_id))
        creditors.sort(key=lambda p: (-p.remaining, p.participant_id))
        return debtors, creditors


_builder = SettlementMatrixBuilder()


def build_settlement_matrix(balances: Mapping[str, Decimal]) -> SettlementMatrix:
    """Module-level entry point for :meth:`SettlementMatrixBuilder.build`."""
    return _builder.build(balances)
