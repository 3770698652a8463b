"""
Module: trip_ledger_engines.balances
Responsibility:
    Fold a trip's expenses and transfers into a signed net balance per
    participant: positive means the group owes them, negative means they
    owe the group.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Conservation: balances sum to exactly zero (integer cents). Every
      expense and transfer is a zero-sum redistribution inside the group.
    - Totality: every participant id referenced by an entry must be in the
      ledger's participant set. A miss is a corrupted ledger, never skipped.

Failure modes:
    - DanglingReferenceError if an entry references an unknown participant.
    - ConservationViolationError if the fold does not sum to zero.

Audit relevance:
    Balances are never stored; they are recomputed from the append-only
    entries on every read, so a replay of the same ledger always yields the
    same balances.
"""

from __future__ import annotations

from decimal import Decimal

from trip_ledger_engines.tracer import traced_engine
from trip_ledger_kernel.domain.ledger import Ledger
from trip_ledger_kernel.domain.values import from_minor_units, to_minor_units
from trip_ledger_kernel.exceptions import (
    ConservationViolationError,
    DanglingReferenceError,
)
from trip_ledger_kernel.logging_config import get_logger

logger = get_logger("engines.balances")


class BalanceCalculator:
    """
    Compute net balances for a ledger snapshot.

    Contract:
        Pure function of the ledger. Result keys are the ledger's
        participant ids in registration order.
    Guarantees:
        - sum(result.values()) == 0.
    Non-goals:
        - Does not round or hide tiny balances; the settlement builder
          decides what counts as settled.
    """

    @traced_engine("balances", "1.0")
    def compute(self, ledger: Ledger) -> dict[str, Decimal]:
        cents: dict[str, int] = {pid: 0 for pid in ledger.participant_ids}

        def post(participant_id: str, delta: int, entry_type: str, entry_id: str) -> None:
            if participant_id not in cents:
                logger.error("balance_dangling_reference", extra={
                    "trip_id": ledger.id,
                    "participant_id": participant_id,
                    "entry_type": entry_type,
                    "entry_id": entry_id,
                })
                raise DanglingReferenceError(participant_id, entry_type, entry_id)
            cents[participant_id] += delta

        for expense in ledger.expenses:
            # Payer fronted the money; each share is that participant's obligation.
            post(expense.payer_id, to_minor_units(expense.amount), "expense", expense.id)
            for share in expense.shares:
                post(share.participant_id, -to_minor_units(share.amount), "expense", expense.id)

        for transfer in ledger.transfers:
            # Sender's debt shrinks, recipient's credit shrinks.
            amount = to_minor_units(transfer.amount)
            post(transfer.from_id, amount, "transfer", transfer.id)
            post(transfer.to_id, -amount, "transfer", transfer.id)

        total = sum(cents.values())
        if total != 0:
            logger.error("balance_conservation_violated", extra={
                "trip_id": ledger.id,
                "total_cents": total,
            })
            raise ConservationViolationError(from_minor_units(total))

        logger.info("net_balances_computed", extra={
            "trip_id": ledger.id,
            "participant_count": len(cents),
            "expense_count": len(ledger.expenses),
            "transfer_count": len(ledger.transfers),
        })
        return {pid: from_minor_units(c) for pid, c in cents.items()}


_calculator = BalanceCalculator()


def compute_net_balances(ledger: Ledger) -> dict[str, Decimal]:
    """Module-level entry point for :meth:`BalanceCalculator.compute`."""
    return _calculator.compute(ledger)
