"""
Module: trip_ledger_engines.allocation
Responsibility:
    Decide how one expense's amount is divided among a trip's participants:
    validate caller-supplied shares, or perform an exact equal split with a
    deterministic penny remainder.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import trip_ledger_kernel.domain and trip_ledger_kernel.exceptions.

Invariants enforced:
    - Conservation: returned shares always total the expense amount to the
      cent (equal split by construction, explicit shares by validation).
    - Determinism: the penny remainder of an equal split goes to
      participants in the order given, one cent each.
    - Exactness: all splitting runs on integer cents.

Failure modes:
    - InvalidAmountError if amount is not > 0.
    - NoParticipantsError if participant_ids is empty.
    - UnknownParticipantError / DuplicateShareError / NegativeShareError /
      ShareSumMismatchError on invalid explicit shares.

Usage:
    from trip_ledger_engines.allocation import ExpenseShareAllocator

    shares = ExpenseShareAllocator().allocate(
        Decimal("100.00"), ["p_a", "p_b", "p_c"]
    )
    # (Share("p_a", 33.34), Share("p_b", 33.33), Share("p_c", 33.33))
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal

from trip_ledger_engines.tracer import traced_engine
from trip_ledger_kernel.domain.ledger import Share
from trip_ledger_kernel.domain.values import (
    ZERO,
    from_minor_units,
    to_minor_units,
    to_positive_amount,
)
from trip_ledger_kernel.exceptions import (
    DuplicateShareError,
    NegativeShareError,
    NoParticipantsError,
    ShareSumMismatchError,
    UnknownParticipantError,
)
from trip_ledger_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")

# Explicit shares may differ from the amount by strictly less than this.
# Share amounts are whole cents, so the only passing difference is zero and
# a split one full cent off is rejected. Every stored expense balances to the
# cent, which keeps net balances summing to exactly zero.
SHARE_SUM_TOLERANCE = Decimal("0.01")


class ExpenseShareAllocator:
    """
    Allocate an expense amount across participants.

    Contract:
        Pure function of (amount, participant_ids, explicit_shares).
        No I/O, no database access.
    Guarantees:
        - Explicit shares that pass validation are returned unchanged.
        - Equal split shares follow participant_ids order and sum exactly
          to amount.
    Non-goals:
        - Does not check that participant_ids belong to any trip; the
          caller passes the trip's current participant list.
    """

    @traced_engine(
        "allocation",
        "1.0",
        fingerprint_fields=("amount", "participant_ids", "explicit_shares"),
    )
    def allocate(
        self,
        amount: Decimal | str | int,
        participant_ids: Sequence[str],
        explicit_shares: Sequence[Share] | None = None,
    ) -> tuple[Share, ...]:
        """
        Produce the shares for one expense.

        Args:
            amount: Expense amount, > 0.
            participant_ids: The trip's participants in registration order.
            explicit_shares: Optional caller-chosen split. Empty or None
                means equal split.

        Returns:
            Tuple of Share, one per participant (equal split) or the
            explicit shares as given.
        """
        amount = to_positive_amount(amount)
        if not participant_ids:
            logger.warning("allocation_no_participants", extra={
                "amount": str(amount),
            })
            raise NoParticipantsError()

        if explicit_shares:
            return self._validate_explicit(amount, participant_ids, explicit_shares)
        return self._split_equally(amount, participant_ids)

    def _validate_explicit(
        self,
        amount: Decimal,
        participant_ids: Sequence[str],
        explicit_shares: Sequence[Share],
    ) -> tuple[Share, ...]:
        known = set(participant_ids)
        seen: set[str] = set()
        total = ZERO
        for share in explicit_shares:
            if share.participant_id not in known:
                raise UnknownParticipantError(share.participant_id, "share")
            if share.participant_id in seen:
                raise DuplicateShareError(share.participant_id)
            seen.add(share.participant_id)
            if share.amount < ZERO:
                raise NegativeShareError(share.participant_id, share.amount)
            total += share.amount

        # Strict bound, see SHARE_SUM_TOLERANCE.
        if abs(total - amount) >= SHARE_SUM_TOLERANCE:
            logger.info("allocation_share_sum_mismatch", extra={
                "amount": str(amount),
                "share_total": str(total),
            })
            raise ShareSumMismatchError(amount, total)

        logger.info("allocation_explicit_accepted", extra={
            "amount": str(amount),
            "share_count": len(explicit_shares),
        })
        return tuple(explicit_shares)

    def _split_equally(
        self,
        amount: Decimal,
        participant_ids: Sequence[str],
    ) -> tuple[Share, ...]:
        """Equal split on integer cents.

        Postconditions:
            - sum(result) == amount exactly.
            - |share_i - amount/N| <= 0.01 for every share.
        """
        count = len(participant_ids)
        amount_cents = to_minor_units(amount)
        base = int(
            (Decimal(amount_cents) / Decimal(count)).to_integral_value(
                rounding=ROUND_HALF_UP
            )
        )
        remainder = amount_cents - base * count
        step = 1 if remainder > 0 else -1

        cents = [base] * count
        # |remainder| <= count / 2 because base is rounded to nearest.
        for i in range(abs(remainder)):
            cents[i] += step

        shares = tuple(
            Share(participant_id=pid, amount=from_minor_units(c))
            for pid, c in zip(participant_ids, cents)
        )

        logger.info("allocation_equal_split_completed", extra={
            "amount": str(amount),
            "participant_count": count,
            "base_share": str(from_minor_units(base)),
            "remainder_cents": remainder,
        })
        return shares


_allocator = ExpenseShareAllocator()


def allocate_shares(
    amount: Decimal | str | int,
    participant_ids: Sequence[str],
    explicit_shares: Sequence[Share] | None = None,
) -> tuple[Share, ...]:
    """Module-level entry point for :meth:`ExpenseShareAllocator.allocate`."""
    return _allocator.allocate(amount, participant_ids, explicit_shares)
