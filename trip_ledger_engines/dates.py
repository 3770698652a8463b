"""
Module: trip_ledger_engines.dates
Responsibility:
    Derive a trip's effective start and end dates from its explicit dates
    and the dates of recorded expenses and transfers.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - An explicit date always wins for its side.
    - ISO-8601 YYYY-MM-DD strings order lexicographically, so min/max over
      the strings is min/max over the dates.
    - Purity: no clock access.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from trip_ledger_engines.tracer import traced_engine
from trip_ledger_kernel.domain.ledger import Ledger
from trip_ledger_kernel.logging_config import get_logger

logger = get_logger("engines.dates")


@dataclass(frozen=True)
class DateRange:
    """Effective trip dates; either side may be absent."""

    start: str | None
    end: str | None

    @property
    def is_open(self) -> bool:
        """True if either side is unknown."""
        return self.start is None or self.end is None


class DateRangeDeriver:
    """Fold explicit and recorded dates into a DateRange."""

    def derive(
        self,
        explicit_start: str | None,
        explicit_end: str | None,
        dated_records: Iterable[str | None],
    ) -> DateRange:
        dates = [d for d in dated_records if d]
        start = explicit_start or (min(dates) if dates else None)
        end = explicit_end or (max(dates) if dates else None)
        return DateRange(start=start, end=end)

    @traced_engine("dates", "1.0")
    def derive_for(self, ledger: Ledger) -> DateRange:
        result = self.derive(ledger.start_date, ledger.end_date, ledger.dated_records())
        logger.debug("trip_dates_derived", extra={
            "trip_id": ledger.id,
            "start": result.start,
            "end": result.end,
        })
        return result


_deriver = DateRangeDeriver()


def derive_dates(ledger: Ledger) -> DateRange:
    """Module-level entry point for :meth:`DateRangeDeriver.derive_for`."""
    return _deriver.derive_for(ledger)
