"""
Values -- amount and date normalization for trip ledger records.

Responsibility:
    Converts boundary input (JSON numbers, strings, Decimals) into the
    canonical representations used by the domain model: cent-precision
    ``Decimal`` amounts and ISO-8601 ``YYYY-MM-DD`` date strings. Also
    provides the integer minor-unit (cents) conversions the engines use for
    exact arithmetic.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by the ledger model and every engine.

Invariants enforced:
    - Amounts are Decimal, never float, once past this module.
    - Amounts carry exactly two decimal places (ROUND_HALF_UP).
    - Round-trip: from_minor_units(to_minor_units(a)) == a for any
      normalized amount.

Failure modes:
    - InvalidAmountError when a value cannot be read as a finite number.
    - InvalidDateError when a date is not a real YYYY-MM-DD calendar date.
"""

from __future__ import annotations

import re
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from trip_ledger_kernel.exceptions import InvalidAmountError, InvalidDateError

MINOR_UNIT_PLACES = 2
CENT = Decimal("0.01")
ZERO = Decimal("0.00")

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def to_amount(value: Decimal | int | str | float) -> Decimal:
    """
    Normalize a boundary value to a cent-precision Decimal.

    Floats are read through ``str()`` so ``0.1`` becomes ``Decimal("0.1")``
    rather than its binary expansion.

    Raises:
        InvalidAmountError: value is None, a bool, unparseable, NaN or infinite.
    """
    if value is None or isinstance(value, bool):
        raise InvalidAmountError(value, "not a number")
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as e:
            raise InvalidAmountError(value, "not a number") from e
    if not amount.is_finite():
        raise InvalidAmountError(value, "not a finite number")
    try:
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        # More digits than the context precision holds
        raise InvalidAmountError(value, "out of range") from e


def to_positive_amount(value: Decimal | int | str | float) -> Decimal:
    """Normalize like :func:`to_amount` and require the result to be > 0."""
    amount = to_amount(value)
    if amount <= ZERO:
        raise InvalidAmountError(value)
    return amount


def to_share_amount(value: Decimal | int | str | float) -> Decimal:
    """
    Normalize an explicit share amount without rounding it.

    A share is part of a total the caller already chose, so a value finer
    than a cent is rejected instead of rounded (rounding ``-0.001`` would
    also turn a negative share into ``0.00``).

    Raises:
        InvalidAmountError: as :func:`to_amount`, or the value has
            non-zero digits below the cent.
    """
    amount = to_amount(value)
    raw = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    if raw != amount:
        raise InvalidAmountError(value, "finer than a cent")
    return amount


def to_minor_units(amount: Decimal) -> int:
    """Convert a Decimal amount to integer cents."""
    return int(amount.scaleb(MINOR_UNIT_PLACES).to_integral_value(rounding=ROUND_HALF_UP))


def from_minor_units(units: int) -> Decimal:
    """Convert integer cents back to a two-place Decimal."""
    return Decimal(units).scaleb(-MINOR_UNIT_PLACES)


def format_amount(amount: Decimal) -> str:
    """Render an amount with exactly two decimals (e.g. ``"33.30"``)."""
    return str(amount.quantize(CENT, rounding=ROUND_HALF_UP))


def to_iso_date(value: str | date | None, field: str = "date") -> str | None:
    """
    Normalize an optional date to a ``YYYY-MM-DD`` string.

    ``None`` and the empty string mean "no date" and return None.

    Raises:
        InvalidDateError: value is not a real calendar date in ISO form.
    """
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str) or not _ISO_DATE.match(value.strip()):
        raise InvalidDateError(value, field)
    text = value.strip()
    try:
        date.fromisoformat(text)
    except ValueError as e:
        raise InvalidDateError(value, field) from e
    return text
