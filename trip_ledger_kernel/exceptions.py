"""
Typed Exception Hierarchy for the Trip Ledger.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger (an API boundary, a CLI, a test) must be able to tell
"you sent bad input" apart from "the stored ledger is corrupt" without
parsing message strings. Every error therefore has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE attribute (machine-readable, API-safe)
  3. Structured DATA carried as attributes (not just a message string)

Example:
    try:
        service.record_expense(trip_id, payer_id="p_1", amount="100.00",
                               description="Dinner", shares=shares)
    except ShareSumMismatchError as e:
        return {"error": e.code, "expected": e.expected, "actual": e.actual}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    TripLedgerError (base)
    |
    +-- ValidationError
    |   +-- UnknownParticipantError
    |   +-- NegativeShareError
    |   +-- ShareSumMismatchError
    |   +-- NoParticipantsError
    |   +-- InvalidAmountError
    |   +-- DuplicateShareError
    |   +-- SelfTransferError
    |   +-- InvalidDateError
    |   +-- MissingFieldError
    |   +-- DuplicateIdError
    |
    +-- InvariantViolation
    |   +-- DanglingReferenceError
    |   +-- ConservationViolationError
    |   +-- SettlementResidualError
    |
    +-- TripNotFoundError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                    | When Raised
----------------|-------------------------|---------------------------------------
Validation      | UNKNOWN_PARTICIPANT     | Share/payer/transfer id not in trip
                | NEGATIVE_SHARE          | Explicit share amount < 0
                | SHARE_SUM_MISMATCH      | Shares do not add up to the amount
                | NO_PARTICIPANTS         | Equal split with nobody to split over
                | INVALID_AMOUNT          | Amount missing, unparseable or <= 0
                | DUPLICATE_SHARE         | Same participant twice in one expense
                | SELF_TRANSFER           | Transfer from a participant to itself
                | INVALID_DATE            | Date is not YYYY-MM-DD
                | MISSING_FIELD           | Required field empty (name, ...)
                | DUPLICATE_ID            | Appended record id already used
----------------|-------------------------|---------------------------------------
Invariant       | DANGLING_REFERENCE      | Stored entry references unknown id
                | CONSERVATION_VIOLATION  | Net balances do not sum to zero
                | SETTLEMENT_RESIDUAL     | Debtors/creditors left unsettled
----------------|-------------------------|---------------------------------------
Lookup          | TRIP_NOT_FOUND          | No trip with the given id

===============================================================================
HANDLING PATTERNS
===============================================================================

ValidationError: surface to the caller; the ledger is unchanged and retrying
the same input is pointless.

InvariantViolation: the stored ledger or an upstream component is broken.
Abort, apply nothing, log at ERROR with exc_info, alert. Never retry.
"""

from decimal import Decimal


class TripLedgerError(Exception):
    """
    Base exception for all trip ledger errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "TRIP_LEDGER_ERROR"


# Validation exceptions


class ValidationError(TripLedgerError):
    """Caller-supplied input violates a documented precondition."""

    code: str = "VALIDATION_ERROR"


class UnknownParticipantError(ValidationError):
    """Referenced participant is not registered on the trip."""

    code: str = "UNKNOWN_PARTICIPANT"

    def __init__(self, participant_id: str, role: str = "share"):
        self.participant_id = participant_id
        self.role = role
        super().__init__(f"Unknown participant in {role}: {participant_id}")


class NegativeShareError(ValidationError):
    """Explicit share amount is negative."""

    code: str = "NEGATIVE_SHARE"

    def __init__(self, participant_id: str, amount: Decimal):
        self.participant_id = participant_id
        self.amount = str(amount)
        super().__init__(
            f"Share for {participant_id} cannot be negative: {amount}"
        )


class ShareSumMismatchError(ValidationError):
    """Sum of explicit shares does not match the expense amount."""

    code: str = "SHARE_SUM_MISMATCH"

    def __init__(self, expected: Decimal, actual: Decimal):
        self.expected = str(expected)
        self.actual = str(actual)
        super().__init__(
            f"Sum of shares must equal total amount: expected {expected}, got {actual}"
        )


class NoParticipantsError(ValidationError):
    """Equal split requested on a trip with no participants."""

    code: str = "NO_PARTICIPANTS"

    def __init__(self, trip_id: str | None = None):
        self.trip_id = trip_id
        super().__init__(
            "Cannot split an expense with no participants"
            + (f" on trip {trip_id}" if trip_id else "")
        )


class InvalidAmountError(ValidationError):
    """Amount is missing, not a number, or not strictly positive."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, value: object, reason: str = "must be greater than zero"):
        self.value = str(value)
        self.reason = reason
        super().__init__(f"Invalid amount {value!r}: {reason}")


class DuplicateShareError(ValidationError):
    """The same participant appears more than once in an expense's shares."""

    code: str = "DUPLICATE_SHARE"

    def __init__(self, participant_id: str):
        self.participant_id = participant_id
        super().__init__(f"Participant {participant_id} appears twice in shares")


class SelfTransferError(ValidationError):
    """Transfer sender and recipient are the same participant."""

    code: str = "SELF_TRANSFER"

    def __init__(self, participant_id: str):
        self.participant_id = participant_id
        super().__init__(
            f"Transfer sender and recipient must differ: {participant_id}"
        )


class InvalidDateError(ValidationError):
    """Date is not an ISO-8601 calendar date (YYYY-MM-DD)."""

    code: str = "INVALID_DATE"

    def __init__(self, value: object, field: str = "date"):
        self.value = str(value)
        self.field = field
        super().__init__(f"Invalid {field}: {value!r} (expected YYYY-MM-DD)")


class MissingFieldError(ValidationError):
    """A required field was empty or absent."""

    code: str = "MISSING_FIELD"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Missing required field: {field}")


class DuplicateIdError(ValidationError):
    """An appended record reuses an id already present on the trip."""

    code: str = "DUPLICATE_ID"

    def __init__(self, record_type: str, record_id: str):
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(f"{record_type} id already exists: {record_id}")


# Invariant exceptions


class InvariantViolation(TripLedgerError):
    """
    An internal consistency property failed.

    Indicates corrupted upstream state or a bug. The operation is aborted
    and no partial result is returned.
    """

    code: str = "INVARIANT_VIOLATION"


class DanglingReferenceError(InvariantViolation):
    """A stored ledger entry references a participant the trip does not have."""

    code: str = "DANGLING_REFERENCE"

    def __init__(self, participant_id: str, entry_type: str, entry_id: str):
        self.participant_id = participant_id
        self.entry_type = entry_type
        self.entry_id = entry_id
        super().__init__(
            f"{entry_type} {entry_id} references unknown participant {participant_id}"
        )


class ConservationViolationError(InvariantViolation):
    """Net balances do not sum to zero."""

    code: str = "CONSERVATION_VIOLATION"

    def __init__(self, total: Decimal):
        self.total = str(total)
        super().__init__(f"Net balances sum to {total}, expected 0")


class SettlementResidualError(InvariantViolation):
    """Greedy settlement finished with unsettled debt or credit."""

    code: str = "SETTLEMENT_RESIDUAL"

    def __init__(self, debtor_residual: Decimal, creditor_residual: Decimal):
        self.debtor_residual = str(debtor_residual)
        self.creditor_residual = str(creditor_residual)
        super().__init__(
            f"Settlement left residuals: debtors={debtor_residual}, "
            f"creditors={creditor_residual}"
        )


# Lookup exceptions


class TripNotFoundError(TripLedgerError):
    """Trip with given ID was not found."""

    code: str = "TRIP_NOT_FOUND"

    def __init__(self, trip_id: str):
        self.trip_id = trip_id
        super().__init__(f"Trip not found: {trip_id}")
