"""
Tests for TripService (trip_ledger_kernel/services/trip_service.py).

Covers:
- Trip creation and listing with derived dates
- Participants, expenses (equal and explicit split) and transfers
- Input validation at the service boundary
- Trip detail: balances and settlement matrix end to end
- Invariant violations surfaced from corrupted stored ledgers
"""

from decimal import Decimal
from itertools import count

import pytest

from trip_ledger_kernel.domain.ledger import Share, Transfer
from trip_ledger_kernel.exceptions import (
    DanglingReferenceError,
    InvalidAmountError,
    InvalidDateError,
    MissingFieldError,
    SelfTransferError,
    ShareSumMismatchError,
    TripNotFoundError,
    UnknownParticipantError,
)
from trip_ledger_kernel.services.ledger_store import InMemoryLedgerStore
from trip_ledger_kernel.services.trip_service import (
    TripService,
    coerce_shares,
    new_id,
)
from tests.builders import make_ledger, make_transfer


def D(value: str) -> Decimal:
    return Decimal(value)


@pytest.fixture
def trip(service):
    """A trip with participants A, B, C registered in that order."""
    ledger = service.create_trip("Lisbon", "Portugal", trip_id="trip_1")
    for pid, name in [("A", "Ana"), ("B", "Ben"), ("C", "Cy")]:
        service.add_participant(ledger.id, name, participant_id=pid)
    return ledger.id


class TestIds:

    def test_new_id_prefix(self):
        value = new_id("e")
        assert value.startswith("e_")
        assert len(value) == len("e_") + 12

    def test_new_ids_unique(self):
        assert len({new_id("p") for _ in range(100)}) == 100

    def test_custom_id_factory(self):
        counter = count(1)
        service = TripService(InMemoryLedgerStore(), id_factory=lambda p: f"{p}-{next(counter)}")

        ledger = service.create_trip("Lisbon")
        participant = service.add_participant(ledger.id, "Ana")

        assert ledger.id == "trip-1"
        assert participant.id == "p-2"


class TestTrips:

    def test_create_trip_normalizes_input(self, service):
        ledger = service.create_trip("  Lisbon ", None, start_date="2024-05-01")

        assert ledger.name == "Lisbon"
        assert ledger.location == ""
        assert ledger.start_date == "2024-05-01"
        assert ledger.id.startswith("trip_")

    def test_create_trip_requires_name(self, service):
        with pytest.raises(MissingFieldError):
            service.create_trip("   ")

    def test_create_trip_rejects_bad_date(self, service):
        with pytest.raises(InvalidDateError):
            service.create_trip("Lisbon", end_date="tomorrow")

    def test_list_trips_uses_derived_dates(self, service, trip):
        service.record_expense(trip, "A", "30.00", "Lunch", date="2024-05-04")
        service.record_transfer(trip, "B", "A", "10.00", date="2024-05-01")

        summaries = service.list_trips()

        assert len(summaries) == 1
        assert summaries[0].to_dict() == {
            "id": "trip_1",
            "name": "Lisbon",
            "location": "Portugal",
            "start_date": "2024-05-01",
            "end_date": "2024-05-04",
        }

    def test_explicit_dates_not_overwritten(self, service):
        ledger = service.create_trip("Lisbon", start_date="2024-05-02", trip_id="trip_x")
        service.add_participant("trip_x", "Ana", participant_id="A")
        service.record_expense("trip_x", "A", "10.00", "Taxi", date="2024-05-01")

        detail = service.get_trip_detail("trip_x")

        assert detail.dates.start == "2024-05-02"
        assert detail.dates.end == "2024-05-01"
        assert detail.ledger.start_date == ledger.start_date

    def test_unknown_trip(self, service):
        with pytest.raises(TripNotFoundError):
            service.get_trip_detail("nope")


class TestParticipants:

    def test_add_participant(self, service, trip):
        participant = service.add_participant(trip, "Dee")

        assert participant.name == "Dee"
        assert participant.id.startswith("p_")
        assert service.get_trip_detail(trip).ledger.participant_ids[-1] == participant.id

    def test_name_required(self, service, trip):
        with pytest.raises(MissingFieldError):
            service.add_participant(trip, "")

    def test_unknown_trip(self, service):
        with pytest.raises(TripNotFoundError):
            service.add_participant("nope", "Ana")


class TestRecordExpense:

    def test_equal_split(self, service, trip):
        expense = service.record_expense(trip, "A", "100.00", "Dinner")

        assert expense.shares == (
            Share("A", D("33.34")),
            Share("B", D("33.33")),
            Share("C", D("33.33")),
        )
        assert expense.id.startswith("e_")

    def test_explicit_shares_as_dicts(self, service, trip):
        expense = service.record_expense(
            trip, "B", "50", "Museum",
            shares=[
                {"participant_id": "A", "amount": "20.00"},
                {"participant_id": "B", "amount": 30},
            ],
        )

        assert expense.amount == D("50.00")
        assert [s.amount for s in expense.shares] == [D("20.00"), D("30.00")]

    def test_float_amount_accepted(self, service, trip):
        expense = service.record_expense(trip, "A", 12.5, "Coffee", shares=[Share("A", 12.5)])

        assert expense.amount == D("12.50")

    def test_share_sum_mismatch(self, service, trip):
        """100 split 50 + 40 is rejected and nothing is recorded."""
        with pytest.raises(ShareSumMismatchError):
            service.record_expense(
                trip, "A", "100.00", "Hotel",
                shares=[Share("A", "50.00"), Share("B", "40.00")],
            )

        assert service.get_trip_detail(trip).ledger.expenses == ()

    def test_unknown_payer(self, service, trip):
        with pytest.raises(UnknownParticipantError) as exc_info:
            service.record_expense(trip, "Z", "10.00", "Taxi")
        assert exc_info.value.role == "payer"

    def test_unknown_share_participant(self, service, trip):
        with pytest.raises(UnknownParticipantError):
            service.record_expense(trip, "A", "10.00", "Taxi", shares=[Share("Z", "10.00")])

    @pytest.mark.parametrize("amount", ["0", "-1", "ten", None])
    def test_invalid_amount(self, service, trip, amount):
        with pytest.raises(InvalidAmountError):
            service.record_expense(trip, "A", amount, "Taxi")

    @pytest.mark.parametrize("field", ["payer_id", "description"])
    def test_required_fields(self, service, trip, field):
        kwargs = {"payer_id": "A", "amount": "10.00", "description": "Taxi", field: " "}

        with pytest.raises(MissingFieldError) as exc_info:
            service.record_expense(trip, **kwargs)
        assert exc_info.value.field == field

    def test_share_missing_amount(self, service, trip):
        with pytest.raises(MissingFieldError):
            service.record_expense(trip, "A", "10.00", "Taxi", shares=[{"participant_id": "A"}])

    def test_invalid_date(self, service, trip):
        with pytest.raises(InvalidDateError):
            service.record_expense(trip, "A", "10.00", "Taxi", date="2024-02-31")

    def test_no_participants(self, service):
        """A payer must exist, so an empty trip fails on the payer check."""
        service.create_trip("Empty", trip_id="trip_empty")

        with pytest.raises(UnknownParticipantError):
            service.record_expense("trip_empty", "A", "10.00", "Taxi")

    def test_unknown_trip(self, service):
        with pytest.raises(TripNotFoundError):
            service.record_expense("nope", "A", "10.00", "Taxi")


class TestRecordTransfer:

    def test_record_transfer(self, service, trip):
        transfer = service.record_transfer(trip, "B", "A", "33.33", date="2024-05-03")

        assert transfer == Transfer(transfer.id, "B", "A", D("33.33"), "2024-05-03")
        assert transfer.id.startswith("t_")

    def test_self_transfer(self, service, trip):
        with pytest.raises(SelfTransferError):
            service.record_transfer(trip, "A", "A", "5.00")

    def test_unknown_recipient(self, service, trip):
        with pytest.raises(UnknownParticipantError) as exc_info:
            service.record_transfer(trip, "A", "Z", "5.00")
        assert exc_info.value.role == "transfer.to_id"

    def test_missing_sender(self, service, trip):
        with pytest.raises(MissingFieldError):
            service.record_transfer(trip, "", "A", "5.00")


class TestTripDetail:
    """End-to-end: record, then read balances and settlement."""

    def test_scenario_equal_split(self, service, trip):
        service.record_expense(trip, "A", "100.00", "Dinner")

        detail = service.get_trip_detail(trip)

        assert detail.balances == {"A": D("66.66"), "B": D("-33.33"), "C": D("-33.33")}
        assert detail.matrix == {"B": {"A": D("33.33")}, "C": {"A": D("33.33")}}

    def test_scenario_after_repayment(self, service, trip):
        service.record_expense(trip, "A", "100.00", "Dinner")
        service.record_transfer(trip, "B", "A", "33.33")

        detail = service.get_trip_detail(trip)

        assert detail.balances == {"A": D("33.33"), "B": D("0.00"), "C": D("-33.33")}
        assert detail.matrix == {"C": {"A": D("33.33")}}
        assert [(s.debtor_id, s.creditor_id, s.amount) for s in detail.settlements] == [
            ("C", "A", D("33.33")),
        ]

    def test_empty_trip(self, service, trip):
        detail = service.get_trip_detail(trip)

        assert detail.matrix == {}
        assert detail.settlements == ()
        assert detail.dates.is_open

    def test_to_dict(self, service, trip):
        service.record_expense(trip, "A", "100.00", "Dinner", date="2024-05-01", expense_id="e_1")
        service.record_transfer(trip, "B", "A", "33.33", transfer_id="t_1")

        data = service.get_trip_detail(trip).to_dict()

        assert data["id"] == "trip_1"
        assert data["start_date"] == data["end_date"] == "2024-05-01"
        assert data["participants"][0] == {"id": "A", "name": "Ana"}
        assert data["expenses"][0]["amount"] == "100.00"
        assert data["expenses"][0]["shares"][0] == {"participant_id": "A", "amount": "33.34"}
        assert data["transfers"] == [{
            "id": "t_1", "from_id": "B", "to_id": "A", "amount": "33.33", "date": None,
        }]
        assert data["net_balances"] == {"A": "33.33", "B": "0.00", "C": "-33.33"}
        assert data["debt_matrix"] == {"C": {"A": "33.33"}}

    def test_trip_id_bound_to_log_context(self, service, trip, captured_logs):
        service.record_expense(trip, "A", "30.00", "Lunch")
        service.get_trip_detail(trip)

        computed = next(r for r in captured_logs() if r["message"] == "net_balances_computed")
        assert computed["trip_id"] == trip


class TestCorruptedStore:
    """A ledger that bypassed append validation fails loudly on read."""

    def _service_with(self, ledger):
        store = InMemoryLedgerStore()
        store.create(ledger)
        return TripService(store)

    def test_dangling_reference_raised_and_logged(self, captured_logs):
        ledger = make_ledger(
            participant_ids=("A", "B"),
            transfers=[make_transfer("t1", "A", "ghost", "5.00")],
        )
        service = self._service_with(ledger)

        with pytest.raises(DanglingReferenceError):
            service.get_trip_detail(ledger.id)

        record = next(
            r for r in captured_logs() if r["message"] == "trip_detail_invariant_violation"
        )
        assert record["level"] == "ERROR"
        assert record["error"]["code"] == "DANGLING_REFERENCE"
        assert record["error"]["category"] == "invariant"
        assert record["trip_id"] == ledger.id


class TestCoerceShares:

    def test_none_and_empty(self):
        assert coerce_shares(None) == ()
        assert coerce_shares([]) == ()

    def test_mixed_inputs(self):
        shares = coerce_shares([Share("A", "1"), {"participant_id": "B", "amount": "2"}])

        assert shares == (Share("A", D("1.00")), Share("B", D("2.00")))

    def test_missing_participant(self):
        with pytest.raises(MissingFieldError):
            coerce_shares([{"amount": "2"}])
