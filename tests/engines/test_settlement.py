"""
Tests for the Settlement Matrix Builder.

Covers:
- Greedy matching of debtors to creditors
- Row and column sums against the balances
- Tie-break ordering and determinism
- Settled participants and empty input
- Residual detection on balances that do not sum to zero
"""

from decimal import Decimal

import pytest

from trip_ledger_engines.settlement import (
    SettlementInstruction,
    SettlementMatrixBuilder,
    build_settlement_matrix,
)
from trip_ledger_kernel.exceptions import SettlementResidualError


def D(value: str) -> Decimal:
    return Decimal(value)


def _column_sum(matrix, creditor_id) -> Decimal:
    return sum((row.get(creditor_id, D("0")) for row in matrix.values()), D("0"))


class TestGreedyMatching:

    def setup_method(self):
        self.builder = SettlementMatrixBuilder()

    def test_single_creditor_two_debtors(self):
        balances = {"A": D("66.66"), "B": D("-33.33"), "C": D("-33.33")}

        matrix = self.builder.build(balances)

        assert matrix == {"B": {"A": D("33.33")}, "C": {"A": D("33.33")}}

    def test_settled_participant_excluded(self):
        balances = {"A": D("33.33"), "B": D("0.00"), "C": D("-33.33")}

        matrix = self.builder.build(balances)

        assert matrix == {"C": {"A": D("33.33")}}

    def test_everyone_settled(self):
        assert self.builder.build({"A": D("0"), "B": D("0.00")}) == {}

    def test_empty_balances(self):
        assert self.builder.build({}) == {}

    def test_largest_debtor_pays_largest_creditor_first(self):
        balances = {
            "A": D("70.00"),
            "B": D("30.00"),
            "C": D("-60.00"),
            "D": D("-40.00"),
        }

        matrix = self.builder.build(balances)

        # C(60) -> A(70): 60; D(40) -> A(10 left): 10, D -> B: 30
        assert matrix == {
            "C": {"A": D("60.00")},
            "D": {"A": D("10.00"), "B": D("30.00")},
        }

    def test_debtor_split_across_creditors(self):
        balances = {"A": D("10.00"), "B": D("10.00"), "C": D("-20.00")}

        matrix = self.builder.build(balances)

        assert matrix == {"C": {"A": D("10.00"), "B": D("10.00")}}

    def test_row_and_column_sums(self):
        balances = {
            "A": D("12.34"),
            "B": D("-5.67"),
            "C": D("40.01"),
            "D": D("-46.68"),
            "E": D("0.00"),
        }

        matrix = self.builder.build(balances)

        for debtor_id, row in matrix.items():
            assert sum(row.values()) == -balances[debtor_id]
        for creditor_id in ("A", "C"):
            assert _column_sum(matrix, creditor_id) == balances[creditor_id]
        assert all(amount > 0 for row in matrix.values() for amount in row.values())


class TestSubCentBalances:
    """Balances finer than a cent settle on their exact magnitudes."""

    def setup_method(self):
        self.builder = SettlementMatrixBuilder()

    def test_zero_sum_fractions_settle_without_residual(self):
        balances = {"A": D("0.006"), "B": D("-0.004"), "C": D("-0.002")}

        matrix = self.builder.build(balances)

        assert matrix == {"B": {"A": D("0.004")}, "C": {"A": D("0.002")}}

    def test_row_sum_keeps_sub_cent_digits(self):
        matrix = self.builder.build({"A": D("0.333"), "B": D("-0.333")})

        assert matrix == {"B": {"A": D("0.333")}}
        assert sum(matrix["B"].values()) == D("0.333")

    def test_debtor_below_a_cent_gets_a_row(self):
        matrix = self.builder.build({"A": D("0.004"), "B": D("-0.004")})

        assert list(matrix) == ["B"]
        assert _column_sum(matrix, "A") == D("0.004")

    def test_within_epsilon_counts_as_settled(self):
        balances = {"A": D("0.0000005"), "B": D("-0.0000005")}

        assert self.builder.build(balances) == {}

    def test_unbalanced_fractions_still_raise(self):
        with pytest.raises(SettlementResidualError) as exc_info:
            self.builder.build({"A": D("0.006"), "B": D("-0.004")})
        assert exc_info.value.creditor_residual == "0.002"


class TestDeterminism:

    def test_ties_broken_by_participant_id(self):
        """Equal magnitudes are ordered by id regardless of mapping order."""
        balances = {"zoe": D("-10.00"), "amy": D("-10.00"), "kim": D("20.00")}

        matrix = build_settlement_matrix(balances)

        assert list(matrix) == ["amy", "zoe"]

    def test_creditor_ties_broken_by_participant_id(self):
        balances = {"d": D("-15.00"), "e": D("-5.00"), "y": D("10.00"), "x": D("10.00")}

        matrix = build_settlement_matrix(balances)

        assert matrix == {"d": {"x": D("10.00"), "y": D("5.00")}, "e": {"y": D("5.00")}}

    def test_same_input_same_output(self):
        balances = {"A": D("5.00"), "B": D("-2.50"), "C": D("-2.50")}

        first = build_settlement_matrix(balances)
        second = build_settlement_matrix(dict(reversed(list(balances.items()))))

        assert first == second
        assert list(first) == list(second)


class TestResidual:

    def test_unbalanced_input_raises(self):
        with pytest.raises(SettlementResidualError) as exc_info:
            build_settlement_matrix({"A": D("10.00"), "B": D("-4.00")})
        assert exc_info.value.creditor_residual == "6.00"
        assert exc_info.value.debtor_residual == "0.00"
        assert exc_info.value.code == "SETTLEMENT_RESIDUAL"

    def test_only_debtors_raises(self):
        with pytest.raises(SettlementResidualError):
            build_settlement_matrix({"A": D("-1.00")})

    def test_residual_logged(self, captured_logs):
        with pytest.raises(SettlementResidualError):
            build_settlement_matrix({"A": D("-1.00")})

        record = next(r for r in captured_logs() if r["message"] == "settlement_residual")
        assert record["level"] == "ERROR"
        assert record["debtor_residual"] == "1.00"


class TestInstructions:

    def test_flattened_in_matrix_order(self):
        matrix = {"C": {"A": D("60.00")}, "D": {"A": D("10.00"), "B": D("30.00")}}

        instructions = SettlementMatrixBuilder.instructions(matrix)

        assert instructions == (
            SettlementInstruction("C", "A", D("60.00")),
            SettlementInstruction("D", "A", D("10.00")),
            SettlementInstruction("D", "B", D("30.00")),
        )

    def test_empty_matrix(self):
        assert SettlementMatrixBuilder.instructions({}) == ()

    def test_build_traced(self, captured_logs):
        build_settlement_matrix({"A": D("1.00"), "B": D("-1.00")})

        traces = [r for r in captured_logs() if r["message"] == "TRIP_LEDGER_ENGINE_TRACE"]
        assert traces[-1]["engine_name"] == "settlement"
        assert traces[-1]["function"] == "SettlementMatrixBuilder.build"
