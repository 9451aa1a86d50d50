"""Tests for split allocation."""

from decimal import Decimal

import pytest

from tripsettle.allocation import allocate, verify_conservation
from tripsettle.exceptions import ConservationError, ExpenseValidationError
from tripsettle.models import (
    EqualSplit,
    Expense,
    ItemizedSplit,
    Participant,
    WeightedSplit,
)


def make_expense(amount: str, split, currency: str = "USD", payer: str = "A") -> Expense:
    """Create an expense for testing."""
    return Expense(
        id="e1",
        trip_id="trip",
        payer_id=payer,
        currency=currency,
        amount=Decimal(amount),
        split=split,
    )


class TestEqualSplit:
    def test_one_hundred_dollars_three_ways(self):
        """$100 over A, B, C: A gets the extra cent."""
        shares = allocate(make_expense("100.00", EqualSplit(participants=["A", "B", "C"])))
        assert shares == {
            "A": Decimal("33.34"),
            "B": Decimal("33.33"),
            "C": Decimal("33.33"),
        }

    def test_extra_cent_follows_id_order(self):
        """Listing order doesn't matter, ascending id does."""
        shares = allocate(make_expense("100.00", EqualSplit(participants=["C", "B", "A"])))
        assert shares["A"] == Decimal("33.34")
        assert list(shares) == ["A", "B", "C"]

    def test_single_participant(self):
        shares = allocate(make_expense("12.34", EqualSplit(participants=["B"])))
        assert shares == {"B": Decimal("12.34")}

    def test_zero_decimal_currency(self):
        """JPY has no minor unit below the yen."""
        shares = allocate(
            make_expense("1000", EqualSplit(participants=["A", "B", "C"]), currency="JPY")
        )
        assert shares == {"A": Decimal("334"), "B": Decimal("333"), "C": Decimal("333")}

    def test_three_decimal_currency(self):
        """BHD splits in fils (0.001)."""
        shares = allocate(
            make_expense("1.000", EqualSplit(participants=["A", "B", "C"]), currency="BHD")
        )
        assert shares == {
            "A": Decimal("0.334"),
            "B": Decimal("0.333"),
            "C": Decimal("0.333"),
        }


class TestWeightedSplit:
    def test_two_to_one(self):
        """$90 with weights A=2, B=1 is 60/30."""
        shares = allocate(
            make_expense(
                "90.00", WeightedSplit(weights={"A": Decimal("2"), "B": Decimal("1")})
            )
        )
        assert shares == {"A": Decimal("60.00"), "B": Decimal("30.00")}

    def test_tie_broken_by_id(self):
        """Equal remainders: the lower id takes the leftover cent."""
        shares = allocate(
            make_expense(
                "0.01", WeightedSplit(weights={"B": Decimal("1"), "A": Decimal("1")})
            )
        )
        assert shares == {"A": Decimal("0.01"), "B": Decimal("0.00")}

    def test_fractional_weights_conserve(self):
        shares = allocate(
            make_expense(
                "100.00",
                WeightedSplit(
                    weights={"A": Decimal("1.5"), "B": Decimal("2.25"), "C": Decimal("0.7")}
                ),
            )
        )
        assert sum(shares.values()) == Decimal("100.00")


class TestItemizedSplit:
    def test_amounts_returned_unchanged(self):
        split = ItemizedSplit(
            participant_amounts={"X": Decimal("11.00"), "Y": Decimal("22.00")}
        )
        shares = allocate(make_expense("33.00", split))
        assert shares == {"X": Decimal("11.00"), "Y": Decimal("22.00")}

    def test_mismatched_amounts_rejected(self):
        split = ItemizedSplit(
            participant_amounts={"X": Decimal("11.00"), "Y": Decimal("21.00")}
        )
        with pytest.raises(ExpenseValidationError) as exc_info:
            allocate(make_expense("33.00", split))

        assert [issue.code for issue in exc_info.value.issues] == ["share_sum_mismatch"]


class TestAllocationErrors:
    def test_invalid_amount_raises(self):
        with pytest.raises(ExpenseValidationError) as exc_info:
            allocate(make_expense("0.00", EqualSplit(participants=["A"])))

        assert exc_info.value.expense_id == "e1"
        assert exc_info.value.issues[0].code == "amount_not_positive"

    def test_unknown_participant_with_known_list(self):
        participants = [Participant(id="A", name="Alice"), Participant(id="B", name="Bob")]
        with pytest.raises(ExpenseValidationError) as exc_info:
            allocate(
                make_expense("10.00", EqualSplit(participants=["A", "Z"])), participants
            )

        assert "unknown_participant" in {issue.code for issue in exc_info.value.issues}

    def test_unknown_participant_allowed_without_list(self):
        shares = allocate(make_expense("10.00", EqualSplit(participants=["A", "Z"])))
        assert shares == {"A": Decimal("5.00"), "Z": Decimal("5.00")}


class TestVerifyConservation:
    def test_matching_shares_pass(self):
        expense = make_expense("10.00", EqualSplit(participants=["A", "B"]))
        verify_conservation(expense, {"A": Decimal("5.00"), "B": Decimal("5.00")})

    def test_mismatch_raises(self):
        expense = make_expense("100.00", EqualSplit(participants=["A", "B", "C"]))
        with pytest.raises(ConservationError) as exc_info:
            verify_conservation(
                expense,
                {"A": Decimal("33.33"), "B": Decimal("33.33"), "C": Decimal("33.33")},
            )

        assert exc_info.value.expense_id == "e1"
        assert "Residual:       0.01" in str(exc_info.value)
