"""Tests for the itemized receipt calculator."""

from decimal import Decimal

import pytest

from tripsettle.allocation import allocate
from tripsettle.exceptions import ExpenseValidationError
from tripsettle.itemized import build_itemized_expense, calculate_itemized, check_itemized
from tripsettle.models import Extra, ExtraBase, ItemizedSplit, LineItem


def item(id: str, price: str, *assigned: str, quantity: str = "1") -> LineItem:
    """Create a line item for testing."""
    return LineItem(
        id=id,
        name=id.title(),
        quantity=Decimal(quantity),
        unit_price=Decimal(price),
        assigned_to=list(assigned),
    )


def extra(
    id: str,
    kind: str,
    value: str,
    mode: str = "percent",
    base: ExtraBase | None = None,
) -> Extra:
    """Create an extra for testing."""
    return Extra(
        id=id,
        name=id.title(),
        kind=kind,
        value=Decimal(value),
        mode=mode,
        base=base or ExtraBase(),
    )


class TestItems:
    def test_items_only(self):
        result = calculate_itemized(
            [item("pasta", "10.00", "X"), item("steak", "20.00", "Y")], [], "USD"
        )
        assert result.participant_amounts == {"X": Decimal("10.00"), "Y": Decimal("20.00")}
        assert result.subtotal == Decimal("30.00")
        assert result.total == Decimal("30.00")

    def test_shared_item_split_evenly(self):
        """A $10 shared item over three: the lowest id gets the extra cent."""
        result = calculate_itemized([item("pizza", "10.00", "C", "A", "B")], [], "USD")
        assert result.participant_amounts == {
            "A": Decimal("3.34"),
            "B": Decimal("3.33"),
            "C": Decimal("3.33"),
        }

    def test_item_total_rounded_half_up(self):
        """3 x 0.335 = 1.005, rounded half-up to 1.01."""
        result = calculate_itemized(
            [item("gum", "0.335", "A", quantity="3")], [], "USD"
        )
        assert result.participant_amounts == {"A": Decimal("1.01")}


class TestCustomShares:
    def test_shares_are_weights(self):
        """$12 with shares 2:1 gives 8.00 and 4.00."""
        wine = item("wine", "12.00", "A", "B").model_copy(
            update={"shares": {"A": Decimal("2"), "B": Decimal("1")}}
        )

        result = calculate_itemized([wine], [], "USD")

        assert result.participant_amounts == {"A": Decimal("8.00"), "B": Decimal("4.00")}

    def test_shares_use_largest_remainder(self):
        wine = item("wine", "10.00", "A", "B", "C").model_copy(
            update={"shares": {"A": Decimal("1"), "B": Decimal("1"), "C": Decimal("1")}}
        )

        result = calculate_itemized([wine], [], "USD")

        assert result.participant_amounts == {
            "A": Decimal("3.34"),
            "B": Decimal("3.33"),
            "C": Decimal("3.33"),
        }

    def test_extras_follow_custom_shares(self):
        wine = item("wine", "12.00", "A", "B").model_copy(
            update={"shares": {"A": Decimal("0.75"), "B": Decimal("0.25")}}
        )

        result = calculate_itemized([wine], [extra("tax", "tax", "10")], "USD")

        assert result.participant_amounts == {"A": Decimal("9.90"), "B": Decimal("3.30")}
        assert result.total == Decimal("13.20")

    def test_breakdown_lists_item_amounts(self):
        result = calculate_itemized(
            [item("pasta", "10.00", "X"), item("pizza", "10.00", "X", "Y")], [], "USD"
        )

        assert result.breakdowns["X"].item_amounts == {
            "pasta": Decimal("10.00"),
            "pizza": Decimal("5.00"),
        }
        assert result.breakdowns["Y"].item_amounts == {"pizza": Decimal("5.00")}
        assert result.breakdowns["X"].items_subtotal == Decimal("15.00")


class TestExtras:
    def test_tax_on_subtotal(self):
        """$10 to X, $20 to Y, 10% tax: X pays 11.00, Y pays 22.00."""
        result = calculate_itemized(
            [item("pasta", "10.00", "X"), item("steak", "20.00", "Y")],
            [extra("tax", "tax", "10")],
            "USD",
        )
        assert result.participant_amounts == {"X": Decimal("11.00"), "Y": Decimal("22.00")}
        assert result.total == Decimal("33.00")
        assert result.breakdowns["X"].extras_allocated == {"tax": Decimal("1.00")}
        assert result.breakdowns["Y"].items_subtotal == Decimal("20.00")

    def test_flat_fee_spread_proportionally(self):
        """A 3.00 fee over a 1:2 subtotal is 1.00 / 2.00."""
        result = calculate_itemized(
            [item("pasta", "10.00", "X"), item("steak", "20.00", "Y")],
            [extra("service", "fee", "3.00", mode="amount")],
            "USD",
        )
        assert result.participant_amounts == {"X": Decimal("11.00"), "Y": Decimal("22.00")}

    def test_discount_is_subtracted(self):
        """A 10.00 discount over 30:10 takes 7.50 and 2.50."""
        result = calculate_itemized(
            [item("steak", "30.00", "A"), item("salad", "10.00", "B")],
            [extra("coupon", "discount", "10.00", mode="amount")],
            "USD",
        )
        assert result.participant_amounts == {"A": Decimal("22.50"), "B": Decimal("7.50")}
        assert result.breakdowns["A"].extras_allocated == {"coupon": Decimal("-7.50")}
        assert result.total == Decimal("30.00")

    def test_tax_on_single_item(self):
        """An extra based on one item lands only on that item's assignees."""
        result = calculate_itemized(
            [item("wine", "20.00", "A"), item("water", "2.00", "A", "B")],
            [extra("alcohol_tax", "tax", "10", base=ExtraBase(kind="item", ref="wine"))],
            "USD",
        )
        assert result.participant_amounts == {"A": Decimal("23.00"), "B": Decimal("1.00")}

    def test_tip_on_prior_extra(self):
        """An extra can be based on an earlier extra's allocation."""
        result = calculate_itemized(
            [item("pasta", "10.00", "X"), item("steak", "20.00", "Y")],
            [
                extra("tax", "tax", "10"),
                extra("tax_tip", "tip", "50", base=ExtraBase(kind="extra", ref="tax")),
            ],
            "USD",
        )
        assert result.breakdowns["X"].extras_allocated == {
            "tax": Decimal("1.00"),
            "tax_tip": Decimal("0.50"),
        }
        assert result.participant_amounts == {"X": Decimal("11.50"), "Y": Decimal("23.00")}

    def test_extras_conserve_total(self):
        """Awkward percentages still add up exactly."""
        result = calculate_itemized(
            [
                item("a", "7.77", "A"),
                item("b", "3.33", "B"),
                item("c", "11.11", "C", "A"),
            ],
            [extra("tax", "tax", "8.875"), extra("tip", "tip", "18")],
            "USD",
        )
        assert sum(result.participant_amounts.values()) == result.total

    def test_zero_decimal_currency(self):
        result = calculate_itemized(
            [item("ramen", "1000", "A", "B", "C")],
            [extra("tax", "tax", "10")],
            "jpy",
        )
        assert result.currency == "JPY"
        assert result.participant_amounts == {
            "A": Decimal("368"),
            "B": Decimal("366"),
            "C": Decimal("366"),
        }


class TestItemizedValidation:
    def _codes(self, items, extras, participants=None):
        return [issue.code for issue in check_itemized(items, extras, "USD", participants)]

    def test_no_items(self):
        assert self._codes([], []) == ["no_items"]

    def test_unassigned_item(self):
        assert self._codes([item("pasta", "10.00")], []) == ["item_unassigned"]

    def test_unknown_assignee(self):
        codes = self._codes([item("pasta", "10.00", "A", "Z")], [], participants=["A"])
        assert codes == ["unknown_participant"]

    def test_discount_exceeds_base(self):
        codes = self._codes(
            [item("pasta", "40.00", "A")],
            [extra("coupon", "discount", "50.00", mode="amount")],
        )
        assert codes == ["discount_exceeds_base"]

    def test_percent_discount_over_100(self):
        codes = self._codes(
            [item("pasta", "40.00", "A")], [extra("coupon", "discount", "120")]
        )
        assert codes == ["discount_exceeds_base"]

    def test_base_must_come_before(self):
        codes = self._codes(
            [item("pasta", "10.00", "A")],
            [
                extra("tip", "tip", "10", base=ExtraBase(kind="extra", ref="tax")),
                extra("tax", "tax", "10"),
            ],
        )
        assert codes == ["base_not_prior_amount"]

    def test_base_cannot_be_discount(self):
        codes = self._codes(
            [item("pasta", "10.00", "A")],
            [
                extra("coupon", "discount", "1.00", mode="amount"),
                extra("tip", "tip", "10", base=ExtraBase(kind="extra", ref="coupon")),
            ],
        )
        assert codes == ["base_not_prior_amount"]

    def test_unknown_item_base(self):
        codes = self._codes(
            [item("pasta", "10.00", "A")],
            [extra("tax", "tax", "10", base=ExtraBase(kind="item", ref="wine"))],
        )
        assert codes == ["unknown_base"]

    def test_shares_must_match_assignees(self):
        wine = item("wine", "12.00", "A", "B").model_copy(
            update={"shares": {"A": Decimal("1"), "C": Decimal("1")}}
        )
        assert self._codes([wine], []) == ["item_shares_mismatch"]

    def test_shares_must_be_positive(self):
        wine = item("wine", "12.00", "A", "B").model_copy(
            update={"shares": {"A": Decimal("1"), "B": Decimal("0")}}
        )
        issues = check_itemized([wine], [], "USD")
        assert [issue.code for issue in issues] == ["item_share_not_positive"]
        assert "B" in issues[0].message

    def test_expected_amounts_must_match_receipt(self):
        issues = check_itemized(
            [item("pasta", "10.00", "A"), item("steak", "20.00", "B")],
            [],
            "USD",
            expected={"A": Decimal("20.00"), "B": Decimal("10.00")},
        )
        assert [issue.code for issue in issues] == ["share_item_mismatch"]

    def test_expected_zero_entry_matches(self):
        issues = check_itemized(
            [item("pasta", "10.00", "A")],
            [],
            "USD",
            expected={"A": Decimal("10.00"), "B": Decimal("0.00")},
        )
        assert issues == []

    def test_reports_every_issue(self):
        codes = self._codes(
            [item("pasta", "10.00"), item("bread", "5.00", "A")],
            [extra("tax", "tax", "0")],
        )
        assert codes == ["item_unassigned", "extra_value_not_positive"]

    def test_calculate_raises_with_issues(self):
        with pytest.raises(ExpenseValidationError) as exc_info:
            calculate_itemized([], [], "USD")

        assert exc_info.value.issues[0].code == "no_items"


class TestBuildItemizedExpense:
    def test_expense_carries_calculated_amounts(self):
        expense = build_itemized_expense(
            expense_id="dinner",
            trip_id="trip",
            payer_id="X",
            currency="USD",
            items=[item("pasta", "10.00", "X"), item("steak", "20.00", "Y")],
            extras=[extra("tax", "tax", "10")],
            description="Dinner",
        )

        assert expense.amount == Decimal("33.00")
        assert isinstance(expense.split, ItemizedSplit)
        assert allocate(expense) == {"X": Decimal("11.00"), "Y": Decimal("22.00")}
