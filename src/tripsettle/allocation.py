"""Split allocation: exact per-participant shares of one expense."""

import logging
from collections.abc import Iterable
from decimal import Decimal
from typing import assert_never

from .currency import from_minor_units, to_minor_units
from .exceptions import ConservationError, ExpenseValidationError
from .models import EqualSplit, Expense, ItemizedSplit, Participant, WeightedSplit
from .rounding import distribute_units, split_evenly
from .validation import validate_expense

logger = logging.getLogger(__name__)


def _allocate_units(expense: Expense) -> dict[str, int]:
    """Shares in minor units, keyed by participant id ascending."""
    total_units = to_minor_units(expense.amount, expense.currency)
    split = expense.split

    match split:
        case EqualSplit():
            return split_evenly(total_units, split.participants)
        case WeightedSplit():
            return distribute_units(total_units, split.weights)
        case ItemizedSplit():
            # Precomputed by the itemized calculator; returned unchanged
            return {
                pid: to_minor_units(share, expense.currency)
                for pid, share in sorted(split.participant_amounts.items())
            }
        case _:
            assert_never(split)


def verify_conservation(expense: Expense, shares: dict[str, Decimal]) -> None:
    """
    Fail loudly if shares don't sum exactly to the expense amount.

    A mismatch means an allocation bug or corrupted data, never a user error.

    Raises:
        ConservationError: If the sum differs from expense.amount
    """
    total = sum(shares.values(), Decimal("0"))
    if total != expense.amount:
        message = (
            f"Share total mismatch for expense {expense.id}:\n"
            f"  Expense amount: {expense.amount} {expense.currency}\n"
            f"  Sum of shares:  {total} {expense.currency}\n"
            f"  Residual:       {expense.amount - total}\n"
            f"This indicates an allocation bug or corrupted expense data."
        )
        logger.critical(message)
        raise ConservationError(expense.id, message)


def allocate(
    expense: Expense,
    participants: Iterable[Participant | str] | None = None,
) -> dict[str, Decimal]:
    """
    Compute each participant's exact share of an expense.

    Equal: base share for everyone, one extra minor unit to each of the first
    `remainder` participants in ascending id order.
    Weighted: largest-remainder distribution of amount * weight / sum(weights),
    ties broken by ascending id.
    Itemized: the precomputed per-participant amounts, unchanged.

    Args:
        expense: The expense to allocate
        participants: Known participants; if given, unknown ids are rejected

    Returns:
        Participant id -> share (quantized to the currency's minor unit),
        in ascending id order, summing exactly to expense.amount

    Raises:
        ExpenseValidationError: If the expense fails validation
        ConservationError: If the shares don't sum to the amount
    """
    issues = validate_expense(expense, participants)
    if issues:
        raise ExpenseValidationError(issues, expense.id)

    units = _allocate_units(expense)
    shares = {pid: from_minor_units(u, expense.currency) for pid, u in units.items()}

    verify_conservation(expense, shares)

    logger.debug(
        f"Allocated expense {expense.id} ({expense.amount} {expense.currency}, "
        f"{expense.split.type}): {shares}"
    )
    return shares
