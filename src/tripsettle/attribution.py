"""Transfer attribution: which expenses a transfer comes from."""

import logging
from collections.abc import Iterable
from decimal import Decimal

from .allocation import allocate
from .exceptions import ConservationError, ExpenseValidationError
from .models import (
    Expense,
    ExpenseContribution,
    Transfer,
    TransferBreakdown,
    TransferKey,
)

logger = logging.getLogger(__name__)


def direct_pairwise_debt(
    payer_id: str,
    from_id: str,
    to_id: str,
    from_owes: Decimal,
    to_owes: Decimal,
) -> Decimal:
    """
    How much `from` owes `to` directly because of one expense.

    Returns:
        Positive: to paid, so from owes their share to to
        Negative: from paid, so to owes their share to from
        Zero: a third party paid; no direct debt between the pair
    """
    if payer_id == to_id and payer_id != from_id:
        return from_owes
    if payer_id == from_id and payer_id != to_id:
        return -to_owes
    return Decimal("0")


def explain(
    transfer: Transfer | TransferKey,
    expenses: Iterable[Expense],
    amount: Decimal | None = None,
) -> TransferBreakdown:
    """
    Break a transfer down into per-expense contributions.

    Every expense in the transfer's currency that involves `from` or `to`
    appears, in input order. This is an explanation, not a settlement proof:
    simplification can route debts through third parties, so the relevant
    contributions need not add up to the transfer amount.

    Expenses that fail validation are skipped and listed in
    skipped_expense_ids.

    Args:
        transfer: The transfer (or bare key) to explain
        expenses: Expense snapshot
        amount: Transfer amount when only a key is given

    Returns:
        TransferBreakdown for the pair
    """
    if isinstance(transfer, Transfer):
        key = transfer.key
        total_amount = transfer.amount
    else:
        key = transfer
        total_amount = amount if amount is not None else Decimal("0")

    contributions: list[ExpenseContribution] = []
    skipped: list[str] = []

    for expense in expenses:
        if expense.currency != key.currency:
            continue
        if not (expense.involves(key.from_id) or expense.involves(key.to_id)):
            continue

        try:
            shares = allocate(expense)
        except (ExpenseValidationError, ConservationError) as e:
            logger.warning(f"Skipping expense {expense.id} in breakdown of {key}: {e}")
            skipped.append(expense.id)
            continue

        from_owes = shares.get(key.from_id, Decimal("0"))
        to_owes = shares.get(key.to_id, Decimal("0"))

        contributions.append(
            ExpenseContribution(
                expense_id=expense.id,
                description=expense.description,
                from_paid=expense.amount if expense.payer_id == key.from_id else Decimal("0"),
                from_owes=from_owes,
                to_paid=expense.amount if expense.payer_id == key.to_id else Decimal("0"),
                to_owes=to_owes,
                net_contribution=direct_pairwise_debt(
                    expense.payer_id, key.from_id, key.to_id, from_owes, to_owes
                ),
            )
        )

    breakdown = TransferBreakdown(
        key=key,
        total_amount=total_amount,
        contributions=contributions,
        skipped_expense_ids=skipped,
    )
    logger.info(
        f"Explained {key}: {len(breakdown.relevant_breakdowns)} of "
        f"{len(contributions)} expenses contribute"
    )
    return breakdown
