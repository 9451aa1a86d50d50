"""Per-currency balance aggregation."""

import logging
from collections.abc import Iterable
from decimal import Decimal

from .allocation import allocate
from .currency import quantize
from .models import Expense, NetBalance, Participant, SettlementWarning

logger = logging.getLogger(__name__)


def aggregate(
    expenses: Iterable[Expense],
    participants: Iterable[Participant],
    currency: str,
) -> dict[str, NetBalance]:
    """
    Sum what each participant paid and owes in one currency.

    Only expenses in `currency` are considered; currencies are never mixed.
    Participants who appear in none of those expenses are omitted.
    Participants referenced by expenses but missing from `participants` are
    still aggregated so no money disappears from the ledger.

    Args:
        expenses: Expense snapshot (already validated)
        participants: Trip participants
        currency: Currency to aggregate

    Returns:
        Participant id -> NetBalance, in ascending id order

    Raises:
        ExpenseValidationError, ConservationError: From allocation
    """
    currency = currency.upper()
    known = {p.id for p in participants}
    paid: dict[str, Decimal] = {}
    owed: dict[str, Decimal] = {}

    count = 0
    for expense in expenses:
        if expense.currency != currency:
            continue
        count += 1

        paid[expense.payer_id] = paid.get(expense.payer_id, Decimal("0")) + expense.amount
        owed.setdefault(expense.payer_id, Decimal("0"))

        for pid, share in allocate(expense).items():
            owed[pid] = owed.get(pid, Decimal("0")) + share
            paid.setdefault(pid, Decimal("0"))

    unknown = sorted(set(paid) - known)
    if unknown:
        logger.warning(
            f"{currency}: expenses reference unknown participants {', '.join(unknown)}"
        )

    balances = {
        pid: NetBalance(
            participant_id=pid,
            currency=currency,
            paid=quantize(paid[pid], currency),
            owed=quantize(owed[pid], currency),
            net=quantize(paid[pid] - owed[pid], currency),
        )
        for pid in sorted(paid)
    }

    logger.info(
        f"Aggregated {count} {currency} expenses into {len(balances)} balances"
    )
    return balances


def check_zero_sum(
    balances: dict[str, NetBalance], currency: str
) -> SettlementWarning | None:
    """Report balances that don't sum to exactly zero (data-integrity problem)."""
    total = sum((b.net for b in balances.values()), Decimal("0"))
    if total == 0:
        return None

    logger.warning(f"{currency} balances sum to {total} instead of 0")
    return SettlementWarning(
        code="balance_not_zero_sum",
        message=f"{currency.upper()} balances sum to {total} instead of 0",
    )
