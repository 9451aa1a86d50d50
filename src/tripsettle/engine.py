"""Settlement engine entry points.

Pure functions over an expense snapshot, a participant snapshot and the prior
persisted confirmation state. Validation problems, data-integrity warnings
and invariant violations all come back as values on the result; callers
match on the result type instead of catching exceptions.

    match compute_settlement(expenses, participants, "USD", records):
        case SettlementFailure(message=message):
            ...
        case SettlementSummary() as summary:
            ...
"""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime

from .attribution import explain
from .balances import aggregate, check_zero_sum
from .exceptions import ConservationError
from .models import (
    Expense,
    ExpenseRejection,
    Participant,
    SettlementFailure,
    SettlementRecord,
    SettlementSummary,
    SettlementWarning,
    Transfer,
    TransferBreakdown,
)
from .reconciler import mark_settled, mark_unsettled, reconcile
from .simplifier import simplify
from .validation import validate_expense

logger = logging.getLogger(__name__)

__all__ = [
    "compute_settlement",
    "explain_transfer",
    "mark_settled",
    "mark_unsettled",
    "validate_expense",
]


def _unknown_participant_warnings(
    expenses: list[Expense], participants: list[Participant]
) -> list[SettlementWarning]:
    known = {p.id for p in participants}
    unknown: dict[str, str] = {}
    for expense in expenses:
        for pid in [expense.payer_id, *expense.participant_ids]:
            if pid not in known and pid not in unknown:
                unknown[pid] = expense.id

    return [
        SettlementWarning(
            code="unknown_participant",
            message=f"Participant {pid} (first seen on expense {expense_id}) is not in the trip",
            participant_id=pid,
        )
        for pid, expense_id in sorted(unknown.items())
    ]


def compute_settlement(
    expenses: Iterable[Expense],
    participants: Iterable[Participant],
    currency: str,
    prior_state: Iterable[SettlementRecord] = (),
    now: datetime | None = None,
) -> SettlementSummary | SettlementFailure:
    """
    Compute one currency's settlement.

    Steps:
    1. Validate every expense in the currency; invalid ones are rejected
    2. Aggregate paid/owed/net per participant
    3. Simplify balances into transfers
    4. Reconcile transfers with the prior confirmation state

    Args:
        expenses: Trip expense snapshot (any currencies)
        participants: Trip participant snapshot
        currency: Currency to settle
        prior_state: Persisted confirmation records
        now: Computation timestamp (defaults to current UTC time)

    Returns:
        SettlementSummary, or SettlementFailure if allocated shares failed to
        conserve an expense amount
    """
    currency = currency.upper()
    participants = list(participants)

    accepted: list[Expense] = []
    rejected: list[ExpenseRejection] = []
    for expense in expenses:
        if expense.currency != currency:
            continue
        issues = validate_expense(expense)
        if issues:
            logger.warning(
                f"Rejected expense {expense.id}: "
                f"{'; '.join(issue.message for issue in issues)}"
            )
            rejected.append(ExpenseRejection(expense_id=expense.id, issues=issues))
        else:
            accepted.append(expense)

    warnings = _unknown_participant_warnings(accepted, participants)

    try:
        balances = aggregate(accepted, participants, currency)
    except ConservationError as e:
        logger.critical(f"Settlement for {currency} aborted: {e}")
        return SettlementFailure(message=str(e), expense_id=e.expense_id)

    zero_sum_warning = check_zero_sum(balances, currency)
    if zero_sum_warning:
        warnings.append(zero_sum_warning)

    transfers = simplify(balances, currency)

    prior = [record for record in prior_state if record.currency.upper() == currency]
    reconciliation = reconcile(transfers, prior)
    warnings.extend(reconciliation.warnings)

    summary = SettlementSummary(
        currency=currency,
        balances=balances,
        active_transfers=reconciliation.active,
        settled_transfers=reconciliation.settled,
        dropped_keys=reconciliation.dropped_keys,
        archived_records=reconciliation.archived,
        records=reconciliation.records,
        rejected_expenses=rejected,
        warnings=warnings,
        computed_at=now or datetime.now(UTC),
    )

    logger.info(
        f"{currency} settlement: {len(summary.active_transfers)} active, "
        f"{len(summary.settled_transfers)} settled, {len(rejected)} rejected, "
        f"{len(warnings)} warnings"
    )
    return summary


def explain_transfer(
    transfer: Transfer, expenses: Iterable[Expense]
) -> TransferBreakdown:
    """Explain a transfer by its per-expense contributions."""
    return explain(transfer, expenses)
