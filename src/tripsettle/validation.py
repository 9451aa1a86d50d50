"""Pre-allocation checks for expenses.

validate_expense never raises: it returns every problem it finds so the
caller can show them all at once and the expense can be fixed and resubmitted.
"""

import re
from collections import Counter
from collections.abc import Iterable
from decimal import Decimal
from typing import assert_never

from .currency import decimal_places, is_minor_exact
from .itemized import check_itemized
from .models import (
    EqualSplit,
    Expense,
    ItemizedSplit,
    Participant,
    ValidationIssue,
    WeightedSplit,
)

_CURRENCY_CODE = re.compile(r"^[A-Z]{3}$")


def _known_ids(participants: Iterable[Participant | str] | None) -> set[str] | None:
    if participants is None:
        return None
    return {p.id if isinstance(p, Participant) else p for p in participants}


def _split_issues(
    expense: Expense, known: set[str] | None
) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    split = expense.split

    match split:
        case EqualSplit():
            if not split.participants:
                issues.append(
                    ValidationIssue(
                        code="no_participants",
                        message="At least one participant is required",
                        field="split.participants",
                    )
                )
            duplicates = sorted(
                pid for pid, count in Counter(split.participants).items() if count > 1
            )
            if duplicates:
                issues.append(
                    ValidationIssue(
                        code="duplicate_participant",
                        message=f"Participants listed more than once: {', '.join(duplicates)}",
                        field="split.participants",
                    )
                )

        case WeightedSplit():
            if not split.weights:
                issues.append(
                    ValidationIssue(
                        code="no_participants",
                        message="At least one participant is required",
                        field="split.weights",
                    )
                )
            for pid, weight in split.weights.items():
                if weight <= 0:
                    issues.append(
                        ValidationIssue(
                            code="weight_not_positive",
                            message=f"Weight for {pid} must be greater than 0 (got {weight})",
                            field=f"split.weights.{pid}",
                        )
                    )

        case ItemizedSplit():
            if not split.participant_amounts:
                issues.append(
                    ValidationIssue(
                        code="no_participants",
                        message="Itemized split requires participant amounts",
                        field="split.participant_amounts",
                    )
                )
            for pid, share in split.participant_amounts.items():
                if share < 0:
                    issues.append(
                        ValidationIssue(
                            code="share_negative",
                            message=f"Amount for {pid} cannot be negative (got {share})",
                            field=f"split.participant_amounts.{pid}",
                        )
                    )
                elif not is_minor_exact(share, expense.currency):
                    issues.append(
                        ValidationIssue(
                            code="share_precision",
                            message=(
                                f"Amount for {pid} ({share}) has more precision than "
                                f"{expense.currency} allows"
                            ),
                            field=f"split.participant_amounts.{pid}",
                        )
                    )

            share_sum = sum(split.participant_amounts.values(), Decimal("0"))
            if split.participant_amounts and share_sum != expense.amount:
                issues.append(
                    ValidationIssue(
                        code="share_sum_mismatch",
                        message=(
                            f"Sum of participant amounts ({share_sum}) must equal "
                            f"the expense amount ({expense.amount})"
                        ),
                        field="split.participant_amounts",
                    )
                )

            if split.items:
                issues.extend(
                    check_itemized(
                        split.items,
                        split.extras,
                        expense.currency,
                        known,
                        expected=split.participant_amounts,
                    )
                )

        case _:
            assert_never(split)

    return issues


def validate_expense(
    expense: Expense,
    participants: Iterable[Participant | str] | None = None,
) -> list[ValidationIssue]:
    """
    Check an expense before allocation.

    Args:
        expense: The expense to check
        participants: Known participants (or ids). When given, the payer and
                      everyone in the split must be among them.

    Returns:
        Every validation issue found, each tagged with the expense id.
        An empty list means the expense can be allocated.
    """
    known = _known_ids(participants)
    issues: list[ValidationIssue] = []

    if expense.amount <= 0:
        issues.append(
            ValidationIssue(
                code="amount_not_positive",
                message=f"Expense amount must be greater than 0 (got {expense.amount})",
                field="amount",
            )
        )
    elif not is_minor_exact(expense.amount, expense.currency):
        issues.append(
            ValidationIssue(
                code="amount_precision",
                message=(
                    f"{expense.amount} has more precision than {expense.currency} "
                    f"allows ({decimal_places(expense.currency)} decimal places)"
                ),
                field="amount",
            )
        )

    if not _CURRENCY_CODE.match(expense.currency):
        issues.append(
            ValidationIssue(
                code="currency_code",
                message=f"'{expense.currency}' is not a three-letter currency code",
                field="currency",
            )
        )

    if not expense.payer_id:
        issues.append(
            ValidationIssue(
                code="payer_missing", message="Expense has no payer", field="payer_id"
            )
        )
    elif known is not None and expense.payer_id not in known:
        issues.append(
            ValidationIssue(
                code="unknown_participant",
                message=f"Payer {expense.payer_id} is not a trip participant",
                field="payer_id",
            )
        )

    issues.extend(_split_issues(expense, known))

    if known is not None:
        unknown = sorted(set(expense.participant_ids) - known)
        if unknown:
            issues.append(
                ValidationIssue(
                    code="unknown_participant",
                    message=f"Split includes unknown participant(s): {', '.join(unknown)}",
                    field="split",
                )
            )

    return [issue.model_copy(update={"expense_id": expense.id}) for issue in issues]
