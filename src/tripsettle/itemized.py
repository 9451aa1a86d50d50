"""Itemized receipt calculator.

Turns line items and extras (tax, tip, fees, discounts) into the exact
per-participant amounts an itemized expense carries. Items are split evenly
among their assignees or by custom shares; each extra is distributed
proportionally to every participant's share of its base with largest-remainder
rounding, so the per-participant amounts always add up to the receipt total.
"""

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from decimal import Decimal

from .currency import from_minor_units, is_minor_exact, round_to_minor, to_minor_units
from .exceptions import ExpenseValidationError
from .models import (
    Expense,
    Extra,
    ItemizedResult,
    ItemizedSplit,
    LineItem,
    ParticipantBreakdown,
    ValidationIssue,
)
from .rounding import distribute_units, split_evenly

logger = logging.getLogger(__name__)


def _issue(code: str, message: str, field: str) -> ValidationIssue:
    return ValidationIssue(code=code, message=message, field=field)


def _item_shares(
    items: list[LineItem],
    currency: str,
    known: set[str] | None,
    issues: list[ValidationIssue],
) -> dict[str, dict[str, int]]:
    """Split each valid item among its assignees (minor units).

    Items without custom shares are split evenly; custom shares are weights,
    normalized over their sum.
    """
    shares: dict[str, dict[str, int]] = {}

    for index, item in enumerate(items):
        field = f"items[{index}]"
        if item.id in shares:
            issues.append(_issue("duplicate_item", f"Duplicate item id '{item.id}'", field))
            continue
        if item.quantity <= 0:
            issues.append(
                _issue("item_quantity", f"Item '{item.name}' quantity must be greater than 0", field)
            )
            continue
        if item.unit_price < 0:
            issues.append(
                _issue("item_price", f"Item '{item.name}' unit price cannot be negative", field)
            )
            continue
        if not item.assigned_to:
            issues.append(
                _issue(
                    "item_unassigned",
                    f"Item '{item.name}' must be assigned to at least one participant",
                    field,
                )
            )
            continue

        unknown = sorted(
            pid for pid in set(item.assigned_to) if known is not None and pid not in known
        )
        if unknown:
            issues.append(
                _issue(
                    "unknown_participant",
                    f"Item '{item.name}' is assigned to unknown participant(s): "
                    f"{', '.join(unknown)}",
                    field,
                )
            )
            continue

        units = to_minor_units(round_to_minor(item.raw_total, currency), currency)
        if item.shares is None:
            shares[item.id] = split_evenly(units, set(item.assigned_to))
            continue

        if set(item.shares) != set(item.assigned_to):
            issues.append(
                _issue(
                    "item_shares_mismatch",
                    f"Item '{item.name}' shares must cover exactly its assignees",
                    field,
                )
            )
            continue
        not_positive = sorted(pid for pid, share in item.shares.items() if share <= 0)
        if not_positive:
            issues.append(
                _issue(
                    "item_share_not_positive",
                    f"Item '{item.name}' shares must be greater than 0: "
                    f"{', '.join(not_positive)}",
                    field,
                )
            )
            continue

        shares[item.id] = distribute_units(units, item.shares)

    return shares


def _base_weights(
    extra: Extra,
    subtotals: dict[str, int],
    item_shares: dict[str, dict[str, int]],
    prior_extras: dict[str, dict[str, int]],
    all_extras: dict[str, Extra],
    field: str,
    issues: list[ValidationIssue],
) -> dict[str, int] | None:
    """Per-participant base amounts an extra is computed on and spread over."""
    base = extra.base
    match base.kind:
        case "subtotal":
            return dict(subtotals)
        case "item":
            if base.ref not in item_shares:
                issues.append(
                    _issue(
                        "unknown_base",
                        f"{extra.name}: base item '{base.ref}' does not exist",
                        field,
                    )
                )
                return None
            return dict(item_shares[base.ref])
        case "extra":
            if base.ref in prior_extras:
                return dict(prior_extras[base.ref])
            referenced = all_extras.get(base.ref or "")
            if referenced is None:
                message = f"{extra.name}: base extra '{base.ref}' does not exist"
            elif referenced.is_discount:
                message = f"{extra.name}: base '{referenced.name}' is a discount, not a positive amount"
            else:
                message = f"{extra.name}: base '{referenced.name}' must come before it"
            issues.append(_issue("base_not_prior_amount", message, field))
            return None


def _extra_units(
    extra: Extra,
    base_total: int,
    currency: str,
    field: str,
    issues: list[ValidationIssue],
) -> int | None:
    """Total amount of an extra in minor units."""
    if extra.mode == "percent":
        if extra.is_discount and extra.value > 100:
            issues.append(
                _issue(
                    "discount_exceeds_base",
                    f"{extra.name}: a discount cannot exceed 100% of its base",
                    field,
                )
            )
            return None
        base_amount = from_minor_units(base_total, currency)
        return to_minor_units(
            round_to_minor(base_amount * extra.value / 100, currency), currency
        )

    if not is_minor_exact(extra.value, currency):
        issues.append(
            _issue(
                "amount_precision",
                f"{extra.name}: {extra.value} has more precision than {currency} allows",
                field,
            )
        )
        return None
    return to_minor_units(extra.value, currency)


def _compute(
    items: list[LineItem],
    extras: list[Extra],
    currency: str,
    participants: Iterable[str] | None,
) -> tuple[ItemizedResult | None, list[ValidationIssue]]:
    currency = currency.upper()
    known = set(participants) if participants is not None else None
    issues: list[ValidationIssue] = []

    if not items:
        issues.append(
            _issue("no_items", "Itemized split requires at least one item", "items")
        )
        return None, issues

    item_shares = _item_shares(items, currency, known, issues)

    # Step 1: Item subtotals per participant
    subtotals: dict[str, int] = {}
    for shares in item_shares.values():
        for pid, units in shares.items():
            subtotals[pid] = subtotals.get(pid, 0) + units

    # Step 2: Extras, in list order
    all_extras = {extra.id: extra for extra in extras}
    prior_extras: dict[str, dict[str, int]] = {}
    allocated: dict[str, dict[str, int]] = {pid: {} for pid in subtotals}
    seen_ids: set[str] = set()

    for index, extra in enumerate(extras):
        field = f"extras[{index}]"
        if extra.id in seen_ids:
            issues.append(_issue("duplicate_extra", f"Duplicate extra id '{extra.id}'", field))
            continue
        seen_ids.add(extra.id)

        if extra.value <= 0:
            issues.append(
                _issue(
                    "extra_value_not_positive",
                    f"{extra.name}: value must be greater than 0",
                    field,
                )
            )
            continue

        weights = _base_weights(
            extra, subtotals, item_shares, prior_extras, all_extras, field, issues
        )
        if weights is None:
            continue
        base_total = sum(weights.values())

        amount_units = _extra_units(extra, base_total, currency, field, issues)
        if amount_units is None:
            continue

        if extra.is_discount and amount_units > base_total:
            issues.append(
                _issue(
                    "discount_exceeds_base",
                    f"{extra.name}: discount of {from_minor_units(amount_units, currency)} "
                    f"exceeds its base of {from_minor_units(base_total, currency)}",
                    field,
                )
            )
            continue

        if base_total == 0:
            if amount_units == 0:
                distribution = {pid: 0 for pid in weights}
            else:
                issues.append(
                    _issue(
                        "base_not_prior_amount",
                        f"{extra.name}: base amount is zero, nothing to distribute over",
                        field,
                    )
                )
                continue
        else:
            distribution = distribute_units(amount_units, weights)

        if not extra.is_discount:
            prior_extras[extra.id] = distribution

        sign = -1 if extra.is_discount else 1
        for pid, units in distribution.items():
            allocated.setdefault(pid, {})[extra.id] = sign * units

        logger.debug(
            f"Distributed {extra.kind} '{extra.name}' "
            f"({from_minor_units(amount_units, currency)} {currency}) over "
            f"{len(distribution)} participants"
        )

    # Step 3: Totals per participant
    totals = {
        pid: subtotals.get(pid, 0) + sum(allocated.get(pid, {}).values())
        for pid in sorted(subtotals)
    }
    for pid, units in totals.items():
        if units < 0:
            issues.append(
                _issue(
                    "share_negative",
                    f"Discounts leave {pid} with a negative total",
                    "extras",
                )
            )

    if issues:
        return None, issues

    breakdowns = {
        pid: ParticipantBreakdown(
            participant_id=pid,
            items_subtotal=from_minor_units(subtotals[pid], currency),
            item_amounts={
                item_id: from_minor_units(shares[pid], currency)
                for item_id, shares in item_shares.items()
                if pid in shares
            },
            extras_allocated={
                extra_id: from_minor_units(units, currency)
                for extra_id, units in allocated.get(pid, {}).items()
            },
            total=from_minor_units(units, currency),
        )
        for pid, units in totals.items()
    }

    result = ItemizedResult(
        currency=currency,
        subtotal=from_minor_units(sum(subtotals.values()), currency),
        total=from_minor_units(sum(totals.values()), currency),
        participant_amounts={
            pid: breakdown.total for pid, breakdown in breakdowns.items()
        },
        breakdowns=breakdowns,
    )
    return result, []


def check_itemized(
    items: list[LineItem],
    extras: list[Extra],
    currency: str,
    participants: Iterable[str] | None = None,
    expected: Mapping[str, Decimal] | None = None,
) -> list[ValidationIssue]:
    """Return every problem with an itemized receipt (empty if valid).

    When expected amounts are given they must equal what the receipt computes.
    """
    result, issues = _compute(items, extras, currency, participants)
    if result is None or expected is None:
        return issues

    # Participants missing on either side count as zero
    computed = result.participant_amounts
    differing = sorted(
        pid
        for pid in set(expected) | set(computed)
        if expected.get(pid, 0) != computed.get(pid, 0)
    )
    if differing:
        issues.append(
            _issue(
                "share_item_mismatch",
                f"Stored amounts differ from the receipt for: {', '.join(differing)}",
                "split.participant_amounts",
            )
        )
    return issues


def calculate_itemized(
    items: list[LineItem],
    extras: list[Extra],
    currency: str,
    participants: Iterable[str] | None = None,
) -> ItemizedResult:
    """
    Calculate the per-participant amounts for an itemized receipt.

    Args:
        items: Line items, each assigned to at least one participant
        extras: Tax, tip, fees and discounts, applied in order
        currency: Currency code; amounts are rounded to its minor unit
        participants: Known participant ids, used to reject unknown assignees

    Returns:
        Per-participant amounts and breakdowns summing exactly to the total

    Raises:
        ExpenseValidationError: If the receipt is invalid
    """
    result, issues = _compute(items, extras, currency, participants)
    if result is None:
        raise ExpenseValidationError(issues)

    logger.info(
        f"Itemized {len(items)} items and {len(extras)} extras: "
        f"total {result.total} {result.currency} over "
        f"{len(result.participant_amounts)} participants"
    )
    return result


def build_itemized_expense(
    expense_id: str,
    trip_id: str,
    payer_id: str,
    currency: str,
    items: list[LineItem],
    extras: list[Extra] | None = None,
    participants: Iterable[str] | None = None,
    description: str | None = None,
    date: datetime | None = None,
) -> Expense:
    """Create an itemized expense whose amount is the calculated receipt total."""
    extras = extras or []
    result = calculate_itemized(items, extras, currency, participants)
    return Expense(
        id=expense_id,
        trip_id=trip_id,
        payer_id=payer_id,
        currency=result.currency,
        amount=result.total,
        split=ItemizedSplit(
            participant_amounts=result.participant_amounts,
            items=items,
            extras=extras,
        ),
        description=description,
        date=date,
    )
