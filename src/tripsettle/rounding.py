"""Exact remainder distribution in integer minor units.

All splitting goes through distribute_units: exact rational quotas, floor,
then one leftover unit each to the largest fractional remainders, ties broken
by ascending participant id. The result always sums to the input total.
"""

import math
from collections.abc import Iterable, Mapping
from decimal import Decimal
from fractions import Fraction


def distribute_units(
    total_units: int, weights: Mapping[str, Decimal | Fraction | int]
) -> dict[str, int]:
    """
    Split an integer number of minor units proportionally to weights.

    Largest-remainder (Hamilton) method: every participant first receives
    floor(total * weight / sum(weights)); the units left over go one each to
    the participants with the largest fractional remainders. Equal remainders
    are ordered by participant id, ascending.

    Args:
        total_units: Non-negative amount in minor units
        weights: Participant id -> non-negative weight (at least one positive)

    Returns:
        Participant id -> units, keyed in ascending id order

    Raises:
        ValueError: If there are no recipients, a weight is negative,
                    or all weights are zero

    Example:
        distribute_units(10000, {"A": 1, "B": 1, "C": 1})
        -> {"A": 3334, "B": 3333, "C": 3333}
    """
    if total_units < 0:
        raise ValueError(f"Cannot distribute a negative total ({total_units})")
    if not weights:
        raise ValueError("Cannot distribute without recipients")

    exact = {pid: Fraction(weight) for pid, weight in weights.items()}
    if any(weight < 0 for weight in exact.values()):
        raise ValueError("Weights must not be negative")

    total_weight = sum(exact.values(), Fraction(0))
    if total_weight == 0:
        raise ValueError("At least one weight must be positive")

    quotas = {pid: total_units * weight / total_weight for pid, weight in exact.items()}
    units = {pid: math.floor(quota) for pid, quota in quotas.items()}

    leftover = total_units - sum(units.values())
    by_remainder = sorted(exact, key=lambda pid: (-(quotas[pid] - units[pid]), pid))
    for pid in by_remainder[:leftover]:
        units[pid] += 1

    return {pid: units[pid] for pid in sorted(units)}


def split_evenly(total_units: int, participant_ids: Iterable[str]) -> dict[str, int]:
    """
    Equal split: base share to everyone, one extra unit to the first ids.

    Example:
        split_evenly(10000, ["C", "A", "B"]) -> {"A": 3334, "B": 3333, "C": 3333}
    """
    return distribute_units(total_units, {pid: 1 for pid in participant_ids})
