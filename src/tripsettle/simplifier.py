"""Debt simplification: net balances -> a short list of transfers."""

import heapq
import logging
from collections.abc import Mapping
from decimal import Decimal

from .models import NetBalance, Transfer, TransferStatus

logger = logging.getLogger(__name__)


def simplify(
    balances: Mapping[str, NetBalance | Decimal], currency: str
) -> list[Transfer]:
    """
    Reduce one currency's net balances to a list of settling transfers.

    Greedy cash-flow reduction: repeatedly match the largest debtor with the
    largest creditor and transfer the smaller of the two amounts. Equal
    amounts are ordered by ascending participant id, so the output is
    deterministic. Produces at most n - 1 transfers for n non-zero balances.

    This is a heuristic, not a certified minimum number of transfers.

    Args:
        balances: Participant id -> NetBalance (or signed net amount)
        currency: Currency of every balance

    Returns:
        Transfers in the order they were emitted, all active
    """
    currency = currency.upper()

    # Heap entries are (-amount, participant_id): largest first, then lowest id
    debtors: list[tuple[Decimal, str]] = []
    creditors: list[tuple[Decimal, str]] = []
    for pid, balance in balances.items():
        net = balance.net if isinstance(balance, NetBalance) else balance
        if net < 0:
            debtors.append((net, pid))  # -abs(net) == net
        elif net > 0:
            creditors.append((-net, pid))
    heapq.heapify(debtors)
    heapq.heapify(creditors)

    transfers: list[Transfer] = []
    while debtors and creditors:
        neg_debt, debtor = heapq.heappop(debtors)
        neg_credit, creditor = heapq.heappop(creditors)
        debt, credit = -neg_debt, -neg_credit

        amount = min(debt, credit)
        transfers.append(
            Transfer(
                from_id=debtor,
                to_id=creditor,
                currency=currency,
                amount=amount,
                status=TransferStatus.ACTIVE,
            )
        )
        logger.debug(f"{debtor} pays {creditor} {amount} {currency}")

        if debt - amount > 0:
            heapq.heappush(debtors, (amount - debt, debtor))
        if credit - amount > 0:
            heapq.heappush(creditors, (amount - credit, creditor))

    if debtors or creditors:
        leftover = [pid for _, pid in debtors + creditors]
        logger.warning(
            f"{currency}: balances not fully settled, leftover for {', '.join(sorted(leftover))}"
        )

    logger.info(f"Simplified {currency} balances into {len(transfers)} transfers")
    return transfers
