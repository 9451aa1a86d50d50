"""Reconcile freshly computed transfers with persisted confirmations.

Transfer identity is the direction-sensitive key (from, to, currency). A
confirmation survives recomputation only while the same key comes back with
the same amount.
"""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime

from .models import (
    ReconciliationResult,
    SettlementRecord,
    SettlementWarning,
    Transfer,
    TransferKey,
    TransferStatus,
)

logger = logging.getLogger(__name__)


def reconcile(
    new_transfers: Iterable[Transfer],
    persisted: Iterable[SettlementRecord],
) -> ReconciliationResult:
    """
    Merge new transfers with the persisted confirmation state.

    Per key:
    - not seen before: active
    - settled before, same amount: stays settled (settled_at preserved)
    - settled before, amount changed: back to active, with a drift warning
    - seen before but absent now: dropped and returned as archived; a settled
      record whose reverse direction now exists also gets a reversal warning

    Args:
        new_transfers: Output of the debt simplifier
        persisted: Previously persisted records for the same trip/currency

    Returns:
        Active and settled transfers, dropped keys, archived records, the
        updated records to persist, and any warnings
    """
    previous = {record.key: record for record in persisted}
    transfers = list(new_transfers)
    current_keys = {transfer.key for transfer in transfers}

    active: list[Transfer] = []
    settled: list[Transfer] = []
    warnings: list[SettlementWarning] = []

    for transfer in transfers:
        record = previous.get(transfer.key)

        if record is None or record.status == TransferStatus.ACTIVE:
            active.append(
                transfer.model_copy(
                    update={"status": TransferStatus.ACTIVE, "settled_at": None}
                )
            )
            continue

        if record.amount == transfer.amount:
            settled.append(
                transfer.model_copy(
                    update={
                        "status": TransferStatus.SETTLED,
                        "settled_at": record.settled_at,
                    }
                )
            )
            continue

        message = (
            f"Transfer {transfer.key} was settled at {record.amount} but is now "
            f"{transfer.amount}; marked active again"
        )
        logger.warning(message)
        warnings.append(
            SettlementWarning(code="settled_amount_drift", message=message, key=transfer.key)
        )
        active.append(
            transfer.model_copy(
                update={"status": TransferStatus.ACTIVE, "settled_at": None}
            )
        )

    dropped_keys: list[TransferKey] = []
    archived: list[SettlementRecord] = []
    for key, record in previous.items():
        if key in current_keys:
            continue
        dropped_keys.append(key)
        archived.append(record)

        if record.status == TransferStatus.SETTLED and key.reversed() in current_keys:
            message = (
                f"Settled transfer {key} reversed direction; "
                f"{key.reversed()} is a new active transfer"
            )
            logger.warning(message)
            warnings.append(
                SettlementWarning(code="settlement_reversed", message=message, key=key)
            )

    if dropped_keys:
        logger.info(
            f"Archived {len(dropped_keys)} records no longer in the settlement: "
            f"{', '.join(str(k) for k in dropped_keys)}"
        )

    records = [SettlementRecord.from_transfer(t) for t in active + settled]

    return ReconciliationResult(
        active=active,
        settled=settled,
        dropped_keys=dropped_keys,
        archived=archived,
        records=records,
        warnings=warnings,
    )


def mark_settled(
    records: Iterable[SettlementRecord],
    transfer: Transfer,
    settled_at: datetime | None = None,
) -> list[SettlementRecord]:
    """
    Record that a transfer has been paid.

    Settling an already-settled key is a no-op. The transfer's computed
    amount is recorded as the confirmed amount, never changed.

    Returns:
        The updated records
    """
    updated: list[SettlementRecord] = []
    found = False

    for record in records:
        if record.key != transfer.key:
            updated.append(record)
            continue

        found = True
        if record.status == TransferStatus.SETTLED:
            logger.debug(f"Transfer {transfer.key} already settled")
            updated.append(record)
        else:
            updated.append(
                record.model_copy(
                    update={
                        "status": TransferStatus.SETTLED,
                        "amount": transfer.amount,
                        "settled_at": settled_at or datetime.now(UTC),
                    }
                )
            )

    if not found:
        updated.append(
            SettlementRecord(
                from_id=transfer.from_id,
                to_id=transfer.to_id,
                currency=transfer.currency,
                status=TransferStatus.SETTLED,
                amount=transfer.amount,
                settled_at=settled_at or datetime.now(UTC),
            )
        )

    logger.info(f"Marked {transfer.key} settled ({transfer.amount})")
    return updated


def mark_unsettled(
    records: Iterable[SettlementRecord], key: TransferKey
) -> list[SettlementRecord]:
    """
    Undo a settlement confirmation.

    Unsettling a key that isn't settled (or isn't recorded) is a no-op.

    Returns:
        The updated records
    """
    updated: list[SettlementRecord] = []
    for record in records:
        if record.key == key and record.status == TransferStatus.SETTLED:
            updated.append(
                record.model_copy(
                    update={"status": TransferStatus.ACTIVE, "settled_at": None}
                )
            )
            logger.info(f"Marked {key} unsettled")
        else:
            updated.append(record)
    return updated
