"""Service layer that composes the settlement engine with persistence.

The engine functions are pure; this module loads trip snapshots, feeds them
the persisted confirmation state and writes the reconciled state back.
"""

import logging
from pathlib import Path

from pydantic import ValidationError

from .attribution import explain
from .config import Settings
from .db import Database
from .engine import compute_settlement, mark_settled, mark_unsettled, validate_expense
from .exceptions import ConservationError, TransferNotFoundError, TripFileError
from .models import (
    Receipt,
    SettlementFailure,
    SettlementSummary,
    TransferBreakdown,
    TransferKey,
    TripSnapshot,
    ValidationIssue,
)

logger = logging.getLogger(__name__)


def load_trip(path: Path) -> TripSnapshot:
    """
    Load a trip snapshot from a JSON file.

    Raises:
        TripFileError: If the file is missing or doesn't match the schema
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise TripFileError(f"Cannot read trip file {path}: {e}") from e

    try:
        trip = TripSnapshot.model_validate_json(text)
    except ValidationError as e:
        raise TripFileError(f"Invalid trip file {path}:\n{e}") from e

    logger.info(
        f"Loaded trip {trip.id}: {len(trip.participants)} participants, "
        f"{len(trip.expenses)} expenses"
    )
    return trip


def load_receipt(path: Path) -> Receipt:
    """
    Load an itemized receipt from a JSON file.

    Raises:
        TripFileError: If the file is missing or doesn't match the schema
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise TripFileError(f"Cannot read receipt file {path}: {e}") from e

    try:
        return Receipt.model_validate_json(text)
    except ValidationError as e:
        raise TripFileError(f"Invalid receipt file {path}:\n{e}") from e


def validate_trip(trip: TripSnapshot) -> dict[str, list[ValidationIssue]]:
    """Validate every expense; returns only the expenses with issues."""
    problems: dict[str, list[ValidationIssue]] = {}
    for expense in trip.expenses:
        issues = validate_expense(expense, trip.participants)
        if issues:
            problems[expense.id] = issues

    logger.info(f"Validated {len(trip.expenses)} expenses, {len(problems)} with issues")
    return problems


def _require_summary(result: SettlementSummary | SettlementFailure) -> SettlementSummary:
    match result:
        case SettlementFailure():
            raise ConservationError(result.expense_id, result.message)
        case SettlementSummary():
            return result


class SettlementService:
    """Service for computing and confirming trip settlements."""

    def __init__(self, settings: Settings, database: Database):
        """Initialize the settlement service."""
        self.settings = settings
        self.db = database

    def default_currency(self, trip: TripSnapshot) -> str:
        """First currency the trip uses, else the configured default."""
        currencies = trip.currencies_in_use()
        return currencies[0] if currencies else self.settings.default_currency.upper()

    def compute(
        self, trip: TripSnapshot, currency: str | None = None, persist: bool = True
    ) -> SettlementSummary | SettlementFailure:
        """
        Compute one currency's settlement against the stored confirmations.

        Args:
            trip: Trip snapshot
            currency: Currency to settle (defaults to the trip's first)
            persist: Write the reconciled records back to the store

        Returns:
            The engine result for the currency
        """
        currency = (currency or self.default_currency(trip)).upper()
        prior = self.db.get_settlement_records(trip.id, currency)

        result = compute_settlement(trip.expenses, trip.participants, currency, prior)

        if persist and isinstance(result, SettlementSummary):
            self.db.save_reconciliation(trip.id, result)
            logger.info(
                f"Saved {len(result.records)} records for {trip.id}/{currency} "
                f"({len(result.archived_records)} archived)"
            )

        return result

    def compute_all(
        self, trip: TripSnapshot, persist: bool = True
    ) -> dict[str, SettlementSummary | SettlementFailure]:
        """Compute every currency the trip uses, each independently."""
        currencies = trip.currencies_in_use() or [self.settings.default_currency.upper()]
        return {
            currency: self.compute(trip, currency, persist=persist)
            for currency in currencies
        }

    def explain(
        self, trip: TripSnapshot, from_id: str, to_id: str, currency: str | None = None
    ) -> TransferBreakdown:
        """
        Explain a current transfer by its contributing expenses.

        Raises:
            TransferNotFoundError: If the pair has no transfer in the currency
        """
        summary = _require_summary(self.compute(trip, currency, persist=False))
        key = TransferKey(from_id=from_id, to_id=to_id, currency=summary.currency)
        transfer = summary.find_transfer(key)
        if transfer is None:
            raise TransferNotFoundError(key)
        return explain(transfer, trip.expenses)

    def settle(
        self, trip: TripSnapshot, from_id: str, to_id: str, currency: str | None = None
    ) -> SettlementSummary:
        """
        Mark a current transfer as paid and return the updated settlement.

        Raises:
            TransferNotFoundError: If the pair has no transfer in the currency
        """
        summary = _require_summary(self.compute(trip, currency))
        key = TransferKey(from_id=from_id, to_id=to_id, currency=summary.currency)
        transfer = summary.find_transfer(key)
        if transfer is None:
            raise TransferNotFoundError(key)

        records = mark_settled(summary.records, transfer)
        self.db.replace_settlement_records(trip.id, summary.currency, records)

        return _require_summary(self.compute(trip, summary.currency))

    def unsettle(
        self, trip: TripSnapshot, from_id: str, to_id: str, currency: str | None = None
    ) -> SettlementSummary:
        """Undo a settlement confirmation and return the updated settlement."""
        summary = _require_summary(self.compute(trip, currency))
        key = TransferKey(from_id=from_id, to_id=to_id, currency=summary.currency)

        records = mark_unsettled(summary.records, key)
        self.db.replace_settlement_records(trip.id, summary.currency, records)

        return _require_summary(self.compute(trip, summary.currency))
