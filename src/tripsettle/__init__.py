"""TripSettle - Settle shared trip expenses with the fewest transfers."""

__version__ = "0.1.0"

from .allocation import allocate
from .config import Settings, load_settings
from .db import Database
from .engine import (
    compute_settlement,
    explain_transfer,
    mark_settled,
    mark_unsettled,
    validate_expense,
)
from .itemized import build_itemized_expense, calculate_itemized
from .models import (
    Expense,
    Participant,
    SettlementFailure,
    SettlementRecord,
    SettlementSummary,
    Transfer,
    TransferKey,
    TripSnapshot,
)
from .service import SettlementService, load_trip

__all__ = [
    "allocate",
    "Settings",
    "load_settings",
    "Database",
    "compute_settlement",
    "explain_transfer",
    "mark_settled",
    "mark_unsettled",
    "validate_expense",
    "build_itemized_expense",
    "calculate_itemized",
    "Expense",
    "Participant",
    "SettlementFailure",
    "SettlementRecord",
    "SettlementSummary",
    "Transfer",
    "TransferKey",
    "TripSnapshot",
    "SettlementService",
    "load_trip",
]
