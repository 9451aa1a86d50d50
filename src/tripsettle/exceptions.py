"""Custom exceptions for TripSettle."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import TransferKey, ValidationIssue


class TripSettleError(Exception):
    """Base exception for all TripSettle errors."""

    pass


class ConfigurationError(TripSettleError):
    """Raised when configuration is invalid or missing."""

    pass


class TripFileError(TripSettleError):
    """Raised when a trip snapshot file cannot be read or parsed."""

    pass


class ExpenseValidationError(TripSettleError):
    """Raised when an expense is rejected before allocation."""

    def __init__(
        self,
        issues: "list[ValidationIssue]",
        expense_id: str | None = None,
    ):
        self.issues = issues
        self.expense_id = expense_id
        details = "; ".join(issue.message for issue in issues)
        prefix = f"Expense {expense_id} is invalid" if expense_id else "Invalid expense"
        super().__init__(f"{prefix}: {details}")


class ConservationError(TripSettleError):
    """Raised when allocated shares don't sum exactly to the expense amount."""

    def __init__(self, expense_id: str | None, message: str):
        self.expense_id = expense_id
        super().__init__(message)


class TransferNotFoundError(TripSettleError):
    """Raised when a transfer key is not part of the current settlement."""

    def __init__(self, key: "TransferKey"):
        self.key = key
        super().__init__(f"No current transfer {key}")
