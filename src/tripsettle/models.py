"""Pydantic domain models for TripSettle."""

from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Annotated, Literal, assert_never

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ============================================================================
# Trip Inputs
# ============================================================================


class Participant(BaseModel):
    """A trip participant. Referenced by id everywhere else."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str


class LineItem(BaseModel):
    """A receipt line item assigned to one or more participants."""

    id: str
    name: str
    quantity: Decimal = Decimal("1")
    unit_price: Decimal
    assigned_to: list[str] = Field(default_factory=list)
    # Custom shares, normalized over their sum; None splits evenly
    shares: dict[str, Decimal] | None = None

    @property
    def raw_total(self) -> Decimal:
        """Quantity times unit price, before rounding to a minor unit."""
        return self.quantity * self.unit_price


class ExtraBase(BaseModel):
    """What an extra is computed on and distributed by.

    - subtotal: every participant's item subtotal
    - item: one item's per-participant split (ref = item id)
    - extra: an earlier extra's per-participant allocation (ref = extra id)
    """

    kind: Literal["subtotal", "item", "extra"] = "subtotal"
    ref: str | None = None


class Extra(BaseModel):
    """Tax, tip, fee or discount applied on top of an itemized receipt."""

    id: str
    name: str
    kind: Literal["tax", "tip", "fee", "discount"]
    value: Decimal
    mode: Literal["percent", "amount"] = "percent"
    base: ExtraBase = Field(default_factory=ExtraBase)

    @property
    def is_discount(self) -> bool:
        return self.kind == "discount"


class EqualSplit(BaseModel):
    """Divide evenly; every participant has weight 1."""

    type: Literal["equal"] = "equal"
    participants: list[str]


class WeightedSplit(BaseModel):
    """Divide proportionally to positive weights."""

    type: Literal["weighted"] = "weighted"
    weights: dict[str, Decimal]


class ItemizedSplit(BaseModel):
    """Receipt split with precomputed per-participant amounts.

    participant_amounts is the output of the itemized calculator; items and
    extras are kept for validation and audit.
    """

    type: Literal["itemized"] = "itemized"
    participant_amounts: dict[str, Decimal]
    items: list[LineItem] = Field(default_factory=list)
    extras: list[Extra] = Field(default_factory=list)


SplitPolicy = Annotated[
    EqualSplit | WeightedSplit | ItemizedSplit, Field(discriminator="type")
]


class Expense(BaseModel):
    """An expense snapshot supplied by the trip's expense store."""

    id: str
    trip_id: str
    payer_id: str
    currency: str
    amount: Decimal
    split: SplitPolicy
    description: str | None = None
    category: str | None = None
    date: datetime | None = None

    @field_validator("currency")
    @classmethod
    def _normalize_currency(cls, value: str) -> str:
        return value.strip().upper()

    @property
    def participant_ids(self) -> list[str]:
        """Participants sharing the cost, in the order the split lists them."""
        split = self.split
        match split:
            case EqualSplit():
                return list(split.participants)
            case WeightedSplit():
                return list(split.weights)
            case ItemizedSplit():
                return list(split.participant_amounts)
            case _:
                assert_never(split)

    def involves(self, participant_id: str) -> bool:
        """True if the participant paid for or shares this expense."""
        return (
            self.payer_id == participant_id or participant_id in self.participant_ids
        )


class TripSnapshot(BaseModel):
    """A trip's participants and expenses as read from a trip file."""

    id: str
    name: str | None = None
    currencies: list[str] = Field(default_factory=list)
    participants: list[Participant] = Field(default_factory=list)
    expenses: list[Expense] = Field(default_factory=list)

    def currencies_in_use(self) -> list[str]:
        """Declared currencies first, then any others found on expenses."""
        seen: list[str] = []
        for code in [c.upper() for c in self.currencies] + [
            e.currency for e in self.expenses
        ]:
            if code not in seen:
                seen.append(code)
        return seen

    def participant_name(self, participant_id: str) -> str:
        for participant in self.participants:
            if participant.id == participant_id:
                return participant.name
        return participant_id


class Receipt(BaseModel):
    """An itemized receipt file: items and extras in one currency."""

    currency: str
    items: list[LineItem]
    extras: list[Extra] = Field(default_factory=list)
    participants: list[str] | None = None


# ============================================================================
# Itemized Results
# ============================================================================


class ParticipantBreakdown(BaseModel):
    """How one participant's itemized amount was built."""

    participant_id: str
    items_subtotal: Decimal
    item_amounts: dict[str, Decimal] = Field(default_factory=dict)  # item id -> amount
    extras_allocated: dict[str, Decimal] = Field(
        default_factory=dict
    )  # extra id -> signed amount (discounts negative)
    total: Decimal


class ItemizedResult(BaseModel):
    """Output of the itemized calculator."""

    currency: str
    subtotal: Decimal
    total: Decimal
    participant_amounts: dict[str, Decimal]
    breakdowns: dict[str, ParticipantBreakdown]


# ============================================================================
# Settlement Models
# ============================================================================


class TransferStatus(StrEnum):
    ACTIVE = "active"
    SETTLED = "settled"


class TransferKey(BaseModel):
    """Identity of a transfer across recomputations (direction sensitive)."""

    model_config = ConfigDict(frozen=True)

    from_id: str
    to_id: str
    currency: str

    @field_validator("currency")
    @classmethod
    def _normalize_currency(cls, value: str) -> str:
        return value.strip().upper()

    def reversed(self) -> "TransferKey":
        return TransferKey(from_id=self.to_id, to_id=self.from_id, currency=self.currency)

    def __str__(self) -> str:
        return f"{self.from_id} -> {self.to_id} ({self.currency})"


class NetBalance(BaseModel):
    """A participant's position in one currency.

    net = paid - owed; positive means owed money, negative means owes.
    """

    participant_id: str
    currency: str
    paid: Decimal
    owed: Decimal
    net: Decimal


class Transfer(BaseModel):
    """A payment that moves money from a debtor to a creditor."""

    from_id: str
    to_id: str
    currency: str
    amount: Decimal
    status: TransferStatus = TransferStatus.ACTIVE
    settled_at: datetime | None = None

    @field_validator("currency")
    @classmethod
    def _normalize_currency(cls, value: str) -> str:
        return value.strip().upper()

    @property
    def key(self) -> TransferKey:
        return TransferKey(
            from_id=self.from_id, to_id=self.to_id, currency=self.currency
        )

    @property
    def is_settled(self) -> bool:
        return self.status == TransferStatus.SETTLED


class SettlementRecord(BaseModel):
    """A persisted confirmation state for one transfer key.

    amount is the transfer amount at the time the record was written; for a
    settled record it is the amount the user confirmed as paid.
    """

    from_id: str
    to_id: str
    currency: str
    status: TransferStatus
    amount: Decimal
    settled_at: datetime | None = None

    @field_validator("currency")
    @classmethod
    def _normalize_currency(cls, value: str) -> str:
        return value.strip().upper()

    @property
    def key(self) -> TransferKey:
        return TransferKey(
            from_id=self.from_id, to_id=self.to_id, currency=self.currency
        )

    @classmethod
    def from_transfer(cls, transfer: Transfer) -> "SettlementRecord":
        return cls(
            from_id=transfer.from_id,
            to_id=transfer.to_id,
            currency=transfer.currency,
            status=transfer.status,
            amount=transfer.amount,
            settled_at=transfer.settled_at,
        )


# ============================================================================
# Diagnostics
# ============================================================================


class ValidationIssue(BaseModel):
    """A single reason an expense can't be accepted."""

    code: str
    message: str
    expense_id: str | None = None
    field: str | None = None


class ExpenseRejection(BaseModel):
    """An expense left out of a computation because it failed validation."""

    expense_id: str
    issues: list[ValidationIssue]


WarningCode = Literal[
    "balance_not_zero_sum",
    "settled_amount_drift",
    "settlement_reversed",
    "unknown_participant",
]


class SettlementWarning(BaseModel):
    """A data-integrity or reconciliation notice attached to a result."""

    code: WarningCode
    message: str
    key: TransferKey | None = None
    participant_id: str | None = None


# ============================================================================
# Attribution
# ============================================================================


class ExpenseContribution(BaseModel):
    """How one expense contributes to the debt from -> to."""

    expense_id: str
    description: str | None = None
    from_paid: Decimal
    from_owes: Decimal
    to_paid: Decimal
    to_owes: Decimal
    net_contribution: Decimal  # positive: from owes to; negative: to owes from

    @property
    def explanation(self) -> str:
        if self.net_contribution > 0:
            return f"Contributes {self.net_contribution} to transfer"
        if self.net_contribution < 0:
            return f"Reduces transfer by {abs(self.net_contribution)}"
        return "No net effect on transfer"


class TransferBreakdown(BaseModel):
    """Per-expense explanation of a transfer."""

    key: TransferKey
    total_amount: Decimal
    contributions: list[ExpenseContribution]
    skipped_expense_ids: list[str] = Field(default_factory=list)

    @property
    def relevant_breakdowns(self) -> list[ExpenseContribution]:
        """Contributions with a non-zero effect, in expense order."""
        return [c for c in self.contributions if c.net_contribution != 0]

    @property
    def total_positive_contributions(self) -> Decimal:
        return sum(
            (c.net_contribution for c in self.contributions if c.net_contribution > 0),
            Decimal("0"),
        )

    @property
    def total_negative_contributions(self) -> Decimal:
        return sum(
            (
                abs(c.net_contribution)
                for c in self.contributions
                if c.net_contribution < 0
            ),
            Decimal("0"),
        )


# ============================================================================
# Results
# ============================================================================


class ReconciliationResult(BaseModel):
    """Fresh transfers merged with persisted confirmation state."""

    active: list[Transfer]
    settled: list[Transfer]
    dropped_keys: list[TransferKey]
    archived: list[SettlementRecord]  # persisted records whose key vanished
    records: list[SettlementRecord]  # updated persisted state
    warnings: list[SettlementWarning] = Field(default_factory=list)


class SettlementSummary(BaseModel):
    """Everything a caller needs to show one currency's settlement."""

    currency: str
    balances: dict[str, NetBalance]
    active_transfers: list[Transfer]
    settled_transfers: list[Transfer]
    dropped_keys: list[TransferKey] = Field(default_factory=list)
    archived_records: list[SettlementRecord] = Field(default_factory=list)
    records: list[SettlementRecord] = Field(default_factory=list)
    rejected_expenses: list[ExpenseRejection] = Field(default_factory=list)
    warnings: list[SettlementWarning] = Field(default_factory=list)
    computed_at: datetime

    @property
    def transfers(self) -> list[Transfer]:
        return self.active_transfers + self.settled_transfers

    def find_transfer(self, key: TransferKey) -> Transfer | None:
        for transfer in self.transfers:
            if transfer.key == key:
                return transfer
        return None


class SettlementFailure(BaseModel):
    """A computation aborted by an invariant violation (a bug, not user error)."""

    kind: Literal["invariant_violation"] = "invariant_violation"
    message: str
    expense_id: str | None = None
