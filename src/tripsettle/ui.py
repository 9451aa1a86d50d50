"""Interactive UI components for picking transfers."""

import logging
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from .models import Transfer, TripSnapshot

logger = logging.getLogger(__name__)


def transfer_label(transfer: Transfer, trip: TripSnapshot) -> str:
    """Human-readable label, e.g. 'Alice -> Bob 33.34 USD'."""
    return (
        f"{trip.participant_name(transfer.from_id)} -> "
        f"{trip.participant_name(transfer.to_id)} "
        f"{transfer.amount} {transfer.currency}"
    )


class TransferCompleter(Completer):
    """Fuzzy search completer for transfers."""

    def __init__(self, transfers: list[Transfer], trip: TripSnapshot):
        """Initialize the completer with the selectable transfers."""
        self.transfers = transfers

        # Build searchable labels and label-to-transfer mapping
        self.label_to_transfer: dict[str, Transfer] = {}
        for transfer in transfers:
            self.label_to_transfer[transfer_label(transfer, trip)] = transfer

    def get_completions(self, document: Document, complete_event: Any):
        """Get fuzzy-matched completions."""
        query = document.text.lower()

        for label in self.label_to_transfer:
            if not query or self._fuzzy_match(query, label.lower()):
                yield Completion(
                    text=label,
                    start_position=-len(document.text),
                    display=label,
                )

    def _fuzzy_match(self, query: str, text: str) -> bool:
        """
        Fuzzy match: all characters in query must appear in order in text.

        Example:
            query="alb" matches "Alice -> Bob 10.00 USD"
        """
        query_idx = 0
        for char in text:
            if query_idx < len(query) and char == query[query_idx]:
                query_idx += 1
        return query_idx == len(query)


def select_transfer_interactive(
    transfers: list[Transfer], trip: TripSnapshot
) -> Transfer | None:
    """
    Interactive transfer selection with fuzzy search.

    Args:
        transfers: Active transfers to choose from
        trip: Trip snapshot, for participant names

    Returns:
        Selected transfer, or None to skip
    """
    if not transfers:
        return None

    print("\n💸 Which transfer has been paid?")
    for transfer in transfers:
        print(f"   • {transfer_label(transfer, trip)}")
    print("   Type to search, press Enter to confirm, Ctrl+C to skip\n")

    completer = TransferCompleter(transfers, trip)
    session: PromptSession[str] = PromptSession(completer=completer)

    try:
        while True:
            result = session.prompt("Transfer: ", complete_while_typing=True)

            if not result:
                return None

            transfer = completer.label_to_transfer.get(result)
            if transfer:
                logger.info(f"User selected transfer: {transfer.key}")
                return transfer

            print("❌ Unknown transfer. Please select from the list or press Tab to complete.")

    except KeyboardInterrupt:
        print("\n⏭️  Skipped")
        return None
    except EOFError:
        return None


def confirm_transfer(transfer: Transfer, trip: TripSnapshot) -> bool:
    """Simple yes/no confirmation before marking a transfer as paid."""
    print(f"\n💸 {transfer_label(transfer, trip)}")
    response = input("   Mark as paid? [Y/n] ").strip().lower()
    return response in ("", "y", "yes")
