"""CLI for TripSettle using Typer."""

import logging
import sys
from decimal import Decimal
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from .config import load_settings
from .currency import decimal_places
from .db import Database
from .itemized import calculate_itemized
from .models import (
    ItemizedResult,
    SettlementFailure,
    SettlementSummary,
    TransferBreakdown,
    TripSnapshot,
)
from .service import SettlementService, load_receipt, load_trip, validate_trip
from .ui import confirm_transfer, select_transfer_interactive

app = typer.Typer(
    name="tripsettle",
    help="Settle shared trip expenses with the fewest transfers",
)

console = Console()


def setup_logging(verbose: bool = False, level_name: str = "INFO"):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def format_money(amount: Decimal, currency: str, use_color: bool = True) -> str:
    """
    Format money in accounting style with alignment.

    Negative amounts use parentheses: (85.02 USD)
    Positive amounts have spaces:      85.02 USD
    """
    places = decimal_places(currency)
    abs_amount = abs(amount)
    if amount < 0:
        if use_color:
            formatted = f"([red]{abs_amount:,.{places}f}[/red] {currency})"
        else:
            formatted = f"({abs_amount:,.{places}f} {currency})"
    else:
        if use_color:
            formatted = f" [green]{abs_amount:,.{places}f}[/green] {currency} "
        else:
            formatted = f" {abs_amount:,.{places}f} {currency} "
    return formatted


def display_summary(summary: SettlementSummary, trip: TripSnapshot):
    """Display balances, transfers and warnings for one currency."""
    currency = summary.currency

    table = Table(
        title=f"Balances ({currency})", show_header=True, header_style="bold magenta"
    )
    table.add_column("Participant", style="cyan")
    table.add_column("Paid", justify="right")
    table.add_column("Owed", justify="right")
    table.add_column("Net", justify="right")

    for balance in summary.balances.values():
        table.add_row(
            trip.participant_name(balance.participant_id),
            format_money(balance.paid, currency, use_color=False),
            format_money(balance.owed, currency, use_color=False),
            format_money(balance.net, currency),
        )

    console.print(table)

    if not summary.transfers:
        console.print(f"[green]✓ Everyone is settled up in {currency}[/green]")
    else:
        table = Table(
            title=f"Transfers ({currency})",
            show_header=True,
            header_style="bold magenta",
        )
        table.add_column("From", style="cyan")
        table.add_column("To", style="cyan")
        table.add_column("Amount", justify="right")
        table.add_column("Status")

        for transfer in summary.active_transfers:
            table.add_row(
                trip.participant_name(transfer.from_id),
                trip.participant_name(transfer.to_id),
                format_money(transfer.amount, currency, use_color=False),
                "[yellow]active[/yellow]",
            )
        for transfer in summary.settled_transfers:
            settled_on = (
                f" {transfer.settled_at.date()}" if transfer.settled_at else ""
            )
            table.add_row(
                trip.participant_name(transfer.from_id),
                trip.participant_name(transfer.to_id),
                format_money(transfer.amount, currency, use_color=False),
                f"[green]settled{settled_on}[/green]",
            )

        console.print(table)

    for key in summary.dropped_keys:
        console.print(f"[dim]Dropped transfer {key} (no longer needed)[/dim]")

    for rejection in summary.rejected_expenses:
        console.print(
            f"[red]✗ Expense {rejection.expense_id} left out:[/red] "
            f"{'; '.join(issue.message for issue in rejection.issues)}"
        )

    for warning in summary.warnings:
        console.print(f"[yellow]⚠️  {warning.message}[/yellow]")


def display_failure(currency: str, failure: SettlementFailure):
    console.print(
        f"\n[bold red]✗ {currency} settlement failed:[/bold red] {failure.message}"
    )


def display_breakdown(breakdown: TransferBreakdown, trip: TripSnapshot):
    """Display the per-expense contributions to a transfer."""
    key = breakdown.key
    currency = key.currency

    console.print(
        f"\n[bold]{trip.participant_name(key.from_id)} pays "
        f"{trip.participant_name(key.to_id)}:[/bold] "
        f"{format_money(breakdown.total_amount, currency)}"
    )

    table = Table(
        title="Contributing Expenses", show_header=True, header_style="bold magenta"
    )
    table.add_column("ID", style="dim", width=10)
    table.add_column("Description", style="cyan", width=40)
    table.add_column("Contribution", justify="right")

    for contribution in breakdown.relevant_breakdowns:
        desc = contribution.description or ""
        table.add_row(
            contribution.expense_id,
            desc[:40] + "..." if len(desc) > 40 else desc,
            format_money(contribution.net_contribution, currency),
        )

    console.print(table)

    console.print()
    console.print("[bold]Summary:[/bold]")
    console.print(
        f"  Increases: {format_money(breakdown.total_positive_contributions, currency)}"
    )
    console.print(
        f"  Decreases: {format_money(-breakdown.total_negative_contributions, currency)}"
    )
    if breakdown.skipped_expense_ids:
        console.print(
            f"  [yellow]Skipped invalid expenses: "
            f"{', '.join(breakdown.skipped_expense_ids)}[/yellow]"
        )


def display_itemized(result: ItemizedResult):
    """Display an itemized receipt's per-participant amounts."""
    currency = result.currency
    extra_ids: list[str] = []
    for breakdown in result.breakdowns.values():
        for extra_id in breakdown.extras_allocated:
            if extra_id not in extra_ids:
                extra_ids.append(extra_id)

    table = Table(title="Receipt Split", show_header=True, header_style="bold magenta")
    table.add_column("Participant", style="cyan")
    table.add_column("Items", justify="right")
    for extra_id in extra_ids:
        table.add_column(extra_id, justify="right")
    table.add_column("Total", justify="right")

    for pid, breakdown in result.breakdowns.items():
        table.add_row(
            pid,
            format_money(breakdown.items_subtotal, currency, use_color=False),
            *[
                format_money(
                    breakdown.extras_allocated.get(extra_id, Decimal("0")),
                    currency,
                    use_color=False,
                )
                for extra_id in extra_ids
            ],
            format_money(breakdown.total, currency),
        )

    console.print(table)
    console.print(f"  Subtotal: {format_money(result.subtotal, currency)}")
    console.print(f"  Total: {format_money(result.total, currency)}")

    computed_total = sum(result.participant_amounts.values(), Decimal("0"))
    if computed_total == result.total:
        console.print("  [green]✓ Totals match (no rounding errors)[/green]")
    else:
        console.print(
            f"  [red]✗ Total mismatch: computed {computed_total}, "
            f"expected {result.total}[/red]"
        )


@app.command()
def summary(
    trip_file: Path = typer.Argument(..., help="Trip snapshot JSON file"),
    currency: str | None = typer.Option(
        None, "--currency", help="Only settle this currency"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Show balances and transfers for a trip.

    Each currency settles independently. Confirmations stored from earlier
    runs are reconciled with the fresh transfers and saved back.
    """
    try:
        settings = load_settings()
        setup_logging(verbose, settings.log_level)
        db = Database(settings.database_path)
        service = SettlementService(settings, db)

        trip = load_trip(trip_file)
        console.print(f"\n[bold blue]Trip {trip.name or trip.id}[/bold blue]\n")

        if currency:
            results = {currency.upper(): service.compute(trip, currency)}
        else:
            results = service.compute_all(trip)

        failed = False
        for code, result in results.items():
            match result:
                case SettlementFailure():
                    display_failure(code, result)
                    failed = True
                case SettlementSummary():
                    display_summary(result, trip)
            console.print()

        if failed:
            sys.exit(1)

    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def explain(
    trip_file: Path = typer.Argument(..., help="Trip snapshot JSON file"),
    from_id: str = typer.Argument(..., help="Participant who pays"),
    to_id: str = typer.Argument(..., help="Participant who receives"),
    currency: str | None = typer.Option(None, "--currency", help="Transfer currency"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Explain which expenses make up a transfer."""
    try:
        settings = load_settings()
        setup_logging(verbose, settings.log_level)
        db = Database(settings.database_path)
        service = SettlementService(settings, db)

        trip = load_trip(trip_file)
        breakdown = service.explain(trip, from_id, to_id, currency)
        display_breakdown(breakdown, trip)

    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def settle(
    trip_file: Path = typer.Argument(..., help="Trip snapshot JSON file"),
    from_id: str | None = typer.Argument(None, help="Participant who paid"),
    to_id: str | None = typer.Argument(None, help="Participant who was paid"),
    currency: str | None = typer.Option(None, "--currency", help="Transfer currency"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Mark a transfer as paid.

    Without FROM and TO, pick one of the active transfers interactively.
    """
    try:
        settings = load_settings()
        setup_logging(verbose, settings.log_level)
        db = Database(settings.database_path)
        service = SettlementService(settings, db)

        trip = load_trip(trip_file)

        if (from_id is None) != (to_id is None):
            console.print("[red]Give both FROM and TO, or neither.[/red]")
            sys.exit(1)

        result = service.compute(trip, currency)
        if isinstance(result, SettlementFailure):
            display_failure((currency or service.default_currency(trip)).upper(), result)
            sys.exit(1)

        if from_id is None:
            transfer = select_transfer_interactive(result.active_transfers, trip)
            if transfer is None:
                console.print("[yellow]No transfer selected.[/yellow]")
                return
        else:
            transfer = next(
                (
                    t
                    for t in result.transfers
                    if t.from_id == from_id and t.to_id == to_id
                ),
                None,
            )
            if transfer is None:
                console.print(
                    f"[red]No current transfer from {from_id} to {to_id} "
                    f"in {result.currency}.[/red]"
                )
                sys.exit(1)

        if transfer.is_settled:
            console.print("[yellow]Transfer is already settled.[/yellow]")
            return

        if not yes and not confirm_transfer(transfer, trip):
            console.print("[yellow]Cancelled.[/yellow]")
            return

        updated = service.settle(trip, transfer.from_id, transfer.to_id, transfer.currency)
        console.print(f"\n[bold green]✓ Marked {transfer.key} as paid[/bold green]\n")
        display_summary(updated, trip)

    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def unsettle(
    trip_file: Path = typer.Argument(..., help="Trip snapshot JSON file"),
    from_id: str = typer.Argument(..., help="Participant who paid"),
    to_id: str = typer.Argument(..., help="Participant who was paid"),
    currency: str | None = typer.Option(None, "--currency", help="Transfer currency"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Undo a payment confirmation."""
    try:
        settings = load_settings()
        setup_logging(verbose, settings.log_level)
        db = Database(settings.database_path)
        service = SettlementService(settings, db)

        trip = load_trip(trip_file)
        updated = service.unsettle(trip, from_id, to_id, currency)

        console.print(
            f"\n[bold green]✓ {from_id} -> {to_id} is active again[/bold green]\n"
        )
        display_summary(updated, trip)

    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if "db" in locals():
            db.close()


@app.command()
def validate(
    trip_file: Path = typer.Argument(..., help="Trip snapshot JSON file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Check every expense in a trip and list the problems found."""
    try:
        settings = load_settings()
        setup_logging(verbose, settings.log_level)

        trip = load_trip(trip_file)
        problems = validate_trip(trip)

        if not problems:
            console.print(
                f"[green]✓ All {len(trip.expenses)} expenses are valid[/green]"
            )
            return

        table = Table(title="Invalid Expenses", show_header=True, header_style="bold magenta")
        table.add_column("Expense", style="dim")
        table.add_column("Code", style="yellow")
        table.add_column("Problem", no_wrap=False)

        for expense_id, issues in problems.items():
            for issue in issues:
                table.add_row(expense_id, issue.code, issue.message)

        console.print(table)
        sys.exit(1)

    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)


@app.command()
def itemize(
    receipt_file: Path = typer.Argument(..., help="Receipt JSON file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Split an itemized receipt.

    Items are rounded to the currency's minor unit; tax, tip, fees and
    discounts are spread proportionally to each participant's base.
    """
    setup_logging(verbose)

    try:
        receipt = load_receipt(receipt_file)
        result = calculate_itemized(
            receipt.items, receipt.extras, receipt.currency, receipt.participants
        )
        display_itemized(result)

    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)


if __name__ == "__main__":
    app()
