"""
Console report generator for sigpolicy.

Renders evaluation outcomes and parsed transactions with Rich.

Design Principles:
    - Outcome at a glance: one header panel with an icon and colour
    - Systemic faults are labelled as such so operators can tell a broken
      program or budget apart from a legitimate rejection
    - Never print message or config contents, only sizes
    - Error text from programs is rendered as plain Text, never as markup
"""

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from sigpolicy.architectures.base import TransactionRequest
from sigpolicy.architectures.evm import EvmTransactionRequest
from sigpolicy.schema import EvaluationReport


# Status icons
ICON_AUTHORIZED = "[green]✓[/green]"
ICON_REJECTED = "[yellow]⊘[/yellow]"
ICON_FAULT = "[red]✗[/red]"


def print_evaluation_report(
    report: EvaluationReport,
    program: str,
    console: Console | None = None,
    fuel_budget: int | None = None,
) -> None:
    """
    Print a console report for one evaluate or custom_hash call.

    Args:
        report: The summarized outcome
        program: Display name of the program (path or bundled guest name)
        console: Rich Console instance (creates one if not provided)
        fuel_budget: Budget granted to the call, shown next to fuel consumed
    """
    if console is None:
        console = Console()

    _print_header(console, report, program)
    console.print()

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Metric", style="dim")
    table.add_column("Value")

    fuel = str(report.fuel_consumed)
    if fuel_budget is not None:
        fuel = f"{report.fuel_consumed} / {fuel_budget}"
    table.add_row("Fuel", fuel)
    table.add_row("Duration", f"{report.duration_ms:.1f}ms")

    if report.digest is not None:
        table.add_row("Digest", f"[cyan]{report.digest}[/cyan]")

    if not report.authorized:
        style = "red" if report.systemic else "yellow"
        table.add_row("Error", f"[{style}]{report.error_type} (E{report.error_code})[/{style}]")
        table.add_row("Message", Text(report.message or "", style=style))
        table.add_row("Systemic", "yes" if report.systemic else "no")

    console.print(table)


def _print_header(console: Console, report: EvaluationReport, program: str) -> None:
    """Print the header panel with the outcome."""
    if report.authorized:
        status_style = "green"
        icon = ICON_AUTHORIZED
    elif report.systemic:
        status_style = "red"
        icon = ICON_FAULT
    else:
        status_style = "yellow"
        icon = ICON_REJECTED

    header = Text()
    header.append(" Program ", style="bold")
    header.append(program, style="bold cyan")
    header.append(" │ ", style="dim")
    header.append(report.outcome.value.upper(), style=f"bold {status_style}")
    header.append(" ")
    header.append_text(Text.from_markup(icon))

    console.print(Panel(header, expand=False))


def print_transaction(
    tx: TransactionRequest,
    console: Console | None = None,
) -> None:
    """
    Print the decoded fields of a transaction request.

    Only recipient and sender are shown for non-EVM architectures.

    Args:
        tx: The parsed transaction
        console: Rich Console instance (creates one if not provided)
    """
    if console is None:
        console = Console()

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Field", style="dim")
    table.add_column("Value")

    table.add_row("Architecture", tx.architecture.name)
    table.add_row("Recipient", _address_cell(tx.receiver(), "(none)"))
    table.add_row("Sender", _address_cell(tx.sender(), "(unsigned)"))
    if isinstance(tx, EvmTransactionRequest):
        _add_evm_rows(table, tx)

    console.print(Panel(table, title="[bold]Transaction[/bold]", expand=False))


def _address_cell(address: str | None, placeholder: str) -> Text:
    if address is None:
        return Text(placeholder, style="dim")
    return Text(address)


def _add_evm_rows(table: Table, tx: EvmTransactionRequest) -> None:
    table.add_row("Type", str(tx.tx_type))
    table.add_row("Nonce", str(tx.nonce))
    table.add_row("Value", str(tx.value))
    table.add_row("Gas", str(tx.gas))
    if tx.gas_price is not None:
        table.add_row("Gas price", str(tx.gas_price))
    if tx.max_fee_per_gas is not None:
        table.add_row("Max fee", str(tx.max_fee_per_gas))
        table.add_row("Max priority fee", str(tx.max_priority_fee_per_gas))
    if tx.chain_id is not None:
        table.add_row("Chain id", str(tx.chain_id))
    table.add_row("Data", f"{len(tx.data)} bytes")
    table.add_row("Sighash", f"[cyan]0x{tx.sighash().hex()}[/cyan]")
