"""
CLI entry point for sigpolicy.

This module provides the Typer-based command-line interface for running
policy programs and the constraint library by hand.

Commands:
    evaluate    Evaluate a signature request with a program
    hash        Run a program's custom hash function
    parse-tx    Decode a hex-encoded transaction
    check-acl   Check a transaction's recipient against an ACL
    programs    List bundled programs

Exit codes:
    0   Authorized / successful
    1   Rejected, faulted, or bad input

Architecture Note:
    The CLI is intentionally thin - it parses arguments and delegates to the
    runtime and constraint modules, which are usable without the CLI.
"""

import json
import logging
import traceback
from pathlib import Path
from typing import Annotated, NoReturn, Optional

import typer
import wasmtime
from eth_utils import decode_hex
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from sigpolicy import __version__
from sigpolicy.architectures import Architecture, default_registry
from sigpolicy.constraints import Acl, AclKind
from sigpolicy.errors import SigPolicyError, UnknownProgramError
from sigpolicy.programs import guest_source, list_guests, load_guest
from sigpolicy.report import (
    generate_json_report,
    print_evaluation_report,
    print_transaction,
    transaction_to_dict,
)
from sigpolicy.runtime import Runtime
from sigpolicy.schema import RuntimeConfig, SignatureRequest, load_runtime_config

# Initialize Typer app with metadata
app = typer.Typer(
    name="sigpolicy",
    help="Evaluate signature requests with sandboxed policy programs.",
    add_completion=False,
    no_args_is_help=True,
)

# Rich console for formatted output
console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]sigpolicy[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    log_level: Annotated[
        str,
        typer.Option(
            "--log-level",
            help="Logging level (DEBUG, INFO, WARNING, ERROR).",
        ),
    ] = "WARNING",
) -> None:
    """
    sigpolicy - Sandboxed policy programs for signing requests.

    Run untrusted WebAssembly programs under a fuel budget to decide whether
    a message may be signed.
    """
    logging.basicConfig(
        level=log_level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


# =============================================================================
# Shared options and helpers
# =============================================================================

FuelOption = Annotated[
    Optional[int],
    typer.Option(
        "--fuel",
        "-f",
        help="Fuel budget per call. Overrides --runtime-config.",
        min=0,
    ),
]

MaxMemoryOption = Annotated[
    Optional[int],
    typer.Option(
        "--max-memory",
        help="Guest linear memory ceiling in bytes. Overrides --runtime-config.",
        min=1,
    ),
]

RuntimeConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--runtime-config",
        "-r",
        help="Path to a runtime config YAML file.",
        exists=True,
        readable=True,
        resolve_path=True,
    ),
]

JsonOption = Annotated[
    bool,
    typer.Option(
        "--json",
        help="Output results in JSON format.",
    ),
]

DebugOption = Annotated[
    bool,
    typer.Option(
        "--debug",
        help="Enable debug mode with full error tracebacks.",
    ),
]

ArchitectureOption = Annotated[
    str,
    typer.Option(
        "--architecture",
        help="Transaction architecture, looked up in the architecture registry.",
    ),
]


class InputError(Exception):
    """Bad command-line input; reported and mapped to exit code 1."""


def _load_program(program: str) -> bytes:
    """
    Resolve a program argument to WebAssembly bytecode.

    Accepts a path to a .wasm or .wat file, or the name of a bundled guest.
    """
    path = Path(program)
    if path.is_file():
        if path.suffix == ".wat":
            try:
                return bytes(wasmtime.wat2wasm(path.read_text(encoding="utf-8")))
            except wasmtime.WasmtimeError as e:
                raise InputError(f"Failed to compile {path}: {e}") from e
        return path.read_bytes()

    try:
        return load_guest(program)
    except UnknownProgramError as e:
        raise InputError(f"No such file or bundled program: {program}. {e.suggestion or ''}".strip()) from e


def _decode_bytes(value: str, is_hex: bool, what: str) -> bytes:
    if not is_hex:
        return value.encode("utf-8")
    try:
        return decode_hex(value)
    except ValueError as e:
        raise InputError(f"Invalid hex in {what}: {e}") from e


def _resolve_architecture(name: str) -> type[Architecture]:
    """Look up an architecture; raises UnknownArchitectureError if not registered."""
    return default_registry.get(name.lower())


def _build_runtime(
    fuel: int | None,
    max_memory: int | None,
    runtime_config: Path | None,
) -> Runtime:
    try:
        config = load_runtime_config(runtime_config) if runtime_config else RuntimeConfig()
    except (OSError, ValidationError) as e:
        raise InputError(f"Error loading runtime config: {e}") from e

    updates = {}
    if fuel is not None:
        updates["fuel"] = fuel
    if max_memory is not None:
        updates["max_memory_bytes"] = max_memory
    return Runtime.from_config(config.model_copy(update=updates))


def _fail_input(error: InputError, json_output: bool, debug: bool) -> NoReturn:
    if json_output:
        _output_json_error("input_error", str(error), debug)
    else:
        console.print(f"[red]{escape(str(error))}[/red]")
        if debug:
            console.print(f"[dim]{escape(traceback.format_exc())}[/dim]")
    raise typer.Exit(code=1)


def _output_json_error(error_type: str, message: str, include_traceback: bool = False) -> None:
    """Output an error in JSON format."""
    output = {
        "error": True,
        "error_type": error_type,
        "message": message,
    }
    if include_traceback:
        output["traceback"] = traceback.format_exc()
    print(json.dumps(output, indent=2))


# =============================================================================
# Runtime commands
# =============================================================================


@app.command()
def evaluate(
    program: Annotated[
        str,
        typer.Argument(help="Path to a .wasm/.wat program, or a bundled program name."),
    ],
    message: Annotated[
        str,
        typer.Option(
            "--message",
            "-m",
            help="Message to sign (UTF-8 text, or hex with --hex).",
        ),
    ],
    auxiliary_data: Annotated[
        Optional[str],
        typer.Option(
            "--aux",
            help="Auxiliary data (UTF-8 text, or hex with --hex).",
        ),
    ] = None,
    hex_input: Annotated[
        bool,
        typer.Option(
            "--hex",
            help="Treat --message and --aux as hex.",
        ),
    ] = False,
    config_path: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to the program config (passed to the program verbatim).",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ] = None,
    oracle: Annotated[
        Optional[list[str]],
        typer.Option(
            "--oracle",
            help="Oracle blob as hex. Repeat for several blobs.",
        ),
    ] = None,
    fuel: FuelOption = None,
    max_memory: MaxMemoryOption = None,
    runtime_config: RuntimeConfigOption = None,
    json_output: JsonOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Evaluate a signature request with a program.

    Exits 0 if the program authorizes the request, 1 otherwise.

    Example:
        $ sigpolicy evaluate length_check --message "hello world!"
        $ sigpolicy evaluate ./acl.wasm -m 0xef01... --config acl.json
    """
    try:
        bytecode = _load_program(program)
        request = SignatureRequest(
            message=_decode_bytes(message, hex_input, "--message"),
            auxiliary_data=(
                None if auxiliary_data is None
                else _decode_bytes(auxiliary_data, hex_input, "--aux")
            ),
        )
        config = config_path.read_bytes() if config_path else None
        oracle_data = (
            None if oracle is None
            else [_decode_bytes(blob, True, "--oracle") for blob in oracle]
        )
        runtime = _build_runtime(fuel, max_memory, runtime_config)
    except InputError as e:
        _fail_input(e, json_output, debug)

    report = runtime.try_evaluate(bytecode, request, config, oracle_data)

    if json_output:
        print(generate_json_report(report, program, fuel_budget=runtime.fuel))
    else:
        print_evaluation_report(report, program, console, fuel_budget=runtime.fuel)

    raise typer.Exit(code=0 if report.authorized else 1)


@app.command("hash")
def custom_hash(
    program: Annotated[
        str,
        typer.Argument(help="Path to a .wasm/.wat program, or a bundled program name."),
    ],
    message: Annotated[
        str,
        typer.Option(
            "--message",
            "-m",
            help="Message to hash (UTF-8 text, or hex with --hex).",
        ),
    ],
    hex_input: Annotated[
        bool,
        typer.Option(
            "--hex",
            help="Treat --message as hex.",
        ),
    ] = False,
    fuel: FuelOption = None,
    max_memory: MaxMemoryOption = None,
    runtime_config: RuntimeConfigOption = None,
    json_output: JsonOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Run a program's custom hash function.

    Exits 0 and prints the 32-byte digest if the program defines one.

    Example:
        $ sigpolicy hash xor_fold_hash --message "some data"
    """
    try:
        bytecode = _load_program(program)
        data = _decode_bytes(message, hex_input, "--message")
        runtime = _build_runtime(fuel, max_memory, runtime_config)
    except InputError as e:
        _fail_input(e, json_output, debug)

    report = runtime.try_custom_hash(bytecode, data)

    if json_output:
        print(generate_json_report(report, program, fuel_budget=runtime.fuel))
    else:
        print_evaluation_report(report, program, console, fuel_budget=runtime.fuel)

    raise typer.Exit(code=0 if report.authorized else 1)


# =============================================================================
# Constraint commands
# =============================================================================


@app.command("parse-tx")
def parse_tx(
    transaction: Annotated[
        str,
        typer.Argument(help="Hex-encoded unsigned transaction."),
    ],
    architecture: ArchitectureOption = "evm",
    json_output: JsonOption = False,
) -> None:
    """
    Decode a hex-encoded transaction.

    Example:
        $ sigpolicy parse-tx 0xef01808094772b...
    """
    try:
        tx = _resolve_architecture(architecture).parse(transaction)
    except SigPolicyError as e:
        if json_output:
            print(json.dumps(e.to_dict(), indent=2))
        else:
            console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1)

    if json_output:
        print(json.dumps(transaction_to_dict(tx), indent=2))
    else:
        print_transaction(tx, console)


@app.command("check-acl")
def check_acl(
    transaction: Annotated[
        str,
        typer.Argument(help="Hex-encoded unsigned transaction."),
    ],
    address: Annotated[
        Optional[list[str]],
        typer.Option(
            "--address",
            "-a",
            help="Address on the list. Repeat for several addresses.",
        ),
    ] = None,
    deny: Annotated[
        bool,
        typer.Option(
            "--deny",
            help="Treat the addresses as a deny list (default: allow list).",
        ),
    ] = False,
    allow_null: Annotated[
        bool,
        typer.Option(
            "--allow-null",
            help="Accept transactions without a recipient.",
        ),
    ] = False,
    config_path: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to a JSON ACL config. Replaces the other ACL options.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ] = None,
    architecture: ArchitectureOption = "evm",
    json_output: JsonOption = False,
) -> None:
    """
    Check a transaction's recipient against an ACL.

    Exits 0 if the ACL accepts the transaction, 1 otherwise.

    Example:
        $ sigpolicy check-acl 0xef01... -a 0x772b9a9e8aa1c9db861c6611a82d251db4fac990
    """
    try:
        if config_path is not None:
            acl = Acl.from_config(config_path.read_bytes())
        else:
            acl = Acl(
                addresses=address or [],
                kind=AclKind.DENY if deny else AclKind.ALLOW,
                allow_null_recipient=allow_null,
            )
        tx = _resolve_architecture(architecture).parse(transaction)
        acl.is_satisfied_by(tx)
    except SigPolicyError as e:
        if json_output:
            print(json.dumps({"allowed": False, "error": e.to_dict()}, indent=2))
        else:
            console.print(f"[yellow]⊘[/yellow] {escape(str(e))}")
        raise typer.Exit(code=1)

    if json_output:
        print(json.dumps({"allowed": True, "recipient": tx.receiver()}, indent=2))
    else:
        recipient = tx.receiver() or "(none)"
        console.print(f"[green]✓[/green] Recipient [cyan]{escape(recipient)}[/cyan] allowed ({acl.kind.value} list)")


@app.command()
def programs(
    json_output: JsonOption = False,
) -> None:
    """List bundled programs."""
    guests = list_guests()

    if json_output:
        print(json.dumps({"programs": guests, "count": len(guests)}, indent=2))
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Program", style="cyan")
    table.add_column("Description")

    for name in guests:
        table.add_row(name, _guest_summary(guest_source(name)))

    console.print(f"[bold]Bundled Programs ({len(guests)})[/bold]")
    console.print(table)


def _guest_summary(source: str) -> str:
    """First comment line of a WAT source."""
    for line in source.splitlines():
        line = line.strip()
        if line.startswith(";;"):
            return line.lstrip("; ").strip()
    return ""


if __name__ == "__main__":
    app()
