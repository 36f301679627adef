"""
Bundled WebAssembly guests.

Guests ship as WAT text inside the package and are compiled to binary
WebAssembly on load, so the wheel carries no opaque bytecode.

Usage:
    from sigpolicy.programs.loader import load_guest

    program = load_guest("length_check")
    Runtime().evaluate(program, SignatureRequest(message=b"..."))
"""

import functools
from importlib.resources import files

import wasmtime

from sigpolicy.errors import UnknownProgramError


GUEST_SUFFIX = ".wat"


def list_guests() -> list[str]:
    """Names of all bundled guests, sorted."""
    guests = files("sigpolicy.programs") / "guests"
    return sorted(
        entry.name[: -len(GUEST_SUFFIX)]
        for entry in guests.iterdir()
        if entry.name.endswith(GUEST_SUFFIX)
    )


def guest_source(name: str) -> str:
    """
    Return the WAT source of a bundled guest.

    Raises:
        UnknownProgramError: If no guest has that name
    """
    resource = files("sigpolicy.programs") / "guests" / f"{name}{GUEST_SUFFIX}"
    if not resource.is_file():
        raise UnknownProgramError(program=name, available=list_guests())
    return resource.read_text(encoding="utf-8")


@functools.lru_cache(maxsize=None)
def load_guest(name: str) -> bytes:
    """
    Compile a bundled guest to WebAssembly bytecode.

    Raises:
        UnknownProgramError: If no guest has that name
    """
    return bytes(wasmtime.wat2wasm(guest_source(name)))
