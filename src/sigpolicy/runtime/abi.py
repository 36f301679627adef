"""
Program interface contract.

A program is a core WebAssembly module exporting:

    memory                                           linear memory
    alloc(size: i32) -> i32                          returns a buffer for host input
    evaluate(msg_ptr, msg_len, aux_ptr, aux_len,
             cfg_ptr, cfg_len, oracle_ptr, oracle_len: i32) -> i64
    custom_hash(ptr: i32, len: i32) -> i64

Encoding rules:
    - An absent optional input is passed as (ptr=-1, len=0); a present but
      empty input as (ptr=0, len=0).
    - Oracle data is framed as repeated `u32 little-endian length || bytes`.
    - evaluate returns 0 on success, otherwise a packed buffer
      `(ptr << 32) | len` holding an error record: one tag byte followed by a
      UTF-8 message. Tags: 1 InvalidTransactionRequest,
      2 InvalidSignatureRequest, 3 Evaluation.
    - custom_hash returns -1 for "no custom hash", otherwise a packed buffer.
"""

import struct

from wasmtime import FuncType, MemoryType, Module

from sigpolicy.errors import (
    PROGRAM_ERRORS_BY_TAG,
    BindingsError,
    InvalidBytecodeError,
    ProgramError,
)
from sigpolicy.runtime.engine import granted_imports


ABSENT_PTR = -1
EVALUATE_OK = 0
CUSTOM_HASH_NONE = -1

_U32 = 0xFFFF_FFFF
_U64 = 0xFFFF_FFFF_FFFF_FFFF

MEMORY_EXPORT = "memory"

FUNCTION_EXPORTS: dict[str, tuple[list[str], list[str]]] = {
    "alloc": (["i32"], ["i32"]),
    "evaluate": (["i32"] * 8, ["i64"]),
    "custom_hash": (["i32", "i32"], ["i64"]),
}


# =============================================================================
# Module validation
# =============================================================================


def check_imports(module: Module) -> None:
    """
    Reject modules importing anything outside the host interface.

    Raises:
        InvalidBytecodeError: On the first ungranted import
    """
    allowed = granted_imports()
    for imported in module.imports:
        key = (imported.module, imported.name or "")
        if key not in allowed:
            raise InvalidBytecodeError(
                reason=f"imports `{key[0]}.{key[1]}`, which the host does not provide",
            )


def check_exports(module: Module) -> None:
    """
    Verify the module exports the program interface with the right types.

    Raises:
        BindingsError: If an export is missing or mis-typed
    """
    exports = {exported.name: exported.type for exported in module.exports}

    if not isinstance(exports.get(MEMORY_EXPORT), MemoryType):
        raise BindingsError(export=MEMORY_EXPORT, reason="memory export not found")

    for name, (params, results) in FUNCTION_EXPORTS.items():
        ty = exports.get(name)
        if ty is None:
            raise BindingsError(export=name, reason="export not found")
        if not isinstance(ty, FuncType):
            raise BindingsError(export=name, reason="export is not a function")

        actual_params = [str(p) for p in ty.params]
        actual_results = [str(r) for r in ty.results]
        if actual_params != params or actual_results != results:
            raise BindingsError(
                export=name,
                reason=(
                    f"expected {_signature(params, results)}, "
                    f"got {_signature(actual_params, actual_results)}"
                ),
            )


def _signature(params: list[str], results: list[str]) -> str:
    return f"({', '.join(params)}) -> ({', '.join(results)})"


# =============================================================================
# Value encoding
# =============================================================================


def to_i32(value: int) -> int:
    """Reinterpret an unsigned 32-bit value as a signed i32 argument."""
    value &= _U32
    return value - (1 << 32) if value >= (1 << 31) else value


def unpack_buffer(value: int) -> tuple[int, int]:
    """Split a packed i64 return value into (ptr, len)."""
    value &= _U64
    return value >> 32, value & _U32


def frame_oracle_data(blobs: list[bytes]) -> bytes:
    """Frame oracle blobs as repeated u32-LE length prefixes plus payload."""
    return b"".join(struct.pack("<I", len(blob)) + bytes(blob) for blob in blobs)


def decode_error_record(record: bytes) -> ProgramError:
    """
    Decode an error record returned by evaluate.

    Raises:
        BindingsError: If the record is empty, has an unknown tag, or its
            message is not UTF-8
    """
    if not record:
        raise BindingsError(export="evaluate", reason="empty error record")

    error_class = PROGRAM_ERRORS_BY_TAG.get(record[0])
    if error_class is None:
        raise BindingsError(export="evaluate", reason=f"unknown error tag {record[0]}")

    try:
        reason = bytes(record[1:]).decode("utf-8")
    except UnicodeDecodeError as e:
        raise BindingsError(export="evaluate", reason=f"error message is not UTF-8: {e}") from e

    return error_class(reason=reason)
