"""
Pytest configuration and fixtures for sigpolicy tests.

This module provides shared fixtures used across unit, integration,
and security tests: transaction vectors, ACL addresses, and a builder for
small hand-written WebAssembly guests.
"""

import tempfile
from pathlib import Path
from typing import Callable, Generator

import pytest
import wasmtime

from sigpolicy.runtime import Runtime


# =============================================================================
# Transaction vectors
# =============================================================================

# Legacy EIP-155 transaction (chain id 1) to 0x772b9a9e8aa1c9db861c6611a82d251db4fac990
TX_TO_A = (
    "0xef01808094772b9a9e8aa1c9db861c6611a82d251db4fac990"
    "019243726561746564204f6e20456e74726f7079018080"
)
# Same transaction with the last address byte changed to 0x91
TX_TO_B = (
    "0xef01808094772b9a9e8aa1c9db861c6611a82d251db4fac991"
    "019243726561746564204f6e20456e74726f7079018080"
)
ADDRESS_A = "0x772b9a9e8aa1c9db861c6611a82d251db4fac990"
ADDRESS_B = "0x772b9a9e8aa1c9db861c6611a82d251db4fac991"
TX_TO_A_SIGHASH = "e62e139a15f27f3d5ba043756aaca2b6fe9597a95973befa36dbe6095ee16da2"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def tx_to_a() -> str:
    """Hex transaction whose recipient is ADDRESS_A."""
    return TX_TO_A


@pytest.fixture
def tx_to_b() -> str:
    """Hex transaction whose recipient is ADDRESS_B."""
    return TX_TO_B


@pytest.fixture
def tx_no_recipient() -> str:
    """Hex legacy transaction with an empty recipient (contract creation)."""
    # rlp([nonce=1, gasPrice=1, gas=21000, to=b"", value=0, data=b""])
    return "0xc80101825208808080"


@pytest.fixture
def address_a() -> str:
    return ADDRESS_A


@pytest.fixture
def address_b() -> str:
    return ADDRESS_B


# =============================================================================
# Runtime and guests
# =============================================================================


@pytest.fixture
def runtime() -> Runtime:
    """Runtime with the default fuel budget."""
    return Runtime()


GUEST_TEMPLATE = """
(module
  {imports}
  (memory (export "memory") 1)
  (global $heap (mut i32) (i32.const 1024))
  {data}

  (func $alloc (export "alloc") (param $size i32) (result i32)
    (local $ptr i32)
    (local.set $ptr (global.get $heap))
    (global.set $heap (i32.add (global.get $heap) (local.get $size)))
    (local.get $ptr))

  (func $pack (param $ptr i32) (param $len i32) (result i64)
    (i64.or
      (i64.shl (i64.extend_i32_u (local.get $ptr)) (i64.const 32))
      (i64.extend_i32_u (local.get $len))))

  (func {evaluate_export}
    (param $msg_ptr i32) (param $msg_len i32)
    (param $aux_ptr i32) (param $aux_len i32)
    (param $cfg_ptr i32) (param $cfg_len i32)
    (param $oracle_ptr i32) (param $oracle_len i32)
    (result i64)
    {evaluate})

  {custom_hash}
  {extra}
)
"""

DEFAULT_CUSTOM_HASH = """
  (func (export "custom_hash") (param $ptr i32) (param $len i32) (result i64)
    (i64.const -1))
"""


@pytest.fixture
def build_guest() -> Callable[..., bytes]:
    """
    Return a builder for small test guests.

    Every argument replaces one piece of a minimal, valid guest:
        evaluate: body of the evaluate function (must leave an i64)
        custom_hash: the whole custom_hash function definition ("" to omit)
        data: data segments
        imports: import declarations
        extra: extra module fields (e.g. a start function)
        evaluate_export: export clause of evaluate ("" to omit the export)
    """

    def build(
        evaluate: str = "(i64.const 0)",
        custom_hash: str = DEFAULT_CUSTOM_HASH,
        data: str = "",
        imports: str = "",
        extra: str = "",
        evaluate_export: str = '(export "evaluate")',
    ) -> bytes:
        wat = GUEST_TEMPLATE.format(
            evaluate=evaluate,
            custom_hash=custom_hash,
            data=data,
            imports=imports,
            extra=extra,
            evaluate_export=evaluate_export,
        )
        return bytes(wasmtime.wat2wasm(wat))

    return build


@pytest.fixture
def hash_guest(build_guest: Callable[..., bytes]) -> Callable[[int], bytes]:
    """Return a builder for guests whose custom_hash returns `length` bytes at offset 512."""

    def build(length: int) -> bytes:
        return build_guest(
            custom_hash=f"""
  (func (export "custom_hash") (param $ptr i32) (param $len i32) (result i64)
    (call $pack (i32.const 512) (i32.const {length})))
""",
        )

    return build
