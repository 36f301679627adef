"""
Integration tests for the Runtime.

Tests cover:
- End-to-end evaluation with bundled guests
- Bytecode and interface validation
- Error records crossing the program boundary
- Custom hash results
- Oracle data and auxiliary data
- Context lifecycle and reporting
"""

import struct
from typing import Callable

import pytest
import wasmtime

from sigpolicy.errors import (
    BindingsError,
    EmptyBytecodeError,
    EvaluationError,
    InvalidBytecodeError,
    InvalidSignatureRequestError,
    InvalidTransactionRequestError,
    ProgramFailedError,
    ProgramTrapError,
)
from sigpolicy.programs import load_guest
from sigpolicy.runtime import ContextState, Runtime
from sigpolicy.runtime.runtime import CUSTOM_HASH_UNDEFINED
from sigpolicy.schema import Outcome, RuntimeConfig, SignatureRequest


def _reject_reason(excinfo: pytest.ExceptionInfo) -> str:
    return excinfo.value.error.reason


def _xor_fold(data: bytes) -> bytes:
    out = bytearray(32)
    for i, byte in enumerate(data):
        out[i % 32] ^= byte
    return bytes(out)


# =============================================================================
# Evaluate
# =============================================================================


class TestLengthCheck:
    """Minimum-length guest end to end."""

    def test_short_message_rejected(self, runtime: Runtime) -> None:
        with pytest.raises(ProgramFailedError) as exc_info:
            runtime.evaluate(load_guest("length_check"), SignatureRequest(message=b"abcd"))
        assert isinstance(exc_info.value.error, EvaluationError)
        assert _reject_reason(exc_info) == "Length of data is too short."

    def test_long_message_accepted(self, runtime: Runtime) -> None:
        result = runtime.evaluate(load_guest("length_check"), SignatureRequest(message=b"x" * 16))
        assert result is None

    def test_hex_transaction_message(self, runtime: Runtime, tx_to_a: str) -> None:
        runtime.evaluate(load_guest("length_check"), SignatureRequest(message=tx_to_a.encode()))


class TestBytecodeValidation:
    """Bytecode and interface checks run before any guest code."""

    @pytest.mark.parametrize(
        "request_",
        [
            SignatureRequest(message=b""),
            SignatureRequest(message=b"x" * 100),
            SignatureRequest(message=b"abc", auxiliary_data=b"aux"),
        ],
    )
    def test_empty_bytecode(self, runtime: Runtime, request_: SignatureRequest) -> None:
        with pytest.raises(EmptyBytecodeError):
            runtime.evaluate(b"", request_)

    def test_empty_bytecode_for_custom_hash(self, runtime: Runtime) -> None:
        with pytest.raises(EmptyBytecodeError):
            runtime.custom_hash(b"", b"data")

    def test_invalid_bytecode(self, runtime: Runtime) -> None:
        with pytest.raises(InvalidBytecodeError):
            runtime.evaluate(b"definitely not wasm", SignatureRequest(message=b"x"))

    def test_truncated_module(self, runtime: Runtime) -> None:
        bytecode = load_guest("length_check")
        with pytest.raises(InvalidBytecodeError):
            runtime.evaluate(bytecode[: len(bytecode) // 2], SignatureRequest(message=b"x"))

    def test_missing_custom_hash_export(
        self, runtime: Runtime, build_guest: Callable[..., bytes]
    ) -> None:
        with pytest.raises(BindingsError) as exc_info:
            runtime.evaluate(build_guest(custom_hash=""), SignatureRequest(message=b"x"))
        assert exc_info.value.export == "custom_hash"

    def test_missing_evaluate_export(
        self, runtime: Runtime, build_guest: Callable[..., bytes]
    ) -> None:
        with pytest.raises(BindingsError) as exc_info:
            runtime.evaluate(build_guest(evaluate_export=""), SignatureRequest(message=b"x"))
        assert exc_info.value.export == "evaluate"

    def test_mistyped_export(self, runtime: Runtime, build_guest: Callable[..., bytes]) -> None:
        guest = build_guest(
            custom_hash="""
  (func (export "custom_hash") (param i32) (result i64)
    (i64.const -1))
""",
        )
        with pytest.raises(BindingsError) as exc_info:
            runtime.evaluate(guest, SignatureRequest(message=b"x"))
        assert exc_info.value.export == "custom_hash"
        assert "expected" in exc_info.value.reason

    def test_missing_memory_export(self, runtime: Runtime) -> None:
        guest = bytes(wasmtime.wat2wasm("""
(module
  (func (export "alloc") (param i32) (result i32) (i32.const 0))
  (func (export "evaluate") (param i32 i32 i32 i32 i32 i32 i32 i32) (result i64) (i64.const 0))
  (func (export "custom_hash") (param i32 i32) (result i64) (i64.const -1))
)
"""))
        with pytest.raises(BindingsError) as exc_info:
            runtime.evaluate(guest, SignatureRequest(message=b"x"))
        assert exc_info.value.export == "memory"


# =============================================================================
# Error records
# =============================================================================


class TestErrorRecords:
    """Program errors cross the boundary unchanged."""

    @pytest.mark.parametrize(
        ("tag", "error_class"),
        [
            ("01", InvalidTransactionRequestError),
            ("02", InvalidSignatureRequestError),
            ("03", EvaluationError),
        ],
    )
    def test_each_variant(
        self,
        runtime: Runtime,
        build_guest: Callable[..., bytes],
        tag: str,
        error_class: type,
    ) -> None:
        guest = build_guest(
            data=f'(data (i32.const 16) "\\{tag}nope")',
            evaluate="(call $pack (i32.const 16) (i32.const 5))",
        )
        with pytest.raises(ProgramFailedError) as exc_info:
            runtime.evaluate(guest, SignatureRequest(message=b"x"))
        assert type(exc_info.value.error) is error_class
        assert exc_info.value.error.reason == "nope"
        assert exc_info.value.systemic is False

    def test_unknown_tag(self, runtime: Runtime, build_guest: Callable[..., bytes]) -> None:
        guest = build_guest(
            data='(data (i32.const 16) "\\09nope")',
            evaluate="(call $pack (i32.const 16) (i32.const 5))",
        )
        with pytest.raises(BindingsError):
            runtime.evaluate(guest, SignatureRequest(message=b"x"))

    def test_record_outside_memory(
        self, runtime: Runtime, build_guest: Callable[..., bytes]
    ) -> None:
        guest = build_guest(evaluate="(call $pack (i32.const 65000) (i32.const 1000))")
        with pytest.raises(BindingsError) as exc_info:
            runtime.evaluate(guest, SignatureRequest(message=b"x"))
        assert "outside guest memory" in exc_info.value.reason

    def test_message_is_copied_into_guest(
        self, runtime: Runtime, build_guest: Callable[..., bytes]
    ) -> None:
        """A guest that returns its own input as the error record."""
        guest = build_guest(evaluate="(call $pack (local.get $msg_ptr) (local.get $msg_len))")
        with pytest.raises(ProgramFailedError) as exc_info:
            runtime.evaluate(guest, SignatureRequest(message=b"\x03echoed message"))
        assert exc_info.value.error.reason == "echoed message"

    def test_config_is_copied_into_guest(
        self, runtime: Runtime, build_guest: Callable[..., bytes]
    ) -> None:
        guest = build_guest(evaluate="(call $pack (local.get $cfg_ptr) (local.get $cfg_len))")
        with pytest.raises(ProgramFailedError) as exc_info:
            runtime.evaluate(guest, SignatureRequest(message=b"m"), config=b"\x02from config")
        assert isinstance(exc_info.value.error, InvalidSignatureRequestError)
        assert exc_info.value.error.reason == "from config"

    def test_trap_is_reported(self, runtime: Runtime, build_guest: Callable[..., bytes]) -> None:
        context = runtime.new_context()
        with pytest.raises(ProgramTrapError):
            runtime.evaluate(
                build_guest(evaluate="(unreachable)"),
                SignatureRequest(message=b"x"),
                context=context,
            )
        assert context.state == ContextState.FAILED


# =============================================================================
# Auxiliary and oracle data
# =============================================================================


class TestAuxiliaryData:
    """Guest that requires auxiliary data."""

    def test_missing_aux(self, runtime: Runtime) -> None:
        with pytest.raises(ProgramFailedError) as exc_info:
            runtime.evaluate(
                load_guest("length_check_with_aux"),
                SignatureRequest(message=b"x" * 16),
            )
        assert _reject_reason(exc_info) == "This program requires that `auxilary_data` be `Some`."

    def test_present_aux(self, runtime: Runtime) -> None:
        runtime.evaluate(
            load_guest("length_check_with_aux"),
            SignatureRequest(message=b"x" * 16, auxiliary_data=b"proof"),
        )

    def test_empty_aux_is_present(self, runtime: Runtime) -> None:
        runtime.evaluate(
            load_guest("length_check_with_aux"),
            SignatureRequest(message=b"x" * 16, auxiliary_data=b""),
        )

    def test_short_message_checked_first(self, runtime: Runtime) -> None:
        with pytest.raises(ProgramFailedError) as exc_info:
            runtime.evaluate(load_guest("length_check_with_aux"), SignatureRequest(message=b"x"))
        assert _reject_reason(exc_info) == "Length of message is too short."


class TestOracleData:
    """Guest that reads a block number from oracle data."""

    def test_block_number_within_limit(self, runtime: Runtime) -> None:
        runtime.evaluate(
            load_guest("oracle_block_number"),
            SignatureRequest(message=b""),
            oracle_data=[struct.pack("<I", 99)],
        )

    def test_block_number_too_large(self, runtime: Runtime) -> None:
        with pytest.raises(ProgramFailedError) as exc_info:
            runtime.evaluate(
                load_guest("oracle_block_number"),
                SignatureRequest(message=b""),
                oracle_data=[struct.pack("<I", 101)],
            )
        assert _reject_reason(exc_info) == "Block Number too large"

    def test_no_oracle_data(self, runtime: Runtime) -> None:
        with pytest.raises(ProgramFailedError) as exc_info:
            runtime.evaluate(load_guest("oracle_block_number"), SignatureRequest(message=b""))
        assert _reject_reason(exc_info) == "No oracle data provided."

    @pytest.mark.parametrize("oracle_data", [[], [b"\x01"]])
    def test_undecodable_oracle_data(self, runtime: Runtime, oracle_data: list[bytes]) -> None:
        with pytest.raises(ProgramFailedError) as exc_info:
            runtime.evaluate(
                load_guest("oracle_block_number"),
                SignatureRequest(message=b""),
                oracle_data=oracle_data,
            )
        assert _reject_reason(exc_info) == "Unable to decode oracle data"

    def test_only_first_blob_is_read(self, runtime: Runtime) -> None:
        runtime.evaluate(
            load_guest("oracle_block_number"),
            SignatureRequest(message=b""),
            oracle_data=[struct.pack("<I", 7), struct.pack("<I", 5000)],
        )


# =============================================================================
# Custom hash
# =============================================================================


class TestCustomHash:
    """Runtime.custom_hash result checks."""

    def test_none(self, runtime: Runtime) -> None:
        with pytest.raises(ProgramFailedError) as exc_info:
            runtime.custom_hash(load_guest("length_check"), b"data")
        assert isinstance(exc_info.value.error, InvalidSignatureRequestError)
        assert _reject_reason(exc_info) == CUSTOM_HASH_UNDEFINED
        assert "Implement the hash function" in _reject_reason(exc_info)

    @pytest.mark.parametrize("length", [31, 33])
    def test_wrong_length(
        self, runtime: Runtime, hash_guest: Callable[[int], bytes], length: int
    ) -> None:
        with pytest.raises(ProgramFailedError) as exc_info:
            runtime.custom_hash(hash_guest(length), b"data")
        assert isinstance(exc_info.value.error, InvalidSignatureRequestError)
        assert _reject_reason(exc_info) == f"`custom-hash` must return 32 bytes, not {length}."

    def test_exact_length_returned_verbatim(
        self, runtime: Runtime, hash_guest: Callable[[int], bytes]
    ) -> None:
        assert runtime.custom_hash(hash_guest(32), b"data") == b"\x00" * 32

    def test_matches_reference(self, runtime: Runtime) -> None:
        message = b"some_data_to_be_hashed, long enough to wrap around 32 bytes"
        digest = runtime.custom_hash(load_guest("xor_fold_hash"), message)
        assert len(digest) == 32
        assert digest == _xor_fold(message)

    def test_empty_message(self, runtime: Runtime) -> None:
        assert runtime.custom_hash(load_guest("xor_fold_hash"), b"") == b"\x00" * 32

    def test_xor_fold_evaluate(self, runtime: Runtime) -> None:
        runtime.evaluate(load_guest("xor_fold_hash"), SignatureRequest(message=b"a"))
        with pytest.raises(ProgramFailedError) as exc_info:
            runtime.evaluate(load_guest("xor_fold_hash"), SignatureRequest(message=b""))
        assert _reject_reason(exc_info) == "You need to give me SOME data to sign!"


# =============================================================================
# Lifecycle and reporting
# =============================================================================


class TestLifecycle:
    """Context states and per-call budgets."""

    def test_completed_state(self, runtime: Runtime) -> None:
        context = runtime.new_context()
        runtime.evaluate(
            load_guest("length_check"), SignatureRequest(message=b"x" * 16), context=context
        )
        assert context.state == ContextState.COMPLETED
        assert 0 < context.fuel_consumed < runtime.fuel

    def test_failed_state(self, runtime: Runtime) -> None:
        context = runtime.new_context()
        with pytest.raises(ProgramFailedError):
            runtime.evaluate(load_guest("length_check"), SignatureRequest(message=b"x"), context=context)
        assert context.state == ContextState.FAILED

    def test_validation_failure_state(self, runtime: Runtime) -> None:
        context = runtime.new_context()
        with pytest.raises(EmptyBytecodeError):
            runtime.evaluate(b"", SignatureRequest(message=b"x"), context=context)
        assert context.state == ContextState.FAILED

    def test_each_call_gets_full_budget(self, runtime: Runtime) -> None:
        program = load_guest("length_check")
        request = SignatureRequest(message=b"x" * 16)

        first = runtime.new_context()
        runtime.evaluate(program, request, context=first)

        second = runtime.new_context()
        runtime.evaluate(program, request, context=second)

        assert first is not second
        assert first.fuel == second.fuel == runtime.fuel
        assert first.fuel_consumed == second.fuel_consumed

    def test_context_cannot_be_reused(self, runtime: Runtime) -> None:
        context = runtime.new_context()
        context.load(load_guest("length_check"))
        context.call_evaluate(SignatureRequest(message=b"x" * 16))
        with pytest.raises(RuntimeError):
            context.call_evaluate(SignatureRequest(message=b"x" * 16))
        with pytest.raises(RuntimeError):
            context.load(load_guest("length_check"))
        with pytest.raises(RuntimeError):
            runtime.evaluate(load_guest("length_check"), SignatureRequest(message=b"x" * 16), context=context)

    def test_from_config(self) -> None:
        runtime = Runtime.from_config(RuntimeConfig(fuel=123, max_memory_bytes=1 << 20))
        assert runtime.fuel == 123
        assert runtime.config.max_memory_bytes == 1 << 20

    def test_trap_classified_by_code(self) -> None:
        """A non-fuel trap stays a trap even when the store has no fuel left."""
        context = Runtime(fuel=0).new_context()
        assert context.remaining_fuel == 0
        fault = context._translate_trap(wasmtime.Trap("unreachable executed"))
        assert isinstance(fault, ProgramTrapError)
        assert context.state == ContextState.FAILED


class TestReports:
    """try_evaluate / try_custom_hash summaries."""

    def test_authorized_report(self, runtime: Runtime) -> None:
        report = runtime.try_evaluate(load_guest("length_check"), SignatureRequest(message=b"x" * 16))
        assert report.outcome == Outcome.AUTHORIZED
        assert report.fuel_consumed > 0

    def test_rejected_report(self, runtime: Runtime) -> None:
        report = runtime.try_evaluate(load_guest("length_check"), SignatureRequest(message=b"x"))
        assert report.outcome == Outcome.REJECTED
        assert report.error_type == "ProgramFailedError"
        assert report.systemic is False
        assert "Length of data is too short." in report.message

    def test_hash_report(self, runtime: Runtime) -> None:
        report = runtime.try_custom_hash(load_guest("xor_fold_hash"), b"abc")
        assert report.authorized
        assert report.digest == _xor_fold(b"abc").hex()
