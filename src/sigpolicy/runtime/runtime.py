"""
Runtime for sandboxed policy programs.

The Runtime is the host-facing entry point. It holds the shared engine and
linker, and runs every call in a fresh ExecutionContext:

Execution Flow:
    1. Build a context with the full fuel budget
    2. Validate and instantiate the program
    3. Copy inputs into guest memory and invoke the entry point
    4. Translate the outcome (None, program error, fault)
    5. Discard the context

Design Principles:
    - Fail-closed: anything other than a clean success is raised
    - Isolated: no fuel or memory survives from one call to the next
    - Deterministic: same program + inputs = same decision
"""

import logging
import time

from sigpolicy.errors import (
    InvalidSignatureRequestError,
    ProgramFailedError,
    SigPolicyError,
)
from sigpolicy.runtime.context import ExecutionContext
from sigpolicy.runtime.engine import build_linker, shared_engine
from sigpolicy.schema import DEFAULT_FUEL, EvaluationReport, RuntimeConfig, SignatureRequest


logger = logging.getLogger(__name__)

HASH_LENGTH = 32

CUSTOM_HASH_UNDEFINED = (
    "`custom-hash` returns `None`. Implement the hash function in your "
    "program, or select a predefined `hash` in your signature request."
)


class Runtime:
    """
    Sandboxed executor for policy programs.

    Usage:
        runtime = Runtime(fuel=10_000)
        runtime.evaluate(program, SignatureRequest(message=b"..."))
        digest = runtime.custom_hash(program, b"...")

    Attributes:
        config: Fuel budget and memory ceiling applied to every call

    The engine and linker are the only state shared between calls. Each call
    runs in its own ExecutionContext; pass one in via `context=` to inspect
    its final state and fuel afterwards.
    """

    def __init__(
        self,
        fuel: int = DEFAULT_FUEL,
        max_memory_bytes: int | None = None,
    ) -> None:
        """
        Initialize the runtime.

        Args:
            fuel: Fuel units granted to each call
            max_memory_bytes: Optional guest memory ceiling per call

        Raises:
            ValidationError: If fuel is negative or the memory ceiling is not positive
        """
        self.config = RuntimeConfig(fuel=fuel, max_memory_bytes=max_memory_bytes)
        self._engine = shared_engine()
        self._linker = build_linker(self._engine)

    @classmethod
    def from_config(cls, config: RuntimeConfig) -> "Runtime":
        """Create a runtime from a RuntimeConfig."""
        return cls(fuel=config.fuel, max_memory_bytes=config.max_memory_bytes)

    @property
    def fuel(self) -> int:
        """Fuel granted to each call."""
        return self.config.fuel

    def new_context(self) -> ExecutionContext:
        """Create a fresh execution context with the full fuel budget."""
        return ExecutionContext(
            self._engine,
            self._linker,
            fuel=self.config.fuel,
            max_memory_bytes=self.config.max_memory_bytes,
        )

    # =========================================================================
    # Entry points
    # =========================================================================

    def evaluate(
        self,
        program: bytes,
        signature_request: SignatureRequest,
        config: bytes | None = None,
        oracle_data: list[bytes] | None = None,
        context: ExecutionContext | None = None,
    ) -> None:
        """
        Evaluate a signature request with a program.

        Args:
            program: WebAssembly bytecode of the program
            signature_request: The message and optional auxiliary data
            config: Optional program configuration
            oracle_data: Optional oracle blobs
            context: Unused context from new_context() to run in; a fresh
                one is created when omitted

        Returns:
            None if the program authorizes the request

        Raises:
            EmptyBytecodeError: If program is empty
            InvalidBytecodeError: If program is not a valid, self-contained module
            BindingsError: If program does not implement the interface
            OutOfFuelError: If the fuel budget runs out
            ProgramTrapError: If the program traps
            ProgramFailedError: If the program rejects the request
        """
        if context is None:
            context = self.new_context()
        start = time.perf_counter()
        try:
            context.load(program)
            context.call_evaluate(signature_request, config, oracle_data)
        except SigPolicyError as e:
            self._log_failure("evaluate", context, e, start)
            raise

        logger.info(
            "Program authorized request (fuel: %d, %.1fms)",
            context.fuel_consumed,
            _elapsed_ms(start),
        )

    def custom_hash(
        self,
        program: bytes,
        message: bytes,
        context: ExecutionContext | None = None,
    ) -> bytes:
        """
        Hash a message with the program's custom hash function.

        Args:
            program: WebAssembly bytecode of the program
            message: The message to hash
            context: Unused context from new_context() to run in

        Returns:
            The 32-byte digest produced by the program, unchanged

        Raises:
            ProgramFailedError: If the program defines no hash or returns a
                digest of the wrong length
            (plus the same faults as evaluate)
        """
        if context is None:
            context = self.new_context()
        start = time.perf_counter()
        try:
            context.load(program)
            digest = context.call_custom_hash(message)
            if digest is None:
                raise ProgramFailedError(
                    error=InvalidSignatureRequestError(reason=CUSTOM_HASH_UNDEFINED),
                )
            if len(digest) != HASH_LENGTH:
                raise ProgramFailedError(
                    error=InvalidSignatureRequestError(
                        reason=f"`custom-hash` must return {HASH_LENGTH} bytes, not {len(digest)}.",
                    ),
                )
        except SigPolicyError as e:
            self._log_failure("custom_hash", context, e, start)
            raise

        logger.info(
            "Program produced custom hash (fuel: %d, %.1fms)",
            context.fuel_consumed,
            _elapsed_ms(start),
        )
        return digest

    # =========================================================================
    # Reporting
    # =========================================================================

    def try_evaluate(
        self,
        program: bytes,
        signature_request: SignatureRequest,
        config: bytes | None = None,
        oracle_data: list[bytes] | None = None,
    ) -> EvaluationReport:
        """
        Run evaluate() and summarize the outcome instead of raising.

        Only SigPolicyError is captured; anything else is a bug and propagates.
        """
        context = self.new_context()
        start = time.perf_counter()
        try:
            self.evaluate(program, signature_request, config, oracle_data, context=context)
        except SigPolicyError as e:
            return EvaluationReport.fail(
                e,
                fuel_consumed=context.fuel_consumed,
                duration_ms=_elapsed_ms(start),
            )
        return EvaluationReport.ok(
            fuel_consumed=context.fuel_consumed,
            duration_ms=_elapsed_ms(start),
        )

    def try_custom_hash(self, program: bytes, message: bytes) -> EvaluationReport:
        """Run custom_hash() and summarize the outcome instead of raising."""
        context = self.new_context()
        start = time.perf_counter()
        try:
            digest = self.custom_hash(program, message, context=context)
        except SigPolicyError as e:
            return EvaluationReport.fail(
                e,
                fuel_consumed=context.fuel_consumed,
                duration_ms=_elapsed_ms(start),
            )
        return EvaluationReport.ok(
            fuel_consumed=context.fuel_consumed,
            duration_ms=_elapsed_ms(start),
            digest=digest.hex(),
        )

    def _log_failure(
        self,
        entry: str,
        context: ExecutionContext,
        error: SigPolicyError,
        start: float,
    ) -> None:
        if error.systemic:
            logger.warning(
                "%s failed with %s (state: %s, %.1fms)",
                entry,
                error.__class__.__name__,
                context.state.value,
                _elapsed_ms(start),
            )
        else:
            logger.info(
                "%s rejected by program: %s (fuel: %d)",
                entry,
                error.message,
                context.fuel_consumed,
            )


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000
