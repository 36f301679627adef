"""
Execution contexts.

An ExecutionContext is one bounded, isolated invocation of a program. It owns
its own wasmtime Store, and therefore its own linear memory and its own fuel
counter. A context is built fresh for every evaluate/custom_hash call and is
discarded afterwards, whatever the outcome, so no call can observe fuel or
memory left over from another.

State machine:
    IDLE -> VALIDATING -> INSTANTIATED -> RUNNING -> COMPLETED
                                                  -> FAILED   (program error, trap)
                                                  -> ABORTED  (out of fuel)
    Validation or instantiation failures move straight to FAILED.
"""

import logging
from enum import Enum

from wasmtime import Engine, Linker, Memory, Module, Store, Trap, TrapCode, WasmtimeError

from sigpolicy.errors import (
    BindingsError,
    EmptyBytecodeError,
    InvalidBytecodeError,
    OutOfFuelError,
    ProgramFailedError,
    ProgramTrapError,
    RuntimeFault,
)
from sigpolicy.runtime import abi
from sigpolicy.schema import SignatureRequest


logger = logging.getLogger(__name__)


class ContextState(str, Enum):
    """Lifecycle of a single execution context."""

    IDLE = "idle"
    VALIDATING = "validating"
    INSTANTIATED = "instantiated"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    ABORTED = "aborted"


class ExecutionContext:
    """
    One sandboxed invocation of a program.

    Usage:
        context = ExecutionContext(engine, linker, fuel=10_000)
        context.load(program_bytes)
        context.call_evaluate(request, config, oracle_data)

    Attributes:
        fuel: The budget this context was created with
        state: Current ContextState
    """

    def __init__(
        self,
        engine: Engine,
        linker: Linker,
        fuel: int,
        max_memory_bytes: int | None = None,
    ) -> None:
        """
        Create a context with its own store and fuel budget.

        Args:
            engine: The shared engine
            linker: Linker exposing the host interface
            fuel: Fuel units granted to this context
            max_memory_bytes: Optional linear memory ceiling
        """
        self.fuel = fuel
        self.state = ContextState.IDLE
        self._engine = engine
        self._linker = linker
        self._store = Store(engine)
        self._store.set_fuel(fuel)
        if max_memory_bytes is not None:
            self._store.set_limits(memory_size=max_memory_bytes)
        self._exports = None

    @property
    def remaining_fuel(self) -> int:
        """Fuel left in this context."""
        return self._store.get_fuel()

    @property
    def fuel_consumed(self) -> int:
        """Fuel burned so far."""
        return self.fuel - self.remaining_fuel

    # =========================================================================
    # Loading
    # =========================================================================

    def load(self, program: bytes) -> None:
        """
        Validate and instantiate a program.

        Raises:
            EmptyBytecodeError: If program is empty
            InvalidBytecodeError: If program is not valid WebAssembly or
                imports anything outside the host interface
            BindingsError: If the interface exports are missing or mis-typed
            OutOfFuelError: If a start function exhausts the budget
        """
        if self.state is not ContextState.IDLE:
            msg = f"Context already used (state: {self.state.value})"
            raise RuntimeError(msg)

        self.state = ContextState.VALIDATING
        try:
            if not program:
                raise EmptyBytecodeError()

            try:
                module = Module(self._engine, bytes(program))
            except WasmtimeError as e:
                raise InvalidBytecodeError(reason=str(e)) from e

            abi.check_imports(module)
            abi.check_exports(module)

            try:
                instance = self._linker.instantiate(self._store, module)
            except Trap as e:
                raise self._translate_trap(e) from e
            except WasmtimeError as e:
                raise InvalidBytecodeError(reason=str(e)) from e
        except RuntimeFault:
            if self.state is ContextState.VALIDATING:
                self.state = ContextState.FAILED
            raise

        self._exports = instance.exports(self._store)
        self.state = ContextState.INSTANTIATED
        logger.debug("Instantiated program (%d bytes)", len(program))

    # =========================================================================
    # Entry points
    # =========================================================================

    def call_evaluate(
        self,
        request: SignatureRequest,
        config: bytes | None = None,
        oracle_data: list[bytes] | None = None,
    ) -> None:
        """
        Run the program's evaluate entry point.

        Returns None when the program authorizes the request.

        Raises:
            ProgramFailedError: Wrapping the program's own error value
            OutOfFuelError: If the budget runs out
            ProgramTrapError: If the program traps
            BindingsError: If the program breaks the interface contract
        """
        self._require_loaded()
        self.state = ContextState.RUNNING

        oracle = None if oracle_data is None else abi.frame_oracle_data(oracle_data)
        args: list[int] = []
        for value in (request.message, request.auxiliary_data, config, oracle):
            args.extend(self._write_input(value))

        result = self._call("evaluate", *args)
        if result == abi.EVALUATE_OK:
            self.state = ContextState.COMPLETED
            return

        record = self._read_buffer("evaluate", result)
        self.state = ContextState.FAILED
        raise ProgramFailedError(error=abi.decode_error_record(record))

    def call_custom_hash(self, message: bytes) -> bytes | None:
        """
        Run the program's custom_hash entry point.

        Returns:
            The bytes the program produced, or None if it defines no hash

        Raises:
            OutOfFuelError: If the budget runs out
            ProgramTrapError: If the program traps
            BindingsError: If the program breaks the interface contract
        """
        self._require_loaded()
        self.state = ContextState.RUNNING

        ptr, length = self._write_input(message)
        result = self._call("custom_hash", ptr, length)
        if result == abi.CUSTOM_HASH_NONE:
            self.state = ContextState.COMPLETED
            return None

        digest = self._read_buffer("custom_hash", result)
        self.state = ContextState.COMPLETED
        return digest

    # =========================================================================
    # Helpers
    # =========================================================================

    def _require_loaded(self) -> None:
        if self.state is not ContextState.INSTANTIATED:
            msg = f"Context is not ready to run (state: {self.state.value})"
            raise RuntimeError(msg)

    def _memory(self) -> Memory:
        return self._exports[abi.MEMORY_EXPORT]

    def _call(self, name: str, *args: int) -> int:
        func = self._exports[name]
        try:
            return func(self._store, *args)
        except Trap as e:
            raise self._translate_trap(e) from e
        except WasmtimeError as e:
            self.state = ContextState.FAILED
            raise BindingsError(export=name, reason=str(e)) from e

    def _translate_trap(self, trap: Trap) -> RuntimeFault:
        if trap.trap_code == TrapCode.OUT_OF_FUEL:
            self.state = ContextState.ABORTED
            logger.warning("Program ran out of fuel (budget: %d)", self.fuel)
            return OutOfFuelError(fuel=self.fuel)

        self.state = ContextState.FAILED
        logger.warning("Program trapped: %s", trap.message)
        return ProgramTrapError(trap=trap.message)

    def _write_input(self, value: bytes | None) -> tuple[int, int]:
        if value is None:
            return abi.ABSENT_PTR, 0
        if len(value) == 0:
            return 0, 0

        ptr = self._call("alloc", len(value)) & 0xFFFF_FFFF
        self._check_bounds("alloc", ptr, len(value))
        self._memory().write(self._store, bytes(value), ptr)
        return abi.to_i32(ptr), len(value)

    def _read_buffer(self, name: str, packed: int) -> bytes:
        ptr, length = abi.unpack_buffer(packed)
        self._check_bounds(name, ptr, length)
        return bytes(self._memory().read(self._store, ptr, ptr + length))

    def _check_bounds(self, name: str, ptr: int, length: int) -> None:
        size = self._memory().data_len(self._store)
        if ptr + length > size:
            self.state = ContextState.FAILED
            raise BindingsError(
                export=name,
                reason=f"buffer [{ptr}, {ptr + length}) is outside guest memory of {size} bytes",
            )
