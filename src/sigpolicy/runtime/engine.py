"""
Shared compilation engine and host interface.

The wasmtime Engine is expensive to build and immutable once configured, so a
single instance is shared by every Runtime in the process. Everything that
holds per-call state (store, memory, fuel) lives in an ExecutionContext
instead; see sigpolicy.runtime.context.

Host interface:
    Programs may import nothing except the functions listed in
    HOST_FUNCTIONS. There is no filesystem, network or clock access.
    Randomness is wired to always fail so that a program relying on it
    fails loudly instead of silently becoming non-deterministic.
"""

import functools
import logging
from collections.abc import Callable

from wasmtime import Config, Engine, FuncType, Linker, ValType


logger = logging.getLogger(__name__)

HOST_MODULE = "sigpolicy"

# Non-zero status returned by random_get; any non-zero value means failure.
RANDOM_UNAVAILABLE = 1


@functools.lru_cache(maxsize=1)
def shared_engine() -> Engine:
    """
    Return the process-wide engine.

    Fuel metering is enabled so every store created from this engine can be
    given a computation budget.
    """
    config = Config()
    config.consume_fuel = True
    logger.debug("Created shared wasmtime engine with fuel metering")
    return Engine(config)


def _random_get(ptr: int, length: int) -> int:
    logger.warning("Program requested %d random bytes; randomness is not available", length)
    return RANDOM_UNAVAILABLE


def host_functions() -> dict[tuple[str, str], tuple[FuncType, Callable[..., int]]]:
    """The complete set of imports a program may use, keyed by (module, name)."""
    i32 = ValType.i32()
    return {
        (HOST_MODULE, "random_get"): (FuncType([i32, i32], [i32]), _random_get),
    }


def granted_imports() -> frozenset[tuple[str, str]]:
    """(module, name) pairs a program is allowed to import."""
    return frozenset(host_functions())


def build_linker(engine: Engine) -> Linker:
    """Build a linker exposing exactly the host interface."""
    linker = Linker(engine)
    for (module, name), (ty, func) in host_functions().items():
        linker.define_func(module, name, ty, func)
    return linker
