"""
Sandboxed WebAssembly runtime.

Key concepts:
    - Runtime: host-facing API (evaluate, custom_hash)
    - ExecutionContext: one isolated, fuel-bounded call
    - Shared engine: compiled once per process, never mutated
"""

from sigpolicy.runtime.context import ContextState, ExecutionContext
from sigpolicy.runtime.engine import shared_engine
from sigpolicy.runtime.runtime import Runtime

__all__ = [
    "ContextState",
    "ExecutionContext",
    "Runtime",
    "shared_engine",
]
