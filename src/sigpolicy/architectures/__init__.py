"""
Chain architectures for sigpolicy.

Each architecture defines its address types and how unsigned transactions
are parsed, so constraints can be written once and applied to any chain.
"""

from sigpolicy.architectures.base import Architecture, TransactionRequest
from sigpolicy.architectures.evm import Evm, EvmTransactionRequest
from sigpolicy.architectures.registry import (
    ArchitectureRegistry,
    default_registry,
    get_architecture,
)

__all__ = [
    "Architecture",
    "ArchitectureRegistry",
    "Evm",
    "EvmTransactionRequest",
    "TransactionRequest",
    "default_registry",
    "get_architecture",
]
