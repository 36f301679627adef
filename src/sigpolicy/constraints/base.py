"""
Constraint interfaces.

Two kinds of constraints exist:
- Satisfiable: works on raw (unparsed) signature request bytes
- SatisfiableForArchitecture: works on a parsed TransactionRequest of
  any architecture

Both signal acceptance by returning None and rejection by raising a
ProgramError, so programs can chain constraints and let the first failure
propagate.
"""

from abc import ABC, abstractmethod

from sigpolicy.architectures.base import TransactionRequest


class Satisfiable(ABC):
    """Constraint over raw signature request data."""

    @abstractmethod
    def is_satisfied_by(self, data: bytes) -> None:
        """
        Check the constraint.

        Raises:
            ProgramError: If the data does not satisfy the constraint
        """
        ...


class SatisfiableForArchitecture(ABC):
    """Constraint over a parsed, architecture-specific transaction request."""

    @abstractmethod
    def is_satisfied_by(self, tx: TransactionRequest) -> None:
        """
        Check the constraint.

        Raises:
            ProgramError: If the transaction does not satisfy the constraint
        """
        ...
