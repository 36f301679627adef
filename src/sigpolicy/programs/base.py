"""
Base class for native policy programs.

A Program is the pure-Python counterpart of a WebAssembly guest: it receives
the same inputs and signals the same three error variants. Native programs
are useful as reference implementations and for testing constraint logic
without a sandbox; untrusted code must always go through the Runtime.

Design Principles:
    - Programs are stateless - all input comes through evaluate()
    - evaluate() returns None to authorize and raises a ProgramError to reject
    - custom_hash() returns None unless the program defines its own hash
"""

from abc import ABC, abstractmethod

from sigpolicy.schema import SignatureRequest


class Program(ABC):
    """
    Abstract base class for native policy programs.

    Subclasses must implement:
    - name property: Returns the program's identifier
    - evaluate(): Authorizes or rejects a signature request

    Example:
        class NonEmptyProgram(Program):
            @property
            def name(self) -> str:
                return "non-empty"

            def evaluate(self, request, config=None, oracle_data=None) -> None:
                if not request.message:
                    raise EvaluationError(reason="Empty message")
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The identifier for this program."""
        ...

    @property
    def description(self) -> str:
        """Human-readable description of what the program enforces."""
        return f"Program: {self.name}"

    @abstractmethod
    def evaluate(
        self,
        request: SignatureRequest,
        config: bytes | None = None,
        oracle_data: list[bytes] | None = None,
    ) -> None:
        """
        Decide whether to authorize a signature request.

        Args:
            request: The message and optional auxiliary data
            config: Optional program configuration
            oracle_data: Optional oracle blobs

        Raises:
            ProgramError: One of the three program error variants on rejection
        """
        ...

    def custom_hash(self, data: bytes) -> bytes | None:
        """
        Hash the message before signing.

        The default defines no custom hash.
        """
        return None

    def __repr__(self) -> str:
        """String representation of the program."""
        return f"<Program: {self.name}>"
