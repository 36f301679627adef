"""
Exception hierarchy for sigpolicy.

All sigpolicy exceptions inherit from SigPolicyError, allowing callers to catch
everything raised by the runtime or the constraint library with a single
except clause.

Exception Categories:
    - ProgramError: Raised by program logic (parse failures, policy rejections)
    - RuntimeFault: Raised by the host runtime (bad bytecode, out of fuel, traps)
    - UnknownArchitectureError, UnknownProgramError: Failed lookups

Design Principles:
    - All errors have error codes for programmatic handling
    - All errors carry a `systemic` flag: True means a host/resource problem
      (retry, alert), False means a legitimate policy decision or bad input
    - Errors are designed to be both human-readable and machine-parseable
    - A coordinator must treat any of these errors as "do not sign"
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar


# =============================================================================
# Error Codes
# =============================================================================

# Program errors: 1xxx
ERROR_PROGRAM_INVALID_TRANSACTION_REQUEST = 1001
ERROR_PROGRAM_INVALID_SIGNATURE_REQUEST = 1002
ERROR_PROGRAM_EVALUATION = 1003

# Runtime errors: 2xxx
ERROR_RUNTIME_EMPTY_BYTECODE = 2001
ERROR_RUNTIME_INVALID_BYTECODE = 2002
ERROR_RUNTIME_BINDINGS = 2003
ERROR_RUNTIME_OUT_OF_FUEL = 2004
ERROR_RUNTIME_TRAP = 2005
ERROR_RUNTIME_PROGRAM_FAILED = 2006

# Registry errors: 3xxx
ERROR_ARCHITECTURE_NOT_FOUND = 3001
ERROR_PROGRAM_NOT_FOUND = 3002


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class SigPolicyError(Exception):
    """
    Base exception for all sigpolicy errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    systemic: ClassVar[bool] = False
    retryable: ClassVar[bool] = False

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "systemic": self.systemic,
            "context": self.context,
        }


# =============================================================================
# Program Errors
# =============================================================================


@dataclass
class ProgramError(SigPolicyError):
    """
    Error value signalled by a program.

    These are the three variants that may cross the program boundary. They are
    raised by the constraint library (parsing, ACL evaluation) and decoded from
    the error records a sandboxed guest returns.

    Attributes:
        reason: The program's own diagnostic text
    """

    tag: ClassVar[int] = 0

    reason: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = self.reason
        self.context["reason"] = self.reason


@dataclass
class InvalidTransactionRequestError(ProgramError):
    """Raised when a transaction request cannot be decoded."""

    tag: ClassVar[int] = 1

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.code == 0:
            self.code = ERROR_PROGRAM_INVALID_TRANSACTION_REQUEST
        super().__post_init__()


@dataclass
class InvalidSignatureRequestError(ProgramError):
    """Raised when the signature request itself is malformed."""

    tag: ClassVar[int] = 2

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.code == 0:
            self.code = ERROR_PROGRAM_INVALID_SIGNATURE_REQUEST
        super().__post_init__()


@dataclass
class EvaluationError(ProgramError):
    """
    Raised when a program rejects a request.

    This is the most common error - it means the policy did its job
    and refused to authorize the signature.
    """

    tag: ClassVar[int] = 3

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.code == 0:
            self.code = ERROR_PROGRAM_EVALUATION
        super().__post_init__()


PROGRAM_ERRORS_BY_TAG: dict[int, type[ProgramError]] = {
    InvalidTransactionRequestError.tag: InvalidTransactionRequestError,
    InvalidSignatureRequestError.tag: InvalidSignatureRequestError,
    EvaluationError.tag: EvaluationError,
}


# =============================================================================
# Runtime Errors
# =============================================================================


@dataclass
class RuntimeFault(SigPolicyError):
    """
    Base class for host-side runtime failures.

    These indicate a systemic problem (bad input, bug, or an under-provisioned
    budget) rather than a policy decision.
    """

    systemic: ClassVar[bool] = True


@dataclass
class EmptyBytecodeError(RuntimeFault):
    """Raised when the program bytecode has zero length."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "Bytecode length is zero"
        if self.code == 0:
            self.code = ERROR_RUNTIME_EMPTY_BYTECODE
        if not self.suggestion:
            self.suggestion = "Check that the program was stored and retrieved correctly"


@dataclass
class InvalidBytecodeError(RuntimeFault):
    """Raised when bytecode is not valid WebAssembly or imports ungranted capabilities."""

    reason: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid bytecode: {self.reason}" if self.reason else "Invalid bytecode"
        if self.code == 0:
            self.code = ERROR_RUNTIME_INVALID_BYTECODE
        self.context["reason"] = self.reason


@dataclass
class BindingsError(RuntimeFault):
    """Raised when a module does not satisfy the program interface contract."""

    export: str = ""
    reason: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Interface binding failed for `{self.export}`: {self.reason}"
        if self.code == 0:
            self.code = ERROR_RUNTIME_BINDINGS
        if not self.suggestion:
            self.suggestion = (
                "Programs must export memory, alloc, evaluate and custom_hash "
                "with the documented signatures"
            )
        self.context.update({
            "export": self.export,
            "reason": self.reason,
        })


@dataclass
class OutOfFuelError(RuntimeFault):
    """Raised when a program exhausts its fuel budget."""

    retryable: ClassVar[bool] = True

    fuel: int = 0

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "Out of fuel"
        if self.code == 0:
            self.code = ERROR_RUNTIME_OUT_OF_FUEL
        if not self.suggestion:
            self.suggestion = "Execute fewer instructions or raise the runtime fuel budget"
        self.context["fuel"] = self.fuel


@dataclass
class ProgramTrapError(RuntimeFault):
    """Raised when a program aborts with a trap other than fuel exhaustion."""

    trap: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Program trapped: {self.trap}"
        if self.code == 0:
            self.code = ERROR_RUNTIME_TRAP
        self.context["trap"] = self.trap


@dataclass
class ProgramFailedError(RuntimeFault):
    """
    Raised when a program returns its own error value.

    The wrapped ProgramError is passed through unchanged so callers can
    inspect exactly what the program reported.

    Attributes:
        error: The error value the program returned
    """

    systemic: ClassVar[bool] = False

    error: ProgramError | None = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if self.error is None:
            self.error = EvaluationError(reason="Program failed without a reason")
        if not self.message:
            self.message = f"Runtime error: {self.error.message}"
        if self.code == 0:
            self.code = ERROR_RUNTIME_PROGRAM_FAILED
        self.context.update({
            "error_type": self.error.__class__.__name__,
            "error_code": self.error.code,
            "reason": self.error.reason,
        })


# =============================================================================
# Registry Errors
# =============================================================================


@dataclass
class UnknownArchitectureError(SigPolicyError):
    """Raised when an architecture is not registered."""

    architecture: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Architecture not found: {self.architecture}"
        if self.code == 0:
            self.code = ERROR_ARCHITECTURE_NOT_FOUND
        if not self.suggestion:
            self.suggestion = "Check the architecture name or register it first"
        self.context["architecture"] = self.architecture


@dataclass
class UnknownProgramError(SigPolicyError):
    """Raised when a bundled program does not exist."""

    program: str = ""
    available: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Program not found: {self.program}"
        if self.code == 0:
            self.code = ERROR_PROGRAM_NOT_FOUND
        if not self.suggestion and self.available:
            self.suggestion = f"Available programs: {', '.join(self.available)}"
        self.context["program"] = self.program
