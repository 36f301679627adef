"""
Schema definitions for sigpolicy.

This module defines the Pydantic models shared across the package:
- SignatureRequest: The message to sign plus optional auxiliary bytes
- RuntimeConfig: Fuel budget and memory ceiling for the sandbox
- EvaluationReport: Summary of one evaluation, used by the CLI reports

Design Decisions:
    - All models forbid unknown fields
    - Models are immutable (frozen=True); a request is built per call
      and never mutated or persisted
    - Runtime configuration can be loaded from YAML
"""

from enum import Enum
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field

from sigpolicy.errors import SigPolicyError


DEFAULT_FUEL = 10_000


# =============================================================================
# Enums
# =============================================================================


class Outcome(str, Enum):
    """Binary outcome of an evaluation. There is no partial authorization."""

    AUTHORIZED = "authorized"
    REJECTED = "rejected"


# =============================================================================
# Request Models
# =============================================================================


class SignatureRequest(BaseModel):
    """
    A request to sign `message`.

    Attributes:
        message: The payload to sign (or to hash-then-sign)
        auxiliary_data: Program-specific side-channel input, e.g. a
            co-signature or a proof. Never signed itself.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    message: bytes = Field(
        ...,
        description="Payload to be signed",
    )
    auxiliary_data: bytes | None = Field(
        default=None,
        description="Optional program-specific side-channel input",
    )


# =============================================================================
# Runtime Configuration
# =============================================================================


class RuntimeConfig(BaseModel):
    """
    Runtime parameters.

    Attributes:
        fuel: Computation budget granted to every single call
        max_memory_bytes: Optional ceiling on guest linear memory per call
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    fuel: int = Field(
        default=DEFAULT_FUEL,
        description="Fuel units granted to each evaluate/custom_hash call",
        ge=0,
    )
    max_memory_bytes: int | None = Field(
        default=None,
        description="Maximum guest linear memory in bytes (None = wasm32 limit)",
        gt=0,
    )


class EvaluationReport(BaseModel):
    """
    Summary of a single evaluate or custom_hash call.

    Attributes:
        outcome: Authorized or rejected
        error_type: Class name of the raised error, if any
        error_code: Numeric code of the raised error, if any
        message: Human-readable error message, if any
        systemic: Whether the error was a host/resource fault
        fuel_consumed: Fuel burned by the execution context
        duration_ms: Wall-clock duration of the call
        digest: Hex digest returned by custom_hash, if applicable
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    outcome: Outcome
    error_type: str | None = None
    error_code: int | None = None
    message: str | None = None
    systemic: bool = False
    fuel_consumed: int = Field(default=0, ge=0)
    duration_ms: float = Field(default=0.0, ge=0)
    digest: str | None = None

    @classmethod
    def ok(
        cls,
        fuel_consumed: int = 0,
        duration_ms: float = 0.0,
        digest: str | None = None,
    ) -> "EvaluationReport":
        """Create an authorized report."""
        return cls(
            outcome=Outcome.AUTHORIZED,
            fuel_consumed=fuel_consumed,
            duration_ms=duration_ms,
            digest=digest,
        )

    @classmethod
    def fail(
        cls,
        error: SigPolicyError,
        fuel_consumed: int = 0,
        duration_ms: float = 0.0,
    ) -> "EvaluationReport":
        """Create a rejected report from a raised error."""
        return cls(
            outcome=Outcome.REJECTED,
            error_type=error.__class__.__name__,
            error_code=error.code,
            message=error.message,
            systemic=error.systemic,
            fuel_consumed=fuel_consumed,
            duration_ms=duration_ms,
        )

    @property
    def authorized(self) -> bool:
        """Whether the call succeeded."""
        return self.outcome == Outcome.AUTHORIZED


# =============================================================================
# YAML Loading Helpers
# =============================================================================


def load_runtime_config(path: Path | str) -> RuntimeConfig:
    """
    Load runtime configuration from a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        Validated RuntimeConfig object

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the YAML doesn't match the schema
    """
    path = Path(path)
    with path.open() as f:
        data = yaml.safe_load(f)

    return RuntimeConfig.model_validate(data or {})


def load_runtime_config_from_string(content: str) -> RuntimeConfig:
    """Load runtime configuration from a YAML string."""
    data = yaml.safe_load(content)
    return RuntimeConfig.model_validate(data or {})
