"""Message length constraint."""

from dataclasses import dataclass

from sigpolicy.constraints.base import Satisfiable
from sigpolicy.errors import EvaluationError


@dataclass(frozen=True)
class MinimumLength(Satisfiable):
    """Rejects data shorter than min_length bytes."""

    min_length: int = 10
    reason: str = "Length of data is too short."

    def is_satisfied_by(self, data: bytes) -> None:
        if len(data) < self.min_length:
            raise EvaluationError(reason=self.reason)
