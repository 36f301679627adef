"""
Constraint library for policy programs.

This module implements reusable, architecture-agnostic rules that programs
build on. Every constraint is fail-closed: anything that cannot be shown to
be allowed is rejected with a typed ProgramError.

Key concepts:
    - Acl: allow/deny list over a transaction's recipient
    - MinimumLength: the simplest raw-data constraint
"""

from sigpolicy.constraints.acl import Acl, AclKind, evaluate
from sigpolicy.constraints.base import Satisfiable, SatisfiableForArchitecture
from sigpolicy.constraints.length import MinimumLength

__all__ = [
    "Acl",
    "AclKind",
    "MinimumLength",
    "Satisfiable",
    "SatisfiableForArchitecture",
    "evaluate",
]
