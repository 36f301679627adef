"""
Access control lists over transaction recipients.

The ACL is the shared decision procedure for "is this transaction's recipient
allowed". It is generic over architectures: it only needs the transaction's
receiver() and its architecture's address normalisation.

Decision procedure:
    1. No recipient: accept iff allow_null_recipient, otherwise reject.
       This runs before (and independently of) the membership check.
    2. member = recipient in addresses
    3. Accept iff (member and ALLOW) or (not member and DENY)

The default ACL (empty, ALLOW, no null recipient) is fail-closed: it rejects
every transaction.
"""

import logging
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from sigpolicy.architectures.base import TransactionRequest
from sigpolicy.constraints.base import SatisfiableForArchitecture
from sigpolicy.errors import EvaluationError


logger = logging.getLogger(__name__)

NULL_RECIPIENT_NOT_ALLOWED = "Null recipients are not allowed."
TRANSACTION_NOT_ALLOWED = "Transaction not allowed."

AddressT = TypeVar("AddressT")


class AclKind(str, Enum):
    """Whether the address list is an allow list or a deny list."""

    ALLOW = "allow"
    DENY = "deny"


class Acl(BaseModel, SatisfiableForArchitecture, Generic[AddressT]):
    """
    An allow or deny list of addresses.

    Addresses may be given in either raw or display form of the
    transaction's architecture. Duplicates are allowed; order is irrelevant.

    Attributes:
        addresses: Addresses the list applies to
        kind: ALLOW or DENY
        allow_null_recipient: Whether transactions without a recipient pass
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    addresses: list[AddressT] = Field(
        default_factory=list,
        description="Addresses the list applies to",
    )
    kind: AclKind = Field(
        default=AclKind.ALLOW,
        description="Allow list or deny list",
    )
    allow_null_recipient: bool = Field(
        default=False,
        description="Whether transactions with no recipient are accepted",
    )

    @field_validator("kind", mode="before")
    @classmethod
    def normalize_kind(cls, v: Any) -> Any:
        """Accept 'Allow'/'DENY' spellings as well as the enum values."""
        if isinstance(v, str):
            return v.lower()
        return v

    @classmethod
    def from_config(cls, config: bytes | None) -> "Acl[Any]":
        """
        Build an ACL from a program's JSON config bytes.

        Raises:
            EvaluationError: If no config was given or it does not parse
        """
        if config is None:
            raise EvaluationError(reason="No config provided.")
        try:
            return cls.model_validate_json(config)
        except ValidationError as e:
            raise EvaluationError(reason=f"Failed to parse config: {e}") from e

    def is_satisfied_by(self, tx: TransactionRequest) -> None:
        """Evaluate this ACL against a transaction. See evaluate()."""
        evaluate(self, tx)


def evaluate(acl: Acl[Any], tx: TransactionRequest) -> None:
    """
    Evaluate an ACL against a parsed transaction.

    Args:
        acl: The access control list
        tx: A parsed transaction request of any architecture

    Raises:
        EvaluationError: If the transaction is not allowed
    """
    recipient = tx.receiver()
    if recipient is None:
        if acl.allow_null_recipient:
            logger.debug("ACL accepted null recipient")
            return
        raise EvaluationError(reason=NULL_RECIPIENT_NOT_ALLOWED)

    member = recipient in _normalized_addresses(acl, tx)
    if (member and acl.kind == AclKind.ALLOW) or (not member and acl.kind == AclKind.DENY):
        logger.debug("ACL (%s) accepted recipient %s", acl.kind.value, recipient)
        return

    raise EvaluationError(reason=TRANSACTION_NOT_ALLOWED)


def _normalized_addresses(acl: Acl[Any], tx: TransactionRequest) -> set[Any]:
    architecture = tx.architecture
    normalized = set()
    for address in acl.addresses:
        try:
            normalized.add(architecture.normalize_address(address))
        except (ValueError, TypeError) as e:
            raise EvaluationError(
                reason=f"Invalid {architecture.name} address in ACL: {address!r}",
            ) from e
    return normalized
