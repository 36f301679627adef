"""
Native reference programs.

- LengthCheckProgram: rejects messages shorter than a minimum length
- TransactionAclProgram: parses an EVM transaction and checks its recipient
  against an ACL read from the program config
- PrivateTransactionAclProgram: allow list that stores only blake2s-256
  hashes of the allowed addresses
"""

import hashlib
import logging

from sigpolicy.architectures.base import Architecture
from sigpolicy.architectures.evm import Evm
from sigpolicy.constraints import Acl, MinimumLength
from sigpolicy.errors import EvaluationError
from sigpolicy.programs.base import Program
from sigpolicy.schema import SignatureRequest


logger = logging.getLogger(__name__)


class LengthCheckProgram(Program):
    """Authorizes any message of at least min_length bytes."""

    def __init__(self, min_length: int = 10) -> None:
        self._constraint = MinimumLength(min_length=min_length)

    @property
    def name(self) -> str:
        return "length-check"

    @property
    def description(self) -> str:
        return f"Message must be at least {self._constraint.min_length} bytes"

    def evaluate(
        self,
        request: SignatureRequest,
        config: bytes | None = None,
        oracle_data: list[bytes] | None = None,
    ) -> None:
        self._constraint.is_satisfied_by(request.message)


class TransactionAclProgram(Program):
    """
    Recipient ACL over hex-encoded transactions.

    The config is JSON:
        {"addresses": ["0x..."], "kind": "allow", "allow_null_recipient": false}
    """

    def __init__(self, architecture: type[Architecture] = Evm) -> None:
        self.architecture = architecture

    @property
    def name(self) -> str:
        return f"{self.architecture.name}-transaction-acl"

    @property
    def description(self) -> str:
        return f"Checks {self.architecture.name} transaction recipients against a configured ACL"

    def evaluate(
        self,
        request: SignatureRequest,
        config: bytes | None = None,
        oracle_data: list[bytes] | None = None,
    ) -> None:
        tx = self.architecture.try_parse(request.message)
        acl = Acl.from_config(config)
        acl.is_satisfied_by(tx)


class PrivateTransactionAclProgram(Program):
    """
    Allow list over blake2s-256 hashes of raw EVM addresses.

    Anyone holding an address can check whether it is on the list, but the
    list itself does not reveal the addresses.
    """

    def __init__(self, hashed_addresses: list[bytes]) -> None:
        self.hashed_addresses = frozenset(bytes(h) for h in hashed_addresses)

    @classmethod
    def from_addresses(cls, addresses: list[str]) -> "PrivateTransactionAclProgram":
        """Build the program from plain addresses, hashing each one."""
        return cls([hash_address(Evm.address_to_raw(address)) for address in addresses])

    @property
    def name(self) -> str:
        return "private-transaction-acl"

    @property
    def description(self) -> str:
        return f"Allow list of {len(self.hashed_addresses)} hashed addresses"

    def evaluate(
        self,
        request: SignatureRequest,
        config: bytes | None = None,
        oracle_data: list[bytes] | None = None,
    ) -> None:
        tx = Evm.try_parse(request.message)
        if tx.to is None:
            raise EvaluationError(reason="No recipient given in transaction")

        if hash_address(tx.to) not in self.hashed_addresses:
            raise EvaluationError(reason="Address not in allow list")
        logger.debug("Recipient found in hashed allow list")


def hash_address(raw: bytes) -> bytes:
    """blake2s-256 digest of a raw address."""
    return hashlib.blake2s(raw, digest_size=32).digest()
