"""
Base classes for chain architectures.

An Architecture describes one chain family so that constraint logic can talk
about "the transaction's recipient" without knowing the wire format:
- Address: display form of an account (e.g. an EIP-55 checksum string)
- AddressRaw: fixed-width canonical bytes, losslessly convertible to Address
- TransactionRequest: parsed unsigned transaction exposing sender/receiver

Design Principles:
    - Architectures are stateless; all methods are classmethods
    - Every decode path raises a typed ProgramError, never a bare exception
    - Constraints depend only on TransactionRequest.receiver() and
      Architecture.normalize_address(), never on a concrete chain
"""

from abc import ABC, abstractmethod
from typing import Any, ClassVar

from sigpolicy.errors import InvalidSignatureRequestError


class TransactionRequest(ABC):
    """
    A parsed, unsigned transaction request.

    Subclasses must implement sender() and receiver(); both may return None
    (no known sender, or no recipient as in contract creation).
    """

    architecture: ClassVar[type["Architecture"]]

    @abstractmethod
    def sender(self) -> Any | None:
        """The sending address, if the encoding carries one."""
        ...

    @abstractmethod
    def receiver(self) -> Any | None:
        """The receiving address, or None for a null recipient."""
        ...


class Architecture(ABC):
    """
    Abstract descriptor for a chain family.

    Subclasses must provide:
    - name: Registry key (e.g. "evm")
    - address_length: Width of AddressRaw in bytes
    - address_from_raw() / address_to_raw(): lossless conversion
    - parse(): decode the chain-native textual encoding

    Example:
        tx = Evm.try_parse(signature_request.message)
        if tx.receiver() == Evm.address_from_raw(raw):
            ...
    """

    name: ClassVar[str]
    address_length: ClassVar[int]

    @classmethod
    @abstractmethod
    def address_from_raw(cls, raw: bytes) -> Any:
        """Convert canonical raw bytes to the display address."""
        ...

    @classmethod
    @abstractmethod
    def address_to_raw(cls, address: Any) -> bytes:
        """Convert a display address to canonical raw bytes."""
        ...

    @classmethod
    def normalize_address(cls, value: Any) -> Any:
        """
        Normalize a raw or display address to the display form.

        Raw input must be exactly address_length bytes; anything else is
        treated as a display address and round-tripped through the raw form.
        """
        if isinstance(value, (bytes, bytearray)):
            return cls.address_from_raw(bytes(value))
        return cls.address_from_raw(cls.address_to_raw(value))

    @classmethod
    @abstractmethod
    def parse(cls, text: str) -> TransactionRequest:
        """
        Parse the chain-native textual encoding of an unsigned transaction.

        Raises:
            InvalidTransactionRequestError: If the text cannot be decoded
        """
        ...

    @classmethod
    def try_parse(cls, data: bytes) -> TransactionRequest:
        """
        Parse a transaction from bytes carrying the textual encoding.

        The bytes must be valid UTF-8; binary transports carry the same text
        that parse() accepts.

        Raises:
            InvalidSignatureRequestError: If the bytes are not UTF-8
            InvalidTransactionRequestError: If the text cannot be decoded
        """
        try:
            text = bytes(data).decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidSignatureRequestError(
                reason=f"Unable to parse to String: {e}",
            ) from e
        return cls.parse(text)

    def __repr__(self) -> str:
        return f"<Architecture: {self.name}>"
