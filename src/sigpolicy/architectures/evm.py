"""
EVM architecture.

Parses hex-encoded, RLP-serialized unsigned Ethereum transactions:
    - Legacy: [nonce, gasPrice, gas, to, value, data]
    - Legacy EIP-155: [nonce, gasPrice, gas, to, value, data, chainId, 0, 0]
    - EIP-2930 (0x01 || rlp([chainId, nonce, gasPrice, gas, to, value, data, accessList]))
    - EIP-1559 (0x02 || rlp([chainId, nonce, maxPriorityFee, maxFee, gas, to, value, data, accessList]))

Security Note:
    A recipient given as a human-readable name (ENS) is always rejected.
    Resolving it needs network access the sandbox does not have, so
    accepting it would make the policy decision unverifiable.
"""

from dataclasses import dataclass, field
from typing import Any

import rlp
from eth_utils import decode_hex, keccak, to_canonical_address, to_checksum_address
from rlp.exceptions import DeserializationError, RLPException
from rlp.sedes import big_endian_int

from sigpolicy.architectures.base import Architecture, TransactionRequest
from sigpolicy.errors import InvalidTransactionRequestError


ADDRESS_LENGTH = 20

TX_TYPE_LEGACY = 0
TX_TYPE_ACCESS_LIST = 1
TX_TYPE_DYNAMIC_FEE = 2

ENS_NOT_SUPPORTED = "ENS recipients not supported. Resolve to an address first."


@dataclass
class EvmTransactionRequest(TransactionRequest):
    """
    An unsigned EVM transaction request.

    Unsigned encodings carry no sender; from_ is only set when the caller
    constructs a request directly.

    Attributes:
        to: Raw 20-byte recipient, or None for contract creation
        tx_type: 0 (legacy), 1 (EIP-2930) or 2 (EIP-1559)
    """

    to: bytes | None = None
    from_: bytes | None = None
    nonce: int = 0
    gas: int = 0
    value: int = 0
    data: bytes = b""
    gas_price: int | None = None
    max_priority_fee_per_gas: int | None = None
    max_fee_per_gas: int | None = None
    chain_id: int | None = None
    access_list: list[Any] = field(default_factory=list)
    tx_type: int = TX_TYPE_LEGACY

    def sender(self) -> str | None:
        """The sender's checksum address, if known."""
        if self.from_ is None:
            return None
        return Evm.address_from_raw(self.from_)

    def receiver(self) -> str | None:
        """The recipient's checksum address, or None for contract creation."""
        if self.to is None:
            return None
        return Evm.address_from_raw(self.to)

    def encode_unsigned(self) -> bytes:
        """Serialize back to the unsigned wire encoding."""
        to = self.to or b""
        if self.tx_type == TX_TYPE_DYNAMIC_FEE:
            fields = [
                self.chain_id or 0,
                self.nonce,
                self.max_priority_fee_per_gas or 0,
                self.max_fee_per_gas or 0,
                self.gas,
                to,
                self.value,
                self.data,
                self.access_list,
            ]
            return bytes([TX_TYPE_DYNAMIC_FEE]) + rlp.encode(fields)
        if self.tx_type == TX_TYPE_ACCESS_LIST:
            fields = [
                self.chain_id or 0,
                self.nonce,
                self.gas_price or 0,
                self.gas,
                to,
                self.value,
                self.data,
                self.access_list,
            ]
            return bytes([TX_TYPE_ACCESS_LIST]) + rlp.encode(fields)

        fields = [self.nonce, self.gas_price or 0, self.gas, to, self.value, self.data]
        if self.chain_id is not None:
            fields.extend([self.chain_id, 0, 0])
        return rlp.encode(fields)

    def sighash(self) -> bytes:
        """Keccak-256 of the unsigned encoding; the digest a signer signs."""
        return keccak(self.encode_unsigned())


class Evm(Architecture):
    """
    EVM architecture.

    Address is an EIP-55 checksum string; AddressRaw is 20 bytes.
    """

    name = "evm"
    address_length = ADDRESS_LENGTH

    @classmethod
    def address_from_raw(cls, raw: bytes) -> str:
        if len(raw) != ADDRESS_LENGTH:
            msg = f"EVM addresses are {ADDRESS_LENGTH} bytes, got {len(raw)}"
            raise ValueError(msg)
        return to_checksum_address(raw)

    @classmethod
    def address_to_raw(cls, address: str) -> bytes:
        return bytes(to_canonical_address(address))

    @classmethod
    def parse(cls, text: str) -> EvmTransactionRequest:
        try:
            raw = decode_hex(text.strip())
        except (ValueError, TypeError) as e:
            raise InvalidTransactionRequestError(
                reason=f"Unable to parse to RLP: {e}",
            ) from e

        if not raw:
            raise InvalidTransactionRequestError(reason="Unable to decode string: empty input")

        try:
            if raw[0] in (TX_TYPE_ACCESS_LIST, TX_TYPE_DYNAMIC_FEE):
                return _decode_typed(raw[0], rlp.decode(raw[1:]))
            return _decode_legacy(rlp.decode(raw))
        except (RLPException, DeserializationError) as e:
            raise InvalidTransactionRequestError(
                reason=f"Unable to decode string: {e}",
            ) from e


EvmTransactionRequest.architecture = Evm


# =============================================================================
# RLP field decoding
# =============================================================================


def _as_list(item: Any, expected: tuple[int, ...]) -> list[Any]:
    if not isinstance(item, list):
        raise InvalidTransactionRequestError(
            reason="Unable to decode string: expected an RLP list",
        )
    if len(item) not in expected:
        counts = " or ".join(str(n) for n in expected)
        raise InvalidTransactionRequestError(
            reason=f"Unable to decode string: expected {counts} fields, got {len(item)}",
        )
    return item


def _int(item: Any, name: str) -> int:
    if not isinstance(item, bytes):
        raise InvalidTransactionRequestError(
            reason=f"Unable to decode string: `{name}` must be an integer",
        )
    try:
        return big_endian_int.deserialize(item)
    except DeserializationError as e:
        raise InvalidTransactionRequestError(
            reason=f"Unable to decode string: invalid `{name}`: {e}",
        ) from e


def _bytes(item: Any, name: str) -> bytes:
    if not isinstance(item, bytes):
        raise InvalidTransactionRequestError(
            reason=f"Unable to decode string: `{name}` must be a byte string",
        )
    return item


def _recipient(item: Any) -> bytes | None:
    to = _bytes(item, "to")
    if len(to) == 0:
        return None
    if len(to) == ADDRESS_LENGTH:
        return to

    try:
        to.decode("utf-8")
    except UnicodeDecodeError:
        raise InvalidTransactionRequestError(
            reason=f"Unable to decode string: recipient must be {ADDRESS_LENGTH} bytes, got {len(to)}",
        ) from None
    raise InvalidTransactionRequestError(reason=ENS_NOT_SUPPORTED)


def _decode_legacy(item: Any) -> EvmTransactionRequest:
    fields = _as_list(item, (6, 9))
    tx = EvmTransactionRequest(
        nonce=_int(fields[0], "nonce"),
        gas_price=_int(fields[1], "gasPrice"),
        gas=_int(fields[2], "gas"),
        to=_recipient(fields[3]),
        value=_int(fields[4], "value"),
        data=_bytes(fields[5], "data"),
    )
    if len(fields) == 9:
        tx.chain_id = _int(fields[6], "chainId")
    return tx


def _decode_typed(tx_type: int, item: Any) -> EvmTransactionRequest:
    if tx_type == TX_TYPE_DYNAMIC_FEE:
        fields = _as_list(item, (9,))
        chain_id, nonce, tip, fee_cap, gas, to, value, data, access_list = fields
        return EvmTransactionRequest(
            tx_type=TX_TYPE_DYNAMIC_FEE,
            chain_id=_int(chain_id, "chainId"),
            nonce=_int(nonce, "nonce"),
            max_priority_fee_per_gas=_int(tip, "maxPriorityFeePerGas"),
            max_fee_per_gas=_int(fee_cap, "maxFeePerGas"),
            gas=_int(gas, "gas"),
            to=_recipient(to),
            value=_int(value, "value"),
            data=_bytes(data, "data"),
            access_list=_access_list(access_list),
        )

    fields = _as_list(item, (8,))
    chain_id, nonce, gas_price, gas, to, value, data, access_list = fields
    return EvmTransactionRequest(
        tx_type=TX_TYPE_ACCESS_LIST,
        chain_id=_int(chain_id, "chainId"),
        nonce=_int(nonce, "nonce"),
        gas_price=_int(gas_price, "gasPrice"),
        gas=_int(gas, "gas"),
        to=_recipient(to),
        value=_int(value, "value"),
        data=_bytes(data, "data"),
        access_list=_access_list(access_list),
    )


def _access_list(item: Any) -> list[Any]:
    if not isinstance(item, list):
        raise InvalidTransactionRequestError(
            reason="Unable to decode string: `accessList` must be a list",
        )
    for entry in item:
        if (
            not isinstance(entry, list)
            or len(entry) != 2
            or not isinstance(entry[0], bytes)
            or len(entry[0]) != ADDRESS_LENGTH
            or not isinstance(entry[1], list)
        ):
            raise InvalidTransactionRequestError(
                reason="Unable to decode string: malformed `accessList` entry",
            )
    return item
