"""
EVM transaction serialization and signing.

A transaction moves from :class:`UnsignedTransaction` to
:class:`SignedTransaction` exactly once. The signed form is immutable and
offers no way to sign again.

Supported envelopes:

* Legacy (EIP-155 when ``chain_id`` is set, pre-155 otherwise)
* EIP-2930 (type ``0x01``, access list)
* EIP-1559 (type ``0x02``, fee market)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from eth_keys import keys
from eth_utils import keccak
from hexbytes import HexBytes

from . import rlp
from .errors import MalformedMessage
from .keys import evm_address_from_public_key, load_evm_private_key
from .signing import EvmSignature, sign_hash

__all__ = [
    "AccessListEntry",
    "SignedTransaction",
    "TransactionType",
    "UnsignedTransaction",
    "recover_sender",
    "sign_transaction",
]


class TransactionType(IntEnum):
    LEGACY = 0
    EIP2930 = 1
    EIP1559 = 2


def _hex_bytes(value: Any, field_name: str, *, size: Optional[int] = None) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str):
        digits = value[2:] if value[:2] in ("0x", "0X") else value
        try:
            raw = bytes.fromhex(digits)
        except ValueError as exc:
            raise MalformedMessage(f"{field_name} is not valid hex: {value!r}") from exc
    else:
        raise MalformedMessage(f"{field_name} must be hex or bytes")
    if size is not None and len(raw) != size:
        raise MalformedMessage(f"{field_name} must be {size} bytes, got {len(raw)}")
    return raw


def _uint(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise MalformedMessage(f"{field_name} must be an integer")
    if isinstance(value, str):
        text = value.strip()
        try:
            value = int(text, 16) if text[:2] in ("0x", "0X") else int(text)
        except ValueError as exc:
            raise MalformedMessage(f"{field_name} must be an integer, got {value!r}") from exc
    if not isinstance(value, int) or value < 0:
        raise MalformedMessage(f"{field_name} must be a non-negative integer")
    return value


@dataclass(frozen=True)
class AccessListEntry:
    address: bytes
    storage_keys: Tuple[bytes, ...] = ()

    @classmethod
    def from_mapping(cls, entry: Mapping[str, Any]) -> "AccessListEntry":
        return cls(
            address=_hex_bytes(entry["address"], "accessList.address", size=20),
            storage_keys=tuple(
                _hex_bytes(key, "accessList.storageKeys", size=32)
                for key in entry.get("storageKeys", ())
            ),
        )

    def to_rlp(self) -> list:
        return [self.address, list(self.storage_keys)]


@dataclass(frozen=True)
class UnsignedTransaction:
    nonce: int = 0
    gas_limit: int = 21000
    to: Optional[bytes] = None
    value: int = 0
    data: bytes = b""
    chain_id: Optional[int] = 1
    gas_price: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    access_list: Tuple[AccessListEntry, ...] = field(default_factory=tuple)
    type: Optional[TransactionType] = None

    def __post_init__(self) -> None:
        if self.type is not None and not isinstance(self.type, TransactionType):
            object.__setattr__(self, "type", TransactionType(self.type))
        if self.to is not None and len(self.to) != 20:
            raise MalformedMessage(f"'to' must be a 20-byte address, got {len(self.to)} bytes")
        tx_type = self.transaction_type
        if tx_type is not TransactionType.LEGACY and self.chain_id is None:
            raise MalformedMessage("Typed transactions require a chain id")

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "UnsignedTransaction":
        """
        Build a transaction from JSON-style fields (``gas``/``gasLimit``,
        ``gasPrice``, ``maxFeePerGas``, ``maxPriorityFeePerGas``, ``accessList``,
        ``type``, ``chainId``...). Numbers may be ints, decimal or ``0x`` strings.

        A missing ``chainId`` means chain 1. Only an explicit ``"chainId": null``
        on a legacy transaction selects the unprotected pre-EIP-155 form.
        """
        def optional_uint(key: str) -> Optional[int]:
            value = payload.get(key)
            return None if value is None else _uint(value, key)

        to_value = payload.get("to")
        raw_type = payload.get("type")
        gas_limit = payload.get("gasLimit", payload.get("gas", 21000))
        return cls(
            nonce=_uint(payload.get("nonce", 0), "nonce"),
            gas_limit=_uint(gas_limit, "gasLimit"),
            to=_hex_bytes(to_value, "to", size=20) if to_value else None,
            value=_uint(payload.get("value", 0), "value"),
            data=_hex_bytes(payload.get("data") or b"", "data"),
            chain_id=optional_uint("chainId") if "chainId" in payload else 1,
            gas_price=optional_uint("gasPrice"),
            max_fee_per_gas=optional_uint("maxFeePerGas"),
            max_priority_fee_per_gas=optional_uint("maxPriorityFeePerGas"),
            access_list=tuple(
                AccessListEntry.from_mapping(entry) for entry in payload.get("accessList") or ()
            ),
            type=None if raw_type is None else TransactionType(_uint(raw_type, "type")),
        )

    @property
    def transaction_type(self) -> TransactionType:
        if self.type is not None:
            return self.type
        if self.max_fee_per_gas is not None or self.max_priority_fee_per_gas is not None:
            return TransactionType.EIP1559
        if self.access_list:
            return TransactionType.EIP2930
        return TransactionType.LEGACY

    def _to_field(self) -> bytes:
        return self.to if self.to is not None else b""

    def _access_list_field(self) -> List[list]:
        return [entry.to_rlp() for entry in self.access_list]

    def payload_fields(self) -> List[Any]:
        """RLP fields shared by the unsigned and signed forms (no signature)."""
        tx_type = self.transaction_type
        if tx_type is TransactionType.LEGACY:
            return [
                self.nonce,
                self.gas_price or 0,
                self.gas_limit,
                self._to_field(),
                self.value,
                self.data,
            ]
        if tx_type is TransactionType.EIP2930:
            return [
                self.chain_id,
                self.nonce,
                self.gas_price or 0,
                self.gas_limit,
                self._to_field(),
                self.value,
                self.data,
                self._access_list_field(),
            ]
        return [
            self.chain_id,
            self.nonce,
            self.max_priority_fee_per_gas or 0,
            self.max_fee_per_gas or 0,
            self.gas_limit,
            self._to_field(),
            self.value,
            self.data,
            self._access_list_field(),
        ]

    def _envelope(self, fields: Sequence[Any]) -> bytes:
        encoded = rlp.encode(list(fields))
        tx_type = self.transaction_type
        if tx_type is TransactionType.LEGACY:
            return encoded
        return bytes([tx_type]) + encoded

    def serialize_unsigned(self) -> bytes:
        fields = self.payload_fields()
        if self.transaction_type is TransactionType.LEGACY and self.chain_id is not None:
            fields += [self.chain_id, b"", b""]
        return self._envelope(fields)

    def signing_hash(self) -> bytes:
        return keccak(self.serialize_unsigned())

    def serialize_signed(self, signature: EvmSignature) -> bytes:
        fields = self.payload_fields()
        if self.transaction_type is TransactionType.LEGACY:
            v = signature.v(self.chain_id)
        else:
            v = signature.recovery_id
        fields += [v, signature.r, signature.s]
        return self._envelope(fields)


@dataclass(frozen=True)
class SignedTransaction:
    transaction: UnsignedTransaction
    signature: EvmSignature
    raw: HexBytes
    hash: HexBytes

    @property
    def v(self) -> int:
        if self.transaction.transaction_type is TransactionType.LEGACY:
            return self.signature.v(self.transaction.chain_id)
        return self.signature.recovery_id

    @property
    def raw_hex(self) -> str:
        return "0x" + bytes(self.raw).hex()

    @property
    def hash_hex(self) -> str:
        return "0x" + bytes(self.hash).hex()

    def as_dict(self) -> Dict[str, Any]:
        return {
            "type": int(self.transaction.transaction_type),
            "rawTransaction": self.raw_hex,
            "hash": self.hash_hex,
            "r": hex(self.signature.r),
            "s": hex(self.signature.s),
            "v": self.v,
        }


def sign_transaction(transaction: UnsignedTransaction, private_key: str) -> SignedTransaction:
    """
    Sign ``transaction`` and return its broadcastable encoding.

    The chain id embedded in the signed payload is the same one that drives
    ``v``, so the result cannot be replayed on another chain.
    """
    key = load_evm_private_key(private_key)
    signature = sign_hash(key, transaction.signing_hash())
    raw = transaction.serialize_signed(signature)
    return SignedTransaction(
        transaction=transaction,
        signature=signature,
        raw=HexBytes(raw),
        hash=HexBytes(keccak(raw)),
    )


def recover_sender(signed: SignedTransaction) -> str:
    """Address of the key that produced ``signed``."""
    eth_signature = keys.Signature(
        vrs=(signed.signature.recovery_id, signed.signature.r, signed.signature.s)
    )
    public_key = eth_signature.recover_public_key_from_msg_hash(
        signed.transaction.signing_hash()
    )
    return evm_address_from_public_key(public_key.to_bytes())
