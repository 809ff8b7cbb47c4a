"""
Message signing for EVM (EIP-191 personal_sign over secp256k1) and Solana
(raw Ed25519).

EVM inputs are ambiguous: a caller may hand over a pre-computed hash, a hash
wrapped in a JSON object, or free text. :func:`resolve_evm_message` applies a
fixed precedence so every caller gets the same interpretation:

1. a structured object (or a JSON object string) carrying
   ``userOperationHash`` or ``hash``; without either field the compact JSON
   is reduced to its keccak-256 digest
2. a ``0x``-prefixed string (pre-computed hash / raw bytes)
3. a bare hex string of at least 64 characters (unprefixed hash)
4. anything else is UTF-8 text and is reduced to its keccak-256 digest

``bytes`` are always signed as-is.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, Mapping, Union

import base58
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys import keys
from eth_keys.exceptions import BadSignature
from eth_utils import keccak

from .chains import ChainFamily
from .errors import InvalidKeyLength, MalformedMessage
from .keys import load_evm_private_key, load_solana_private_key

__all__ = [
    "EvmSignature",
    "ResolvedMessage",
    "eip191_hash",
    "resolve_evm_message",
    "sign_hash",
    "sign_message",
    "verify_message",
]

MessageInput = Union[str, bytes, Mapping[str, Any]]

STRUCTURED_HASH = "structured-hash"
STRUCTURED_JSON = "structured-json"
PREFIXED_HEX = "prefixed-hex"
BARE_HEX = "bare-hex"
UTF8_TEXT = "utf8-text"
RAW_BYTES = "raw-bytes"

_HEX_DIGITS = set("0123456789abcdefABCDEF")
_EIP191_PREFIX = b"\x19Ethereum Signed Message:\n"


@dataclass(frozen=True)
class EvmSignature:
    r: int
    s: int
    recovery_id: int

    def v(self, chain_id: int | None = None) -> int:
        """``chainId * 2 + 35 + recoveryId`` under EIP-155, else ``27 + recoveryId``."""
        if chain_id is None:
            return 27 + self.recovery_id
        return chain_id * 2 + 35 + self.recovery_id

    def to_bytes(self) -> bytes:
        return (
            self.r.to_bytes(32, "big")
            + self.s.to_bytes(32, "big")
            + bytes([self.v()])
        )

    def to_hex(self) -> str:
        return "0x" + self.to_bytes().hex()

    @classmethod
    def from_bytes(cls, raw: bytes) -> "EvmSignature":
        if len(raw) != 65:
            raise MalformedMessage(f"EVM signature must be 65 bytes, got {len(raw)}")
        v = raw[64]
        recovery_id = v - 27 if v >= 27 else v
        if recovery_id not in (0, 1):
            raise MalformedMessage(f"Unexpected signature v value {v}")
        return cls(
            r=int.from_bytes(raw[:32], "big"),
            s=int.from_bytes(raw[32:64], "big"),
            recovery_id=recovery_id,
        )


@dataclass(frozen=True)
class ResolvedMessage:
    kind: str
    payload: bytes


def _hex_to_bytes(value: str, field: str) -> bytes:
    digits = value[2:] if value[:2] in ("0x", "0X") else value
    if len(digits) % 2 or any(char not in _HEX_DIGITS for char in digits):
        raise MalformedMessage(f"{field} is not valid hex: {value!r}")
    return binascii.unhexlify(digits)


def _maybe_json_object(text: str) -> Mapping[str, Any] | None:
    stripped = text.strip()
    if not stripped.startswith("{"):
        return None
    try:
        parsed = json.loads(stripped)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def resolve_evm_message(data: MessageInput) -> ResolvedMessage:
    """Turn an EVM signing input into the bytes that get EIP-191 signed."""
    if isinstance(data, (bytes, bytearray)):
        return ResolvedMessage(RAW_BYTES, bytes(data))

    structured = data if isinstance(data, Mapping) else None
    if structured is None and isinstance(data, str):
        structured = _maybe_json_object(data)

    if structured is not None:
        for field in ("userOperationHash", "hash"):
            value = structured.get(field)
            if value:
                if not isinstance(value, str):
                    raise MalformedMessage(f"{field} must be a hex string")
                return ResolvedMessage(STRUCTURED_HASH, _hex_to_bytes(value, field))
        encoded = json.dumps(structured, separators=(",", ":")).encode("utf-8")
        return ResolvedMessage(STRUCTURED_JSON, keccak(encoded))

    if not isinstance(data, str):
        raise MalformedMessage(f"Cannot sign message of type {type(data).__name__}")

    if data.startswith("0x"):
        return ResolvedMessage(PREFIXED_HEX, _hex_to_bytes(data, "message"))
    if len(data) >= 64 and len(data) % 2 == 0 and all(char in _HEX_DIGITS for char in data):
        return ResolvedMessage(BARE_HEX, binascii.unhexlify(data))
    return ResolvedMessage(UTF8_TEXT, keccak(data.encode("utf-8")))


def eip191_hash(payload: bytes) -> bytes:
    return keccak(_EIP191_PREFIX + str(len(payload)).encode("ascii") + payload)


def sign_hash(private_key: keys.PrivateKey, message_hash: bytes) -> EvmSignature:
    """ECDSA over a 32-byte digest; the nonce is derived deterministically (RFC 6979)."""
    if len(message_hash) != 32:
        raise MalformedMessage(f"Expected a 32-byte hash, got {len(message_hash)} bytes")
    signature = private_key.sign_msg_hash(message_hash)
    return EvmSignature(r=signature.r, s=signature.s, recovery_id=signature.v)


def _solana_message_bytes(message: MessageInput) -> bytes:
    if isinstance(message, (bytes, bytearray)):
        return bytes(message)
    if isinstance(message, str):
        return message.encode("utf-8")
    raise MalformedMessage("Solana messages must be text or bytes")


def _encode_ed25519(signature: bytes, encoding: str) -> str:
    if encoding == "base58":
        return base58.b58encode(signature).decode("ascii")
    if encoding == "base64":
        return base64.b64encode(signature).decode("ascii")
    raise ValueError(f"Unsupported signature encoding '{encoding}'")


def _decode_ed25519(signature: str, encoding: str) -> bytes:
    if encoding == "base58":
        return base58.b58decode(signature)
    if encoding == "base64":
        return base64.b64decode(signature, validate=True)
    raise ValueError(f"Unsupported signature encoding '{encoding}'")


def sign_message(
    chain_family: Union[ChainFamily, str],
    private_key: str,
    message: MessageInput,
    *,
    encoding: str = "base58",
) -> str:
    """
    Sign ``message`` with ``private_key``.

    EVM returns ``0x`` + r + s + v (``v = 27 + recoveryId``). Solana returns the
    64-byte Ed25519 signature, base58 by default or base64 via ``encoding``.
    """
    family = ChainFamily.parse(chain_family)
    if family is ChainFamily.EVM:
        resolved = resolve_evm_message(message)
        key = load_evm_private_key(private_key)
        return sign_hash(key, eip191_hash(resolved.payload)).to_hex()

    signing_key = load_solana_private_key(private_key)
    signature = signing_key.sign(_solana_message_bytes(message))
    return _encode_ed25519(signature, encoding)


def verify_message(
    chain_family: Union[ChainFamily, str],
    signer: Union[str, bytes],
    message: MessageInput,
    signature: str,
    *,
    encoding: str = "base58",
) -> bool:
    """
    Check ``signature`` over ``message``.

    ``signer`` is the EVM address for EVM, the base58 address or raw 32-byte
    public key for Solana.
    """
    family = ChainFamily.parse(chain_family)
    if family is ChainFamily.EVM:
        resolved = resolve_evm_message(message)
        parsed = EvmSignature.from_bytes(_hex_to_bytes(signature, "signature"))
        try:
            recovered = Account.recover_message(
                encode_defunct(primitive=resolved.payload), signature=parsed.to_bytes()
            )
        except BadSignature:
            return False
        return recovered.lower() == str(signer).lower()

    public_key = signer if isinstance(signer, bytes) else base58.b58decode(signer)
    if len(public_key) != 32:
        raise InvalidKeyLength(f"Solana public key must be 32 bytes, got {len(public_key)}")
    try:
        Ed25519PublicKey.from_public_bytes(public_key).verify(
            _decode_ed25519(signature, encoding),
            _solana_message_bytes(message),
        )
    except InvalidSignature:
        return False
    return True
