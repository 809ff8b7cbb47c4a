"""
Key parsing and address derivation for EVM (secp256k1) and Solana (Ed25519).

The chain family is always supplied by the caller. Private keys are never
logged and are not retained beyond the call that parses them.
"""

from __future__ import annotations

import binascii
from dataclasses import dataclass
from typing import Union

import base58
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from eth_keys import keys
from eth_utils import keccak, to_checksum_address

from .chains import ChainFamily
from .errors import InvalidKeyFormat, InvalidKeyLength

__all__ = [
    "KeyPair",
    "derive_key_pair",
    "evm_address_from_public_key",
    "load_evm_private_key",
    "load_solana_private_key",
]

_BASE58_ALPHABET = set("123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz")
_HEX_DIGITS = set("0123456789abcdefABCDEF")
_SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


@dataclass(frozen=True)
class KeyPair:
    address: str
    public_key: bytes
    chain_family: ChainFamily

    @property
    def public_key_hex(self) -> str:
        return "0x" + self.public_key.hex()

    def as_dict(self) -> dict:
        public_key = (
            self.public_key_hex
            if self.chain_family is ChainFamily.EVM
            else base58.b58encode(self.public_key).decode("ascii")
        )
        return {
            "address": self.address,
            "publicKey": public_key,
            "chainType": self.chain_family.value,
        }


def load_evm_private_key(raw_key: str) -> keys.PrivateKey:
    """Parse a ``0x``-prefixed or bare 64-character hex private key."""
    if not isinstance(raw_key, str):
        raise InvalidKeyFormat("EVM private key must be a hex string")
    key = raw_key.strip()
    if key[:2] in ("0x", "0X"):
        key = key[2:]
    if not key or any(char not in _HEX_DIGITS for char in key):
        raise InvalidKeyFormat("EVM private key must be hex encoded")
    if len(key) % 2:
        raise InvalidKeyFormat("EVM private key has an odd number of hex digits")
    key_bytes = binascii.unhexlify(key)
    if len(key_bytes) != 32:
        raise InvalidKeyLength(
            f"EVM private key must be 32 bytes (64 hex chars), got {len(key_bytes)} bytes"
        )
    if not 0 < int.from_bytes(key_bytes, "big") < _SECP256K1_N:
        raise InvalidKeyFormat("EVM private key is outside the secp256k1 range")
    return keys.PrivateKey(key_bytes)


def load_solana_private_key(raw_key: str) -> Ed25519PrivateKey:
    """
    Parse a base58 Solana key.

    Both the 32-byte seed and the 64-byte ``seed || public key`` keypair layout
    are accepted. For the latter the embedded public half must match the seed.
    """
    if not isinstance(raw_key, str):
        raise InvalidKeyFormat("Solana private key must be a base58 string")
    key = raw_key.strip()
    if not key or any(char not in _BASE58_ALPHABET for char in key):
        raise InvalidKeyFormat("Invalid private key format. Use base58 for Solana")
    decoded = base58.b58decode(key)
    if len(decoded) not in (32, 64):
        raise InvalidKeyLength(
            f"Invalid Solana private key: decoded to {len(decoded)} bytes, expected 32 or 64"
        )
    private_key = Ed25519PrivateKey.from_private_bytes(decoded[:32])
    if len(decoded) == 64 and _ed25519_public_bytes(private_key) != decoded[32:]:
        raise InvalidKeyFormat("Solana keypair public half does not match its seed")
    return private_key


def _ed25519_public_bytes(private_key: Ed25519PrivateKey) -> bytes:
    return private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)


def evm_address_from_public_key(public_key: bytes) -> str:
    """Keccak-256 of the 64-byte ``x || y`` key, low 20 bytes, EIP-55 checksummed."""
    if len(public_key) != 64:
        raise InvalidKeyLength(f"Expected a 64-byte public key, got {len(public_key)}")
    return to_checksum_address(keccak(public_key)[-20:])


def derive_key_pair(raw_key: str, chain_family: Union[ChainFamily, str]) -> KeyPair:
    family = ChainFamily.parse(chain_family)
    if family is ChainFamily.EVM:
        public_key = load_evm_private_key(raw_key).public_key.to_bytes()
        return KeyPair(
            address=evm_address_from_public_key(public_key),
            public_key=public_key,
            chain_family=family,
        )

    public_key = _ed25519_public_bytes(load_solana_private_key(raw_key))
    return KeyPair(
        address=base58.b58encode(public_key).decode("ascii"),
        public_key=public_key,
        chain_family=family,
    )
