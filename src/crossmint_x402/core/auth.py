"""
Short-lived bearer tokens for the Coinbase CDP facilitator.

Every outbound call gets its own token, bound to one ``METHOD host+path``
tuple and valid for at most two minutes.
"""

from __future__ import annotations

import base64
import binascii
import secrets
import time
from dataclasses import dataclass
from typing import Any, Optional

import jwt
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import load_pem_private_key

from .errors import UnsupportedKeyType

__all__ = [
    "CdpSigningKey",
    "TOKEN_LIFETIME_SECONDS",
    "build_auth_token",
    "load_cdp_signing_key",
]

TOKEN_LIFETIME_SECONDS = 120


@dataclass(frozen=True)
class CdpSigningKey:
    algorithm: str
    key: Any


def load_cdp_signing_key(key_secret: str) -> CdpSigningKey:
    """
    Parse a CDP API key secret.

    A PEM EC (P-256) key signs with ES256. Anything else must be a base64 raw
    Ed25519 key: the 32-byte seed, or the 64-byte ``seed || public`` form.
    """
    if not key_secret or not key_secret.strip():
        raise UnsupportedKeyType("CDP API key secret is empty")
    secret = key_secret.replace("\\n", "\n").strip()

    if secret.startswith("-----BEGIN"):
        try:
            private_key = load_pem_private_key(secret.encode("utf-8"), password=None)
        except (ValueError, TypeError) as exc:
            raise UnsupportedKeyType(f"CDP API key secret is not a readable PEM key: {exc}") from exc
        if not isinstance(private_key, ec.EllipticCurvePrivateKey) or not isinstance(
            private_key.curve, ec.SECP256R1
        ):
            raise UnsupportedKeyType(
                f"Unsupported PEM key type {type(private_key).__name__}; expected an EC P-256 key"
            )
        return CdpSigningKey(algorithm="ES256", key=private_key)

    try:
        decoded = base64.b64decode(secret, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise UnsupportedKeyType("CDP API key secret is neither PEM nor base64 Ed25519") from exc
    if len(decoded) not in (32, 64):
        raise UnsupportedKeyType(
            f"Ed25519 key secret must decode to 32 or 64 bytes, got {len(decoded)}"
        )
    return CdpSigningKey(algorithm="EdDSA", key=Ed25519PrivateKey.from_private_bytes(decoded[:32]))


def build_auth_token(
    key_id: str,
    key_secret: str,
    method: str,
    host: str,
    path: str,
    *,
    now: Optional[int] = None,
    nonce: Optional[str] = None,
) -> str:
    signing_key = load_cdp_signing_key(key_secret)
    issued_at = int(time.time()) if now is None else now
    headers = {
        "kid": key_id,
        "typ": "JWT",
        "nonce": nonce if nonce is not None else secrets.token_hex(16),
    }
    claims = {
        "iss": "cdp",
        "sub": key_id,
        "nbf": issued_at,
        "exp": issued_at + TOKEN_LIFETIME_SECONDS,
        "uri": f"{method.upper()} {host}{path}",
    }
    return jwt.encode(claims, signing_key.key, algorithm=signing_key.algorithm, headers=headers)
