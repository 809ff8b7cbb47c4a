"""
Parsing and validation of the ``X-PAYMENT`` header.

Validation happens in two passes. :func:`validate_shape` checks the decoded
JSON against the fixed EIP-3009 ``exact`` payload layout and reports every
problem it finds. :func:`verify_business_rules` then checks amount, recipient
and validity window against the requirement configured for the payment's
network, again collecting every failure into one diagnostic.
"""

from __future__ import annotations

import base64
import binascii
import json
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .errors import MalformedPaymentHeader
from .requirements import PaymentRequirement

__all__ = [
    "Authorization",
    "BusinessRuleResult",
    "PAYMENT_PAYLOAD_SHAPE",
    "PaymentPayload",
    "decode_payment_header",
    "validate_shape",
    "verify_business_rules",
]

PAYMENT_PAYLOAD_SHAPE: Dict[str, Any] = {
    "x402Version": "number",
    "scheme": "string",
    "network": "string",
    "payload": {
        "signature": "string",
        "authorization": {
            "from": "string",
            "to": "string",
            "value": "string",
            "validAfter": "string",
            "validBefore": "string",
            "nonce": "string",
        },
    },
}

_UNSIGNED_INT = re.compile(r"[0-9]{1,78}")


def _json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def decode_payment_header(header_value: str) -> Dict[str, Any]:
    """Base64-decode and JSON-parse an ``X-PAYMENT`` header value."""
    if not isinstance(header_value, str) or not header_value.strip():
        raise MalformedPaymentHeader("x-payment header is empty")
    # accept the URL-safe alphabet and missing padding
    text = header_value.strip().replace("-", "+").replace("_", "/")
    text += "=" * (-len(text) % 4)
    try:
        raw = base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MalformedPaymentHeader(f"x-payment header is not valid base64: {exc}") from exc
    try:
        decoded = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedPaymentHeader(f"x-payment header is not valid JSON: {exc}") from exc
    if not isinstance(decoded, dict):
        raise MalformedPaymentHeader("x-payment header must decode to a JSON object")
    return decoded


def _check_shape(expected: Mapping[str, Any], actual: Mapping[str, Any], path: str) -> List[str]:
    problems: List[str] = []
    for key, expected_type in expected.items():
        current = f"{path}.{key}" if path else key
        if key not in actual:
            problems.append(f"Missing field: {current}")
        elif isinstance(expected_type, Mapping):
            if not isinstance(actual[key], dict):
                problems.append(f"Invalid type at {current}: expected object")
            else:
                problems.extend(_check_shape(expected_type, actual[key], current))
        else:
            got = _json_type(actual[key])
            if got != expected_type:
                problems.append(
                    f"Invalid type at {current}: expected {expected_type}, got {got}"
                )
    return problems


def validate_shape(payload: Any) -> List[str]:
    """
    Return every missing field and type mismatch; an empty list means valid.
    """
    if not isinstance(payload, dict):
        return [f"Invalid type at <root>: expected object, got {_json_type(payload)}"]
    return _check_shape(PAYMENT_PAYLOAD_SHAPE, payload, "")


@dataclass(frozen=True)
class Authorization:
    from_address: str
    to: str
    value: str
    valid_after: str
    valid_before: str
    nonce: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "from": self.from_address,
            "to": self.to,
            "value": self.value,
            "validAfter": self.valid_after,
            "validBefore": self.valid_before,
            "nonce": self.nonce,
        }


@dataclass(frozen=True)
class PaymentPayload:
    x402_version: Any
    scheme: str
    network: str
    authorization: Authorization
    signature: str

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PaymentPayload":
        """Build from a mapping that already passed :func:`validate_shape`."""
        inner = payload["payload"]
        auth = inner["authorization"]
        return cls(
            x402_version=payload["x402Version"],
            scheme=payload["scheme"],
            network=payload["network"],
            authorization=Authorization(
                from_address=auth["from"],
                to=auth["to"],
                value=auth["value"],
                valid_after=auth["validAfter"],
                valid_before=auth["validBefore"],
                nonce=auth["nonce"],
            ),
            signature=inner["signature"],
        )

    def to_facilitator_dict(self) -> Dict[str, Any]:
        """Verbatim copy for the facilitator; the version travels as a string."""
        return {
            "x402Version": str(self.x402_version),
            "scheme": self.scheme,
            "network": self.network,
            "payload": {
                "authorization": self.authorization.to_dict(),
                "signature": self.signature,
            },
        }


@dataclass(frozen=True)
class BusinessRuleResult:
    valid: bool
    matched_requirement: Optional[PaymentRequirement]
    errors: List[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        return "; ".join(self.errors)


def verify_business_rules(
    payload: PaymentPayload,
    requirements: Sequence[PaymentRequirement],
    *,
    now: Optional[int] = None,
) -> BusinessRuleResult:
    """
    Check ``payload`` against the requirement for its network.

    Never raises for bad numbers or timestamps; every failure is reported in
    :attr:`BusinessRuleResult.errors`.
    """
    errors: List[str] = []
    network = payload.network or ""
    matched = next(
        (req for req in requirements if req.network.lower() == network.lower()),
        None,
    )
    if matched is None:
        errors.append(f"Invalid or unsupported network: {network}")
        return BusinessRuleResult(valid=False, matched_requirement=None, errors=errors)

    authorization = payload.authorization

    if _UNSIGNED_INT.fullmatch(authorization.value or "") and _UNSIGNED_INT.fullmatch(
        matched.max_amount_required
    ):
        actual = int(authorization.value)
        required = int(matched.max_amount_required)
        if actual < required:
            errors.append(f"Value too low: got {actual}, requires at least {required}")
    else:
        errors.append("Invalid value: must be numeric string")

    if not authorization.to:
        errors.append("Missing 'to' field in authorization")
    elif authorization.to.lower() != matched.pay_to.lower():
        errors.append(
            f"Invalid 'to' address: expected {matched.pay_to}, got {authorization.to}"
        )

    current = int(time.time()) if now is None else now
    if _UNSIGNED_INT.fullmatch(authorization.valid_after or "") and _UNSIGNED_INT.fullmatch(
        authorization.valid_before or ""
    ):
        valid_after = int(authorization.valid_after)
        valid_before = int(authorization.valid_before)
        if valid_after > current:
            errors.append(
                f"Payment has not activated, validAfter is {valid_after} "
                f"but the server time is {current}"
            )
        if valid_before < current:
            errors.append(
                f"Payment has expired, validBefore is {valid_before} "
                f"but the server time is {current}"
            )
    else:
        errors.append("Invalid validAfter or validBefore timestamps")

    return BusinessRuleResult(valid=not errors, matched_requirement=matched, errors=errors)
