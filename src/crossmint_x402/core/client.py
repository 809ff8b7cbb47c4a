"""
HTTP client for the Coinbase CDP x402 facilitator.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from .auth import build_auth_token
from .config import CdpCredentials
from .errors import FacilitatorError
from .requirements import PaymentRequirement
from .validation import PaymentPayload

__all__ = [
    "CDP_HOST",
    "FacilitatorClient",
    "SettlementResult",
    "VerifyResult",
    "build_facilitator_body",
]

CDP_HOST = "api.cdp.coinbase.com"
VERIFY_PATH = "/platform/v2/x402/verify"
SETTLE_PATH = "/platform/v2/x402/settle"


def _post_json(
    session: requests.Session,
    url: str,
    body: Dict[str, Any],
    *,
    headers: Dict[str, str],
    timeout: float,
) -> Dict[str, Any]:
    try:
        response = session.post(url, json=body, headers=headers, timeout=timeout)
    except requests.RequestException as exc:
        raise FacilitatorError(f"Facilitator request to {url} failed: {exc}") from exc

    logging.info("Facilitator %s answered with status %s", url, response.status_code)
    if not 200 <= response.status_code < 300:
        raise FacilitatorError(
            f"Facilitator responded with {response.status_code}: {response.text}",
            status_code=response.status_code,
            body=response.text,
        )
    try:
        return response.json()
    except ValueError as exc:
        raise FacilitatorError(
            f"Failed to parse JSON from facilitator at {url}: {response.text}",
            status_code=response.status_code,
            body=response.text,
        ) from exc


def build_facilitator_body(
    payload: PaymentPayload,
    requirement: PaymentRequirement,
) -> Dict[str, Any]:
    return {
        "x402Version": str(payload.x402_version if payload.x402_version is not None else 1),
        "paymentPayload": payload.to_facilitator_dict(),
        "paymentRequirements": requirement.to_dict(),
    }


@dataclass(frozen=True)
class VerifyResult:
    is_valid: bool
    invalid_reason: Optional[str]
    payer: Optional[str]
    raw: Dict[str, Any]

    @classmethod
    def from_response(cls, payload: Dict[str, Any]) -> "VerifyResult":
        return cls(
            is_valid=bool(payload.get("isValid")),
            invalid_reason=payload.get("invalidReason"),
            payer=payload.get("payer"),
            raw=payload,
        )


@dataclass(frozen=True)
class SettlementResult:
    success: bool
    tx_hash: Optional[str]
    network: Optional[str]
    error: Optional[str]
    raw: Dict[str, Any]

    @classmethod
    def from_response(cls, payload: Dict[str, Any]) -> "SettlementResult":
        transaction = payload.get("transaction")
        if isinstance(transaction, dict):
            tx_hash = transaction.get("hash")
        else:
            tx_hash = transaction
        return cls(
            success=bool(payload.get("success")),
            tx_hash=tx_hash,
            network=payload.get("network"),
            error=payload.get("errorReason") or payload.get("error"),
            raw=payload,
        )


class FacilitatorClient:
    """
    Calls ``/verify`` and ``/settle``, minting a fresh bearer token per call.
    """

    def __init__(
        self,
        credentials: CdpCredentials,
        *,
        host: str = CDP_HOST,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.credentials = credentials
        self.host = host
        self.timeout = timeout
        self.session = session or requests.Session()

    def _call(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        token = build_auth_token(
            self.credentials.key_id,
            self.credentials.key_secret,
            "POST",
            self.host,
            path,
        )
        url = f"https://{self.host}{path}"
        logging.info("Submitting payment to facilitator at %s", url)
        return _post_json(
            self.session,
            url,
            body,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=self.timeout,
        )

    def verify(self, payload: PaymentPayload, requirement: PaymentRequirement) -> VerifyResult:
        response = self._call(VERIFY_PATH, build_facilitator_body(payload, requirement))
        return VerifyResult.from_response(response)

    def settle(self, payload: PaymentPayload, requirement: PaymentRequirement) -> SettlementResult:
        response = self._call(SETTLE_PATH, build_facilitator_body(payload, requirement))
        return SettlementResult.from_response(response)
