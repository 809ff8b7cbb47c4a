"""
The pay-to-access webhook flow.

A request walks ``AWAITING_PROOF -> VALIDATING -> VERIFYING -> SETTLING ->
RESPONDING``. Any protocol or business failure ends in ``CHALLENGE`` (HTTP
402 with the payment menu); misconfiguration and credential problems end in
``FATAL`` (HTTP 500). A transport failure while verifying is raised to the
host. A transport failure while settling is logged and the request completes
with the placeholder transaction ``"TBD"``, since the transfer has usually
been broadcast already. An explicit ``success: false`` from settle is a 402.
"""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol

from .client import FacilitatorClient, SettlementResult, VerifyResult
from .config import WebhookConfig
from .errors import MalformedPaymentHeader, PaymentConfigError, UnsupportedKeyType
from .requirements import PaymentRequirement
from .validation import (
    PaymentPayload,
    decode_payment_header,
    validate_shape,
    verify_business_rules,
)

__all__ = [
    "PAYMENT_HEADER",
    "PAYMENT_RESPONSE_HEADER",
    "PENDING_TX_HASH",
    "Facilitator",
    "WebhookOrchestrator",
    "WebhookRequest",
    "WebhookResponse",
    "WebhookState",
    "challenge_body",
    "encode_payment_response",
]

X402_VERSION = 1
PAYMENT_HEADER = "x-payment"
PAYMENT_RESPONSE_HEADER = "X-PAYMENT-RESPONSE"
PENDING_TX_HASH = "TBD"
UNKNOWN_TX_HASH = "UNKNOWN_TX"


class WebhookState(str, Enum):
    AWAITING_PROOF = "awaiting-proof"
    VALIDATING = "validating"
    VERIFYING = "verifying"
    SETTLING = "settling"
    RESPONDING = "responding"
    CHALLENGE = "challenge-402"
    FATAL = "fatal-500"


class Facilitator(Protocol):
    def verify(self, payload: PaymentPayload, requirement: PaymentRequirement) -> VerifyResult:
        ...

    def settle(
        self, payload: PaymentPayload, requirement: PaymentRequirement
    ) -> SettlementResult:
        ...


@dataclass(frozen=True)
class WebhookRequest:
    method: str = "POST"
    headers: Mapping[str, str] = field(default_factory=dict)
    query: Mapping[str, Any] = field(default_factory=dict)
    body: Any = None

    def header(self, name: str) -> Optional[str]:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


@dataclass(frozen=True)
class WebhookResponse:
    status_code: int
    body: Any
    state: WebhookState
    headers: Dict[str, str] = field(default_factory=dict)
    workflow_data: Optional[Dict[str, Any]] = None


def encode_payment_response(tx_hash: str, network: str) -> str:
    """Value of ``X-PAYMENT-RESPONSE``: base64 JSON settlement receipt."""
    receipt = {"success": True, "txHash": tx_hash, "networkId": network}
    return base64.b64encode(json.dumps(receipt).encode("utf-8")).decode("ascii")


def challenge_body(requirements: List[PaymentRequirement], error: str) -> Dict[str, Any]:
    """JSON body of a 402 answer listing the accepted payment options."""
    return {
        "x402Version": X402_VERSION,
        "error": error,
        "accepts": [requirement.to_dict() for requirement in requirements],
    }


class WebhookOrchestrator:
    def __init__(
        self,
        config: WebhookConfig,
        facilitator: Optional[Facilitator] = None,
    ) -> None:
        self.config = config
        self.facilitator = facilitator or FacilitatorClient(
            config.credentials,
            host=config.facilitator_host,
            timeout=config.facilitator_timeout,
        )

    def challenge(
        self,
        requirements: List[PaymentRequirement],
        error: str,
    ) -> WebhookResponse:
        logging.info("Answering webhook with 402: %s", error)
        return WebhookResponse(
            status_code=402,
            body=challenge_body(requirements, error),
            headers={"Content-Type": "application/json"},
            state=WebhookState.CHALLENGE,
        )

    def _fatal(self, error: str) -> WebhookResponse:
        logging.error("Answering webhook with 500: %s", error)
        return WebhookResponse(
            status_code=500,
            body={"error": {"errorMessage": error}},
            headers={"Content-Type": "application/json"},
            state=WebhookState.FATAL,
        )

    def _respond(
        self,
        request: WebhookRequest,
        tx_hash: str,
        network: str,
    ) -> WebhookResponse:
        return WebhookResponse(
            status_code=200,
            body=self.config.response_body(),
            headers={PAYMENT_RESPONSE_HEADER: encode_payment_response(tx_hash, network)},
            state=WebhookState.RESPONDING,
            workflow_data={
                "headers": dict(request.headers),
                "query": dict(request.query),
                "body": request.body,
                "txHash": tx_hash,
            },
        )

    @staticmethod
    def _enter(state: WebhookState) -> None:
        logging.debug("x402 webhook entering %s", state.value)

    def handle(self, request: WebhookRequest) -> WebhookResponse:
        """
        Run one request through the payment flow.

        Raises :class:`~crossmint_x402.core.errors.FacilitatorError` when the
        facilitator cannot verify the payment.
        """
        try:
            requirements = self.config.payment_requirements()
        except PaymentConfigError as exc:
            return self._fatal(str(exc))

        self._enter(WebhookState.AWAITING_PROOF)
        header_value = request.header(PAYMENT_HEADER)
        if header_value is None:
            return self.challenge(requirements, "No x-payment header provided")

        self._enter(WebhookState.VALIDATING)
        try:
            decoded = decode_payment_header(header_value)
        except MalformedPaymentHeader as exc:
            return self.challenge(requirements, str(exc))

        problems = validate_shape(decoded)
        if problems:
            return self.challenge(
                requirements, "x-payment header is not valid: " + "; ".join(problems)
            )

        payload = PaymentPayload.from_dict(decoded)
        rules = verify_business_rules(payload, requirements)
        if not rules.valid or rules.matched_requirement is None:
            return self.challenge(
                requirements, f"x-payment header is not valid for reasons: {rules.message}"
            )
        requirement = rules.matched_requirement

        self._enter(WebhookState.VERIFYING)
        try:
            verification = self.facilitator.verify(payload, requirement)
        except UnsupportedKeyType as exc:
            return self._fatal(f"Coinbase credential error: {exc}")
        if not verification.is_valid:
            return self.challenge(
                requirements, f"x-payment verification failed: {verification.invalid_reason}"
            )

        self._enter(WebhookState.SETTLING)
        try:
            settlement = self.facilitator.settle(payload, requirement)
        except Exception:  # noqa: BLE001
            logging.exception(
                "Error in x402 webhook settlement on %s, moving on", requirement.network
            )
            return self._respond(request, PENDING_TX_HASH, requirement.network)

        if not settlement.success:
            return self.challenge(
                requirements, f"x-payment settlement failed: {settlement.error}"
            )

        logging.info(
            "Payment settled on %s. Transaction hash: %s",
            requirement.network,
            settlement.tx_hash,
        )
        return self._respond(request, settlement.tx_hash or UNKNOWN_TX_HASH, requirement.network)
