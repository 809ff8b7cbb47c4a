import base64
import json
import time
from typing import Any, Dict, List, Optional

import base58
import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, NoEncryption, PrivateFormat

from crossmint_x402.core.client import SettlementResult, VerifyResult
from crossmint_x402.core.config import CdpCredentials, WebhookConfig
from crossmint_x402.core.requirements import ConfiguredToken

# Private key from the EIP-155 worked example.
EVM_KEY = "0x" + "46" * 32
EVM_ADDRESS = "0x9d8A62f656a8d1615C1294fd71e9CFb3E4855A4F"
PAY_TO = "0x209693Bc6afc0C5328bA36FaF03C514EF312287C"
BASE_SEPOLIA_USDC = "0x036CbD53842c5426634e7929541eC2318f3dCF7e"


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: Optional[str] = None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload


class FakeSession:
    """Records calls and replays queued responses (or raises queued exceptions)."""

    def __init__(self, *responses: Any):
        self.responses: List[Any] = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def _next(self) -> FakeResponse:
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"method": "POST", "url": url, "json": json, "headers": headers, "timeout": timeout})
        return self._next()

    def request(self, method, url, json=None, headers=None, timeout=None):
        self.calls.append({"method": method, "url": url, "json": json, "headers": headers, "timeout": timeout})
        return self._next()


class StubFacilitator:
    def __init__(self, verify=None, settle=None):
        self.verify_result = verify or VerifyResult(True, None, EVM_ADDRESS, {"isValid": True})
        self.settle_result = settle or SettlementResult(
            True, "0xsettled", "base-sepolia", None, {"success": True}
        )
        self.calls: List[str] = []

    def verify(self, payload, requirement):
        self.calls.append("verify")
        if isinstance(self.verify_result, Exception):
            raise self.verify_result
        return self.verify_result

    def settle(self, payload, requirement):
        self.calls.append("settle")
        if isinstance(self.settle_result, Exception):
            raise self.settle_result
        return self.settle_result


@pytest.fixture
def ed25519_seed() -> bytes:
    return bytes(range(32))


@pytest.fixture
def solana_key(ed25519_seed) -> str:
    return base58.b58encode(ed25519_seed).decode("ascii")


@pytest.fixture
def cdp_secret(ed25519_seed) -> str:
    return base64.b64encode(ed25519_seed).decode("ascii")


@pytest.fixture
def cdp_private_key(ed25519_seed) -> Ed25519PrivateKey:
    return Ed25519PrivateKey.from_private_bytes(ed25519_seed)


@pytest.fixture
def cdp_pem_secret() -> str:
    from cryptography.hazmat.primitives.asymmetric import ec

    key = ec.generate_private_key(ec.SECP256R1())
    return key.private_bytes(Encoding.PEM, PrivateFormat.PKCS8, NoEncryption()).decode("ascii")


@pytest.fixture
def webhook_config(cdp_secret) -> WebhookConfig:
    return WebhookConfig(
        credentials=CdpCredentials(key_id="organizations/test/apiKeys/key", key_secret=cdp_secret),
        payment_tokens=(
            ConfiguredToken("base-sepolia:usdc", PAY_TO, "10000"),
        ),
        resource_url="https://hooks.example.com/webhook/paid",
        description="Paid webhook",
    )


def make_payment(
    *,
    network: str = "base-sepolia",
    to: str = PAY_TO,
    value: str = "10000",
    valid_after: Optional[str] = None,
    valid_before: Optional[str] = None,
) -> Dict[str, Any]:
    now = int(time.time())
    return {
        "x402Version": 1,
        "scheme": "exact",
        "network": network,
        "payload": {
            "signature": "0x" + "ab" * 65,
            "authorization": {
                "from": EVM_ADDRESS,
                "to": to,
                "value": value,
                "validAfter": valid_after if valid_after is not None else str(now - 60),
                "validBefore": valid_before if valid_before is not None else str(now + 600),
                "nonce": "0x" + "01" * 32,
            },
        },
    }


def encode_header(payment: Any) -> str:
    return base64.b64encode(json.dumps(payment).encode("utf-8")).decode("ascii")
