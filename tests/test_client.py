import jwt
import pytest
import requests

from conftest import FakeResponse, FakeSession, make_payment
from crossmint_x402.core.client import FacilitatorClient, SettlementResult, build_facilitator_body
from crossmint_x402.core.errors import FacilitatorError
from crossmint_x402.core.validation import PaymentPayload


@pytest.fixture
def payload():
    return PaymentPayload.from_dict(make_payment())


@pytest.fixture
def requirement(webhook_config):
    return webhook_config.payment_requirements()[0]


def _client(webhook_config, session):
    return FacilitatorClient(webhook_config.credentials, timeout=5.0, session=session)


def test_verify_posts_signed_request(webhook_config, payload, requirement, cdp_private_key):
    session = FakeSession(FakeResponse(200, {"isValid": True, "payer": "0xpayer"}))

    result = _client(webhook_config, session).verify(payload, requirement)

    assert result.is_valid
    assert result.payer == "0xpayer"
    [call] = session.calls
    assert call["url"] == "https://api.cdp.coinbase.com/platform/v2/x402/verify"
    assert call["timeout"] == 5.0
    assert call["json"] == build_facilitator_body(payload, requirement)
    assert call["json"]["x402Version"] == "1"
    assert call["json"]["paymentRequirements"]["network"] == "base-sepolia"

    token = call["headers"]["Authorization"].split(" ", 1)[1]
    claims = jwt.decode(token, cdp_private_key.public_key(), algorithms=["EdDSA"])
    assert claims["uri"] == "POST api.cdp.coinbase.com/platform/v2/x402/verify"


def test_settle_uses_its_own_token(webhook_config, payload, requirement):
    session = FakeSession(
        FakeResponse(200, {"isValid": True}),
        FakeResponse(200, {"success": True, "transaction": "0xabc", "network": "base-sepolia"}),
    )
    client = _client(webhook_config, session)

    client.verify(payload, requirement)
    settlement = client.settle(payload, requirement)

    assert settlement.success
    assert settlement.tx_hash == "0xabc"
    assert session.calls[1]["url"].endswith("/platform/v2/x402/settle")
    assert session.calls[0]["headers"]["Authorization"] != session.calls[1]["headers"]["Authorization"]


def test_non_2xx_raises_with_status_and_body(webhook_config, payload, requirement):
    session = FakeSession(FakeResponse(401, {"error": "unauthorized"}))
    with pytest.raises(FacilitatorError) as excinfo:
        _client(webhook_config, session).verify(payload, requirement)
    assert excinfo.value.status_code == 401
    assert "unauthorized" in excinfo.value.body


def test_transport_failure_has_no_status(webhook_config, payload, requirement):
    session = FakeSession(requests.ConnectionError("connection refused"))
    with pytest.raises(FacilitatorError) as excinfo:
        _client(webhook_config, session).verify(payload, requirement)
    assert excinfo.value.status_code is None


def test_invalid_json_raises(webhook_config, payload, requirement):
    session = FakeSession(FakeResponse(200, None, text="<html>"))
    with pytest.raises(FacilitatorError):
        _client(webhook_config, session).verify(payload, requirement)


class TestSettlementParsing:
    def test_transaction_object(self):
        result = SettlementResult.from_response({"success": True, "transaction": {"hash": "0x1"}})
        assert result.tx_hash == "0x1"

    def test_error_reason(self):
        result = SettlementResult.from_response({"success": False, "errorReason": "insufficient_funds"})
        assert not result.success
        assert result.error == "insufficient_funds"
