import base64
import json
import logging

import pytest
import requests

from conftest import FakeResponse, FakeSession, PAY_TO, StubFacilitator, encode_header, make_payment
from crossmint_x402.core.client import FacilitatorClient, SettlementResult, VerifyResult
from crossmint_x402.core.config import CdpCredentials, WebhookConfig
from crossmint_x402.core.errors import FacilitatorError
from crossmint_x402.core.requirements import ConfiguredToken
from crossmint_x402.core.webhook import WebhookOrchestrator, WebhookRequest, WebhookState


def _request(header=None, **kwargs):
    headers = {"content-type": "application/json"}
    if header is not None:
        headers["X-PAYMENT"] = header
    return WebhookRequest(headers=headers, **kwargs)


def _receipt(response):
    return json.loads(base64.b64decode(response.headers["X-PAYMENT-RESPONSE"]))


def test_missing_header_gets_challenge(webhook_config):
    facilitator = StubFacilitator()
    response = WebhookOrchestrator(webhook_config, facilitator).handle(_request())

    assert response.status_code == 402
    assert response.state is WebhookState.CHALLENGE
    assert response.body["x402Version"] == 1
    assert response.body["error"] == "No x-payment header provided"
    [accept] = response.body["accepts"]
    assert accept["payTo"] == PAY_TO
    assert accept["maxAmountRequired"] == "10000"
    assert facilitator.calls == []


def test_paid_request_settles_and_returns_receipt(webhook_config):
    facilitator = StubFacilitator()
    request = _request(encode_header(make_payment()), query={"q": "1"}, body={"hello": "world"})

    response = WebhookOrchestrator(webhook_config, facilitator).handle(request)

    assert response.status_code == 200
    assert response.state is WebhookState.RESPONDING
    assert response.body == {"status": "ok"}
    assert _receipt(response) == {"success": True, "txHash": "0xsettled", "networkId": "base-sepolia"}
    assert response.workflow_data["txHash"] == "0xsettled"
    assert response.workflow_data["query"] == {"q": "1"}
    assert response.workflow_data["body"] == {"hello": "world"}
    assert facilitator.calls == ["verify", "settle"]


def test_undecodable_header(webhook_config):
    response = WebhookOrchestrator(webhook_config, StubFacilitator()).handle(_request("%%%"))
    assert response.status_code == 402
    assert "not valid base64" in response.body["error"]


def test_shape_problems_are_reported(webhook_config):
    payment = make_payment()
    del payment["payload"]["signature"]
    response = WebhookOrchestrator(webhook_config, StubFacilitator()).handle(
        _request(encode_header(payment))
    )
    assert response.status_code == 402
    assert response.body["error"] == "x-payment header is not valid: Missing field: payload.signature"


def test_business_rule_failures_skip_the_facilitator(webhook_config):
    facilitator = StubFacilitator()
    response = WebhookOrchestrator(webhook_config, facilitator).handle(
        _request(encode_header(make_payment(value="1")))
    )
    assert response.status_code == 402
    assert response.body["error"] == (
        "x-payment header is not valid for reasons: Value too low: got 1, requires at least 10000"
    )
    assert facilitator.calls == []


def test_rejected_by_facilitator(webhook_config):
    facilitator = StubFacilitator(verify=VerifyResult(False, "invalid_signature", None, {}))
    response = WebhookOrchestrator(webhook_config, facilitator).handle(
        _request(encode_header(make_payment()))
    )
    assert response.status_code == 402
    assert response.body["error"] == "x-payment verification failed: invalid_signature"
    assert facilitator.calls == ["verify"]


def test_verify_transport_failure_propagates(webhook_config):
    facilitator = StubFacilitator(verify=FacilitatorError("timed out"))
    with pytest.raises(FacilitatorError):
        WebhookOrchestrator(webhook_config, facilitator).handle(_request(encode_header(make_payment())))


def test_settle_failure_is_a_challenge(webhook_config):
    facilitator = StubFacilitator(settle=SettlementResult(False, None, None, "insufficient_funds", {}))
    response = WebhookOrchestrator(webhook_config, facilitator).handle(
        _request(encode_header(make_payment()))
    )
    assert response.status_code == 402
    assert response.body["error"] == "x-payment settlement failed: insufficient_funds"


def test_settle_exception_completes_with_placeholder(webhook_config, caplog):
    facilitator = StubFacilitator(settle=FacilitatorError("gateway timeout", status_code=504))

    with caplog.at_level(logging.ERROR):
        response = WebhookOrchestrator(webhook_config, facilitator).handle(
            _request(encode_header(make_payment()))
        )

    assert response.status_code == 200
    assert _receipt(response)["txHash"] == "TBD"
    assert response.workflow_data["txHash"] == "TBD"
    assert any(record.exc_info for record in caplog.records)


def test_misconfiguration_is_fatal(webhook_config):
    config = WebhookConfig(
        credentials=webhook_config.credentials,
        payment_tokens=(
            ConfiguredToken("base-sepolia:usdc", PAY_TO, "1"),
            ConfiguredToken("base:usdc", PAY_TO, "2"),
        ),
        resource_url=webhook_config.resource_url,
    )
    response = WebhookOrchestrator(config, StubFacilitator()).handle(_request())
    assert response.status_code == 500
    assert response.state is WebhookState.FATAL
    assert response.body["error"]["errorMessage"].startswith("Misconfiguration:")


def test_bad_credentials_are_fatal(webhook_config):
    config = WebhookConfig(
        credentials=CdpCredentials(key_id="kid", key_secret="not a key"),
        payment_tokens=webhook_config.payment_tokens,
        resource_url=webhook_config.resource_url,
    )
    session = FakeSession()
    orchestrator = WebhookOrchestrator(config, FacilitatorClient(config.credentials, session=session))

    response = orchestrator.handle(_request(encode_header(make_payment())))

    assert response.status_code == 500
    assert response.body["error"]["errorMessage"].startswith("Coinbase credential error:")
    assert session.calls == []


def test_end_to_end_with_http_client(webhook_config):
    session = FakeSession(
        FakeResponse(200, {"isValid": True, "payer": "0xpayer"}),
        FakeResponse(200, {"success": True, "transaction": {"hash": "0xfeed"}, "network": "base-sepolia"}),
    )
    orchestrator = WebhookOrchestrator(
        webhook_config, FacilitatorClient(webhook_config.credentials, session=session)
    )

    response = orchestrator.handle(_request(encode_header(make_payment())))

    assert response.status_code == 200
    assert _receipt(response)["txHash"] == "0xfeed"
    assert [call["url"].rsplit("/", 1)[1] for call in session.calls] == ["verify", "settle"]


def test_settle_transport_failure_with_http_client(webhook_config):
    session = FakeSession(
        FakeResponse(200, {"isValid": True}),
        requests.Timeout("read timed out"),
    )
    orchestrator = WebhookOrchestrator(
        webhook_config, FacilitatorClient(webhook_config.credentials, session=session)
    )

    response = orchestrator.handle(_request(encode_header(make_payment())))

    assert response.status_code == 200
    assert _receipt(response)["txHash"] == "TBD"
