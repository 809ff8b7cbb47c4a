import json

import pytest

from conftest import EVM_ADDRESS, EVM_KEY, PAY_TO
from crossmint_x402.cli import build_parser, run_cli
from crossmint_x402.core.signing import verify_message


def _run(capsys, *argv):
    code = run_cli(["--env-file", "/nonexistent/.env", *argv])
    return code, capsys.readouterr().out


def test_derive(capsys):
    code, out = _run(capsys, "derive", "--chain-family", "evm", "--private-key", EVM_KEY)
    assert code == 0
    assert json.loads(out)["address"] == EVM_ADDRESS


def test_private_key_from_settings(capsys):
    code, out = _run(
        capsys, "--set", f"SIGNER_PRIVATE_KEY={EVM_KEY}", "derive", "--chain-family", "evm"
    )
    assert code == 0
    assert json.loads(out)["address"] == EVM_ADDRESS


def test_missing_private_key(capsys, monkeypatch):
    monkeypatch.delenv("SIGNER_PRIVATE_KEY", raising=False)
    code, out = _run(capsys, "derive", "--chain-family", "evm")
    assert code == 1
    assert out == ""


def test_sign_message(capsys):
    code, out = _run(
        capsys, "sign-message", "--chain-family", "evm", "--private-key", EVM_KEY, "--message", "hi"
    )
    assert code == 0
    assert verify_message("evm", EVM_ADDRESS, "hi", json.loads(out)["signature"])


def test_sign_transaction_from_file(capsys, tmp_path):
    tx_file = tmp_path / "tx.json"
    tx_file.write_text(
        json.dumps({"to": "0x" + "35" * 20, "nonce": 9, "gasPrice": 20 * 10**9, "value": 10**18, "chainId": 1})
    )
    code, out = _run(capsys, "sign-transaction", "--private-key", EVM_KEY, "--transaction-file", str(tx_file))
    assert code == 0
    assert json.loads(out)["v"] == 37


LEGACY_TX = {"to": "0x" + "35" * 20, "nonce": 9, "gasPrice": 20 * 10**9, "value": 10**18}


def test_sign_transaction_without_chain_id_uses_mainnet(capsys):
    code, out = _run(capsys, "sign-transaction", "--private-key", EVM_KEY, "--transaction", json.dumps(LEGACY_TX))
    assert code == 0
    assert json.loads(out)["v"] == 37


def test_sign_transaction_for_named_chain(capsys):
    code, out = _run(
        capsys,
        "sign-transaction", "--private-key", EVM_KEY, "--chain", "base",
        "--transaction", json.dumps(LEGACY_TX),
    )
    assert code == 0
    assert json.loads(out)["v"] in (8453 * 2 + 35, 8453 * 2 + 36)


@pytest.mark.parametrize("chain", ["solana", "dogechain"])
def test_sign_transaction_rejects_non_evm_chain(capsys, chain):
    code, _ = _run(
        capsys,
        "sign-transaction", "--private-key", EVM_KEY, "--chain", chain,
        "--transaction", json.dumps(LEGACY_TX),
    )
    assert code == 1


def test_sign_transaction_rejects_conflicting_chain(capsys):
    code, _ = _run(
        capsys,
        "sign-transaction", "--private-key", EVM_KEY, "--chain", "base",
        "--transaction", json.dumps(dict(LEGACY_TX, chainId=1)),
    )
    assert code == 1


def test_sign_transaction_rejects_bad_json(capsys):
    code, _ = _run(capsys, "sign-transaction", "--private-key", EVM_KEY, "--transaction", "{nope")
    assert code == 1


def test_invalid_key_exits_with_error(capsys):
    code, _ = _run(capsys, "derive", "--chain-family", "solana", "--private-key", "0OIl")
    assert code == 1


def test_requirements(capsys, cdp_secret, monkeypatch):
    def no_session():
        raise AssertionError("requirements must not open an HTTP session")

    monkeypatch.setattr("requests.Session", no_session)
    tokens = json.dumps([{"paymentToken": "base-sepolia:usdc", "payToAddress": PAY_TO, "paymentAmount": "5"}])
    code, out = _run(
        capsys,
        "--set", "CDP_API_KEY_ID=kid",
        "--set", f"CDP_API_KEY_SECRET={cdp_secret}",
        "--set", f"X402_PAYMENT_TOKENS={tokens}",
        "--set", "X402_RESOURCE_URL=https://hooks.example.com/x",
        "requirements",
    )
    assert code == 0
    body = json.loads(out)
    assert body["x402Version"] == 1
    assert body["accepts"][0]["maxAmountRequired"] == "5"


def test_chain_family_is_restricted():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["derive", "--chain-family", "bitcoin"])
