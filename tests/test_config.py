import json

import pytest

from conftest import PAY_TO
from crossmint_x402.core.config import (
    CrossmintConfig,
    WebhookConfig,
    load_crossmint_config,
    load_webhook_config,
)
from crossmint_x402.core.environment import build_settings, parse_env_file
from crossmint_x402.core.errors import ConfigError

TOKENS = [{"paymentToken": "base-sepolia:usdc", "payToAddress": PAY_TO, "paymentAmount": "10000"}]


@pytest.fixture
def base_values(cdp_secret):
    return {
        "CDP_API_KEY_ID": "kid",
        "CDP_API_KEY_SECRET": cdp_secret,
        "X402_PAYMENT_TOKENS": json.dumps(TOKENS),
        "X402_RESOURCE_URL": "https://hooks.example.com/webhook/paid",
    }


class TestEnvFile:
    def test_parses_exports_comments_and_quotes(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text(
            "# comment\n"
            "export CDP_API_KEY_ID='kid'\n"
            'X402_RESOURCE_DESCRIPTION="Paid webhook"\n'
            "\n"
            "NOT A PAIR\n"
            "CROSSMINT_ENVIRONMENT=production\n"
        )
        assert parse_env_file(env_file) == {
            "CDP_API_KEY_ID": "kid",
            "X402_RESOURCE_DESCRIPTION": "Paid webhook",
            "CROSSMINT_ENVIRONMENT": "production",
        }

    def test_missing_file_is_empty(self, tmp_path):
        assert parse_env_file(tmp_path / "absent.env") == {}

    def test_layering(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("A=file\nB=file\nC=file\n")
        settings = build_settings(
            env_file=str(env_file), base={"A": "base"}, overrides={"B": "override"}
        )
        assert settings.get("A") == "base"
        assert settings.get("B") == "override"
        assert settings.get("C") == "file"

    def test_reads_os_environ_by_default(self, monkeypatch):
        monkeypatch.setenv("CROSSMINT_X402_TEST_VALUE", "from-env")
        assert build_settings(env_file=None).get("CROSSMINT_X402_TEST_VALUE") == "from-env"

    def test_empty_values_count_as_missing(self):
        assert build_settings(env_file=None, base={"A": ""}).get("A", "default") == "default"


class TestWebhookConfig:
    def test_defaults(self, base_values):
        config = WebhookConfig.from_mapping(base_values)
        assert config.environment == "staging"
        assert config.max_timeout_seconds == 60
        assert config.facilitator_timeout == 30.0
        assert config.facilitator_host == "api.cdp.coinbase.com"
        assert config.response_body() == {"status": "ok"}
        assert config.payment_requirements()[0].network == "base-sepolia"

    def test_secret_is_not_in_repr(self, base_values, cdp_secret):
        assert cdp_secret not in repr(WebhookConfig.from_mapping(base_values))

    @pytest.mark.parametrize(
        "missing", ["CDP_API_KEY_ID", "CDP_API_KEY_SECRET", "X402_PAYMENT_TOKENS", "X402_RESOURCE_URL"]
    )
    def test_required_keys(self, base_values, missing):
        del base_values[missing]
        with pytest.raises(ConfigError, match=missing):
            WebhookConfig.from_mapping(base_values)

    @pytest.mark.parametrize("tokens", ["not json", "[]", '{"a": 1}', "[1]"])
    def test_bad_payment_tokens(self, base_values, tokens):
        base_values["X402_PAYMENT_TOKENS"] = tokens
        with pytest.raises(ConfigError, match="X402_PAYMENT_TOKENS"):
            WebhookConfig.from_mapping(base_values)

    def test_bad_environment(self, base_values):
        base_values["CROSSMINT_ENVIRONMENT"] = "mainnet"
        with pytest.raises(ConfigError, match="CROSSMINT_ENVIRONMENT"):
            WebhookConfig.from_mapping(base_values)

    @pytest.mark.parametrize("timeout", ["0", "-5", "soon"])
    def test_bad_timeout(self, base_values, timeout):
        base_values["X402_MAX_TIMEOUT_SECONDS"] = timeout
        with pytest.raises(ConfigError, match="X402_MAX_TIMEOUT_SECONDS"):
            WebhookConfig.from_mapping(base_values)

    @pytest.mark.parametrize("timeout", ["nan", "inf", "-inf", "0"])
    def test_facilitator_timeout_must_be_finite_and_positive(self, base_values, timeout):
        base_values["X402_FACILITATOR_TIMEOUT_SECONDS"] = timeout
        with pytest.raises(ConfigError, match="X402_FACILITATOR_TIMEOUT_SECONDS"):
            WebhookConfig.from_mapping(base_values)

    def test_plain_text_response_data(self, base_values):
        base_values["X402_RESPONSE_DATA"] = "thanks"
        assert WebhookConfig.from_mapping(base_values).response_body() == "thanks"

    def test_keyword_overrides(self, cdp_secret):
        config = load_webhook_config(
            env_file=None,
            base={},
            cdp_api_key_id="kid",
            cdp_api_key_secret=cdp_secret,
            payment_tokens=TOKENS,
            resource_url="https://hooks.example.com/x",
            environment="production",
            max_timeout_seconds=90,
        )
        assert config.environment == "production"
        assert config.max_timeout_seconds == 90
        assert config.payment_tokens[0].payment_token == "base-sepolia:usdc"

    def test_from_env_file(self, tmp_path, base_values):
        env_file = tmp_path / ".env"
        env_file.write_text("".join(f"{key}='{value}'\n" for key, value in base_values.items()))
        config = WebhookConfig.from_env(env_file=str(env_file), base={})
        assert config.credentials.key_id == "kid"


class TestCrossmintConfig:
    def test_base_urls(self):
        assert CrossmintConfig("key").base_url == "https://staging.crossmint.com/api"
        assert CrossmintConfig("key", "production").base_url == "https://www.crossmint.com/api"

    def test_requires_api_key(self):
        with pytest.raises(ConfigError, match="CROSSMINT_API_KEY"):
            load_crossmint_config(env_file=None, base={})

    def test_api_key_is_redacted(self):
        config = load_crossmint_config(env_file=None, base={}, api_key="sk_secret")
        assert "sk_secret" not in repr(config)
