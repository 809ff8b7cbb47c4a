"""
Configuration objects for the paid webhook and the Crossmint wallet client.

Both are immutable and are built once (per workflow activation) from a
:class:`~crossmint_x402.core.environment.Settings` mapping, then passed
explicitly to the components that need them.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .environment import build_settings
from .errors import ConfigError
from .requirements import (
    DEFAULT_MAX_TIMEOUT_SECONDS,
    ConfiguredToken,
    PaymentRequirement,
    TokenCatalog,
    build_payment_requirements,
    supported_tokens,
)

__all__ = [
    "CdpCredentials",
    "ConfigError",
    "CrossmintConfig",
    "WebhookConfig",
    "load_crossmint_config",
    "load_webhook_config",
]

ENVIRONMENTS = ("staging", "production")

CROSSMINT_BASE_URLS = {
    "production": "https://www.crossmint.com/api",
    "staging": "https://staging.crossmint.com/api",
}
WALLETS_API_VERSION = "2025-06-09"

_PARAMETER_TO_ENV_KEY = {
    "cdp_api_key_id": "CDP_API_KEY_ID",
    "cdp_api_key_secret": "CDP_API_KEY_SECRET",
    "environment": "CROSSMINT_ENVIRONMENT",
    "payment_tokens": "X402_PAYMENT_TOKENS",
    "resource_url": "X402_RESOURCE_URL",
    "description": "X402_RESOURCE_DESCRIPTION",
    "mime_type": "X402_MIME_TYPE",
    "response_data": "X402_RESPONSE_DATA",
    "max_timeout_seconds": "X402_MAX_TIMEOUT_SECONDS",
    "facilitator_timeout": "X402_FACILITATOR_TIMEOUT_SECONDS",
    "facilitator_host": "CDP_FACILITATOR_HOST",
    "api_key": "CROSSMINT_API_KEY",
}


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(value)
    return str(value)


def _collect_overrides(
    overrides: Optional[Mapping[str, str]],
    explicit: Mapping[str, Any],
) -> Dict[str, str]:
    merged: Dict[str, str] = dict(overrides or {})
    for key, value in explicit.items():
        if value is None:
            continue
        merged[_PARAMETER_TO_ENV_KEY[key]] = _stringify(value)
    return merged


def _required(values: Mapping[str, str], key: str) -> str:
    value = (values.get(key) or "").strip()
    if not value:
        raise ConfigError(f"{key} must be provided")
    return value


def _positive_number(values: Mapping[str, str], key: str, default: str, cast: type) -> Any:
    raw = values.get(key) or default
    try:
        number = cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be a number, got '{raw}'") from exc
    if not math.isfinite(number):
        raise ConfigError(f"{key} must be a finite number, got '{raw}'")
    if number <= 0:
        raise ConfigError(f"{key} must be greater than zero")
    return number


def _environment(values: Mapping[str, str]) -> str:
    environment = (values.get("CROSSMINT_ENVIRONMENT") or "staging").strip().lower()
    if environment not in ENVIRONMENTS:
        raise ConfigError(
            f"CROSSMINT_ENVIRONMENT must be one of {', '.join(ENVIRONMENTS)}, got '{environment}'"
        )
    return environment


def _parse_payment_tokens(raw: str) -> Tuple[ConfiguredToken, ...]:
    try:
        entries = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"X402_PAYMENT_TOKENS must be a JSON list: {exc}") from exc
    if not isinstance(entries, list) or not entries:
        raise ConfigError("X402_PAYMENT_TOKENS must be a non-empty JSON list")
    tokens: List[ConfiguredToken] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ConfigError(f"X402_PAYMENT_TOKENS[{index}] must be an object")
        tokens.append(ConfiguredToken.from_mapping(entry))
    return tuple(tokens)


@dataclass(frozen=True)
class CdpCredentials:
    key_id: str
    key_secret: str

    def __repr__(self) -> str:
        return f"CdpCredentials(key_id={self.key_id!r}, key_secret=<redacted>)"


@dataclass(frozen=True)
class WebhookConfig:
    credentials: CdpCredentials
    payment_tokens: Tuple[ConfiguredToken, ...]
    resource_url: str
    environment: str = "staging"
    description: str = ""
    mime_type: str = "application/json"
    response_data: str = '{"status":"ok"}'
    max_timeout_seconds: int = DEFAULT_MAX_TIMEOUT_SECONDS
    facilitator_host: str = "api.cdp.coinbase.com"
    facilitator_timeout: float = 30.0

    def response_body(self) -> Any:
        """The configured response data, decoded when it is JSON."""
        try:
            return json.loads(self.response_data)
        except json.JSONDecodeError:
            return self.response_data

    def token_catalog(self) -> TokenCatalog:
        return supported_tokens(self.environment)

    def payment_requirements(self) -> List[PaymentRequirement]:
        """
        Build the requirement list; raises a ``PaymentConfigError`` subclass
        when the configured tokens are inconsistent.
        """
        return build_payment_requirements(
            self.payment_tokens,
            self.token_catalog(),
            resource=self.resource_url,
            description=self.description,
            mime_type=self.mime_type,
            max_timeout_seconds=self.max_timeout_seconds,
        )

    @classmethod
    def from_mapping(cls, values: Mapping[str, str]) -> "WebhookConfig":
        credentials = CdpCredentials(
            key_id=_required(values, "CDP_API_KEY_ID"),
            key_secret=_required(values, "CDP_API_KEY_SECRET"),
        )
        return cls(
            credentials=credentials,
            payment_tokens=_parse_payment_tokens(_required(values, "X402_PAYMENT_TOKENS")),
            resource_url=_required(values, "X402_RESOURCE_URL"),
            environment=_environment(values),
            description=values.get("X402_RESOURCE_DESCRIPTION") or "",
            mime_type=values.get("X402_MIME_TYPE") or "application/json",
            response_data=values.get("X402_RESPONSE_DATA") or '{"status":"ok"}',
            max_timeout_seconds=_positive_number(
                values, "X402_MAX_TIMEOUT_SECONDS", str(DEFAULT_MAX_TIMEOUT_SECONDS), int
            ),
            facilitator_host=values.get("CDP_FACILITATOR_HOST") or "api.cdp.coinbase.com",
            facilitator_timeout=_positive_number(
                values, "X402_FACILITATOR_TIMEOUT_SECONDS", "30", float
            ),
        )

    @classmethod
    def from_env(
        cls,
        *,
        env_file: Optional[str] = ".env",
        overrides: Optional[Mapping[str, str]] = None,
        base: Optional[Mapping[str, str]] = None,
        cdp_api_key_id: Optional[str] = None,
        cdp_api_key_secret: Optional[str] = None,
        environment: Optional[str] = None,
        payment_tokens: Optional[Sequence[Mapping[str, Any]]] = None,
        resource_url: Optional[str] = None,
        description: Optional[str] = None,
        mime_type: Optional[str] = None,
        response_data: Optional[str] = None,
        max_timeout_seconds: Optional[int] = None,
        facilitator_timeout: Optional[float] = None,
        facilitator_host: Optional[str] = None,
    ) -> "WebhookConfig":
        merged = _collect_overrides(
            overrides,
            {
                "cdp_api_key_id": cdp_api_key_id,
                "cdp_api_key_secret": cdp_api_key_secret,
                "environment": environment,
                "payment_tokens": payment_tokens,
                "resource_url": resource_url,
                "description": description,
                "mime_type": mime_type,
                "response_data": response_data,
                "max_timeout_seconds": max_timeout_seconds,
                "facilitator_timeout": facilitator_timeout,
                "facilitator_host": facilitator_host,
            },
        )
        settings = build_settings(env_file=env_file, base=base, overrides=merged)
        return cls.from_mapping(settings.variables)


@dataclass(frozen=True)
class CrossmintConfig:
    api_key: str
    environment: str = "staging"
    timeout: float = 30.0

    def __repr__(self) -> str:
        return f"CrossmintConfig(api_key=<redacted>, environment={self.environment!r})"

    @property
    def base_url(self) -> str:
        return CROSSMINT_BASE_URLS[self.environment]

    @classmethod
    def from_mapping(cls, values: Mapping[str, str]) -> "CrossmintConfig":
        return cls(
            api_key=_required(values, "CROSSMINT_API_KEY"),
            environment=_environment(values),
        )


def load_webhook_config(**kwargs: Any) -> WebhookConfig:
    """Keyword-for-keyword wrapper around :meth:`WebhookConfig.from_env`."""
    return WebhookConfig.from_env(**kwargs)


def load_crossmint_config(
    *,
    env_file: Optional[str] = ".env",
    overrides: Optional[Mapping[str, str]] = None,
    base: Optional[Mapping[str, str]] = None,
    api_key: Optional[str] = None,
    environment: Optional[str] = None,
) -> CrossmintConfig:
    merged = _collect_overrides(overrides, {"api_key": api_key, "environment": environment})
    settings = build_settings(env_file=env_file, base=base, overrides=merged)
    return CrossmintConfig.from_mapping(settings.variables)
