"""
Public, high-level helpers for the paid webhook and the wallet tooling.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, Mapping, Optional, Union

import requests

from .core.chains import ChainFamily, evm_chain_id
from .core.client import FacilitatorClient, SettlementResult, VerifyResult
from .core.config import (
    ConfigError,
    CrossmintConfig,
    WebhookConfig,
    load_crossmint_config,
    load_webhook_config,
)
from .core.keys import KeyPair, derive_key_pair
from .core.signing import MessageInput, sign_message, verify_message
from .core.transactions import SignedTransaction, UnsignedTransaction, sign_transaction
from .core.wallets import CrossmintClient
from .core.webhook import WebhookOrchestrator, WebhookRequest, WebhookResponse

__all__ = [
    "ConfigError",
    "CrossmintClient",
    "CrossmintConfig",
    "FacilitatorClient",
    "SettlementResult",
    "VerifyResult",
    "WebhookConfig",
    "WebhookOrchestrator",
    "WebhookResponse",
    "create_facilitator_client",
    "create_orchestrator",
    "create_wallet_client",
    "derive",
    "handle_webhook",
    "load_crossmint_config",
    "load_webhook_config",
    "sign",
    "sign_evm_transaction",
    "verify",
]


def _resolve_webhook_config(
    config: Optional[WebhookConfig],
    env_file: Optional[str],
    overrides: Optional[Mapping[str, str]],
    base: Optional[Mapping[str, str]],
) -> WebhookConfig:
    if config is not None:
        if overrides or base is not None:
            raise ValueError(
                "Provide either a pre-built WebhookConfig or environment overrides, not both."
            )
        return config
    return load_webhook_config(env_file=env_file, overrides=overrides, base=base)


def create_facilitator_client(
    *,
    config: Optional[WebhookConfig] = None,
    session: Optional[requests.Session] = None,
    env_file: Optional[str] = ".env",
    overrides: Optional[Mapping[str, str]] = None,
    base: Optional[Mapping[str, str]] = None,
) -> FacilitatorClient:
    cfg = _resolve_webhook_config(config, env_file, overrides, base)
    return FacilitatorClient(
        cfg.credentials,
        host=cfg.facilitator_host,
        timeout=cfg.facilitator_timeout,
        session=session,
    )


def create_orchestrator(
    *,
    config: Optional[WebhookConfig] = None,
    session: Optional[requests.Session] = None,
    env_file: Optional[str] = ".env",
    overrides: Optional[Mapping[str, str]] = None,
    base: Optional[Mapping[str, str]] = None,
) -> WebhookOrchestrator:
    """
    Construct a :class:`WebhookOrchestrator` backed by the CDP facilitator.

    Callers can either supply a ready-made :class:`WebhookConfig` or let the
    helper assemble one from environment data.
    """
    cfg = _resolve_webhook_config(config, env_file, overrides, base)
    facilitator = create_facilitator_client(config=cfg, session=session)
    return WebhookOrchestrator(cfg, facilitator)


def handle_webhook(
    config: WebhookConfig,
    *,
    method: str = "POST",
    headers: Optional[Mapping[str, str]] = None,
    query: Optional[Mapping[str, Any]] = None,
    body: Any = None,
    session: Optional[requests.Session] = None,
) -> WebhookResponse:
    """One-shot convenience wrapper around :meth:`WebhookOrchestrator.handle`."""
    orchestrator = create_orchestrator(config=config, session=session)
    request = WebhookRequest(
        method=method,
        headers=dict(headers or {}),
        query=dict(query or {}),
        body=body,
    )
    return orchestrator.handle(request)


def create_wallet_client(
    *,
    config: Optional[CrossmintConfig] = None,
    session: Optional[requests.Session] = None,
    env_file: Optional[str] = ".env",
    overrides: Optional[Mapping[str, str]] = None,
    base: Optional[Mapping[str, str]] = None,
    api_key: Optional[str] = None,
    environment: Optional[str] = None,
) -> CrossmintClient:
    if config is not None:
        if any(item is not None for item in (overrides, base, api_key, environment)):
            raise ValueError(
                "Provide either a pre-built CrossmintConfig or individual parameters, not both."
            )
        cfg = config
    else:
        cfg = load_crossmint_config(
            env_file=env_file,
            overrides=overrides,
            base=base,
            api_key=api_key,
            environment=environment,
        )
    return CrossmintClient(cfg, session=session)


def derive(private_key: str, chain_family: Union[ChainFamily, str]) -> KeyPair:
    return derive_key_pair(private_key, chain_family)


def sign(
    private_key: str,
    chain_family: Union[ChainFamily, str],
    message: MessageInput,
    *,
    encoding: str = "base58",
) -> str:
    return sign_message(chain_family, private_key, message, encoding=encoding)


def verify(
    signer: str,
    chain_family: Union[ChainFamily, str],
    message: MessageInput,
    signature: str,
    *,
    encoding: str = "base58",
) -> bool:
    return verify_message(chain_family, signer, message, signature, encoding=encoding)


def sign_evm_transaction(
    private_key: str,
    transaction: Union[UnsignedTransaction, Dict[str, Any]],
    *,
    chain: Optional[str] = None,
) -> SignedTransaction:
    """
    Accepts an :class:`UnsignedTransaction` or its camelCase dict form.

    ``chain`` names a catalog chain (``base``, ``polygon-amoy``...) whose
    EIP-155 id fills in ``chainId``; a conflicting explicit id is an error.
    """
    if chain is not None:
        chain_id = evm_chain_id(chain)
        if isinstance(transaction, UnsignedTransaction):
            transaction = replace(transaction, chain_id=chain_id)
        else:
            given = transaction.get("chainId")
            if given is not None and UnsignedTransaction.from_dict(transaction).chain_id != chain_id:
                raise ConfigError(
                    f"Transaction chainId {given} does not match chain '{chain}' ({chain_id})"
                )
            transaction = dict(transaction, chainId=chain_id)
    if not isinstance(transaction, UnsignedTransaction):
        transaction = UnsignedTransaction.from_dict(transaction)
    return sign_transaction(transaction, private_key)
