"""
Public facade for the Crossmint x402 toolkit.

The most useful pieces are re-exported here so integrators can
``from crossmint_x402 import ...`` without navigating the package.
"""

from .api import (
    create_facilitator_client,
    create_orchestrator,
    create_wallet_client,
    derive,
    handle_webhook,
    sign,
    sign_evm_transaction,
    verify,
)
from .core import (
    ChainFamily,
    ConfigError,
    CrossmintApiError,
    CrossmintClient,
    CrossmintConfig,
    FacilitatorClient,
    FacilitatorError,
    KeyPair,
    PaymentRequirement,
    SettlementResult,
    SignedTransaction,
    UnsignedTransaction,
    VerifyResult,
    WebhookConfig,
    WebhookOrchestrator,
    WebhookRequest,
    WebhookResponse,
    X402Error,
    build_recipient_locator,
    build_wallet_locator,
    derive_key_pair,
    load_crossmint_config,
    load_webhook_config,
    sign_message,
    sign_transaction,
    verify_message,
)

__all__ = (
    "ChainFamily",
    "ConfigError",
    "CrossmintApiError",
    "CrossmintClient",
    "CrossmintConfig",
    "FacilitatorClient",
    "FacilitatorError",
    "KeyPair",
    "PaymentRequirement",
    "SettlementResult",
    "SignedTransaction",
    "UnsignedTransaction",
    "VerifyResult",
    "WebhookConfig",
    "WebhookOrchestrator",
    "WebhookRequest",
    "WebhookResponse",
    "X402Error",
    "build_recipient_locator",
    "build_wallet_locator",
    "create_facilitator_client",
    "create_orchestrator",
    "create_wallet_client",
    "derive",
    "derive_key_pair",
    "handle_webhook",
    "load_crossmint_config",
    "load_webhook_config",
    "sign",
    "sign_evm_transaction",
    "sign_message",
    "sign_transaction",
    "verify",
    "verify_message",
)
