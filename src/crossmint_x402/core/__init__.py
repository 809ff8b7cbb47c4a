"""
Core primitives: keys and signing, transaction encoding, x402 payment
requirements and validation, the facilitator client and the webhook flow.
"""

from .auth import build_auth_token, load_cdp_signing_key
from .chains import CHAINS, ChainDefinition, ChainFamily, evm_chain_id, get_chain
from .client import FacilitatorClient, SettlementResult, VerifyResult
from .config import (
    CdpCredentials,
    CrossmintConfig,
    WebhookConfig,
    load_crossmint_config,
    load_webhook_config,
)
from .environment import Settings, build_settings, parse_env_file
from .errors import (
    ConfigError,
    CrossmintApiError,
    FacilitatorError,
    InvalidKeyFormat,
    InvalidKeyLength,
    MalformedMessage,
    MalformedPaymentHeader,
    PaymentConfigError,
    UnsupportedChainFamily,
    UnsupportedKeyType,
    UnsupportedNetwork,
    X402Error,
)
from .keys import KeyPair, derive_key_pair
from .locators import build_owner_locator, build_recipient_locator, build_wallet_locator
from .requirements import PaymentRequirement, build_payment_requirements, supported_tokens
from .signing import EvmSignature, resolve_evm_message, sign_message, verify_message
from .transactions import (
    SignedTransaction,
    TransactionType,
    UnsignedTransaction,
    recover_sender,
    sign_transaction,
)
from .validation import (
    PaymentPayload,
    decode_payment_header,
    validate_shape,
    verify_business_rules,
)
from .wallets import CrossmintClient
from .webhook import (
    WebhookOrchestrator,
    WebhookRequest,
    WebhookResponse,
    WebhookState,
    challenge_body,
)

__all__ = [
    "CHAINS",
    "CdpCredentials",
    "ChainDefinition",
    "ChainFamily",
    "ConfigError",
    "CrossmintApiError",
    "CrossmintClient",
    "CrossmintConfig",
    "EvmSignature",
    "FacilitatorClient",
    "FacilitatorError",
    "InvalidKeyFormat",
    "InvalidKeyLength",
    "KeyPair",
    "MalformedMessage",
    "MalformedPaymentHeader",
    "PaymentConfigError",
    "PaymentPayload",
    "PaymentRequirement",
    "Settings",
    "SettlementResult",
    "SignedTransaction",
    "TransactionType",
    "UnsignedTransaction",
    "UnsupportedChainFamily",
    "UnsupportedKeyType",
    "UnsupportedNetwork",
    "VerifyResult",
    "WebhookConfig",
    "WebhookOrchestrator",
    "WebhookRequest",
    "WebhookResponse",
    "WebhookState",
    "X402Error",
    "build_auth_token",
    "build_owner_locator",
    "build_payment_requirements",
    "build_recipient_locator",
    "build_settings",
    "build_wallet_locator",
    "challenge_body",
    "decode_payment_header",
    "derive_key_pair",
    "evm_chain_id",
    "get_chain",
    "load_cdp_signing_key",
    "load_crossmint_config",
    "load_webhook_config",
    "parse_env_file",
    "recover_sender",
    "resolve_evm_message",
    "sign_message",
    "sign_transaction",
    "supported_tokens",
    "validate_shape",
    "verify_business_rules",
    "verify_message",
]
