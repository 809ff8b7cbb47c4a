"""
Payment requirements advertised in the x402 challenge.

Each configured token (``"network:asset"``, pay-to address and amount in
atomic units) becomes one :class:`PaymentRequirement`. A network may appear
only once, so the facilitator step can match a payment to its requirement by
network alone.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .errors import (
    DuplicateNetworkConfig,
    InvalidPaymentAmount,
    MalformedTokenSpec,
    UnsupportedAsset,
    UnsupportedNetwork,
)

__all__ = [
    "ConfiguredToken",
    "NetworkTokens",
    "PaymentRequirement",
    "SupportedToken",
    "TokenCatalog",
    "build_payment_requirements",
    "supported_tokens",
]

DEFAULT_MAX_TIMEOUT_SECONDS = 60


@dataclass(frozen=True)
class SupportedToken:
    name: str
    address: str
    version: str
    normalized_name: str


@dataclass(frozen=True)
class NetworkTokens:
    scheme: str
    network: str
    tokens: Tuple[SupportedToken, ...]

    def find(self, asset_id: str) -> Optional[SupportedToken]:
        wanted = asset_id.strip()
        for token in self.tokens:
            if token.normalized_name == wanted.lower() or token.address == wanted:
                return token
        return None


@dataclass(frozen=True)
class TokenCatalog:
    kinds: Tuple[NetworkTokens, ...]
    aliases: Mapping[str, str] = field(default_factory=dict)

    def resolve_network(self, network: str) -> str:
        name = network.strip().lower()
        return self.aliases.get(name, name)

    def network(self, network: str) -> Optional[NetworkTokens]:
        resolved = self.resolve_network(network)
        for kind in self.kinds:
            if kind.network == resolved:
                return kind
        return None


_SOLANA_USDC = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
_SOLANA_SOL = "So11111111111111111111111111111111111111112"


def _solana_tokens(network: str) -> NetworkTokens:
    return NetworkTokens(
        scheme="exact",
        network=network,
        tokens=(
            SupportedToken("USDC", _SOLANA_USDC, "1", "usdc"),
            SupportedToken("SOL", _SOLANA_SOL, "1", "sol"),
        ),
    )


def supported_tokens(environment: Optional[str] = None) -> TokenCatalog:
    """
    Token catalog for a Crossmint environment.

    Staging pays on test networks; the short names ``solana`` and ``base`` are
    mapped onto whichever network the environment uses.
    """
    if (environment or "staging").lower() == "production":
        return TokenCatalog(
            kinds=(
                _solana_tokens("solana"),
                NetworkTokens(
                    scheme="exact",
                    network="base",
                    tokens=(
                        SupportedToken(
                            "USD Coin",
                            "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
                            "2",
                            "usdc",
                        ),
                    ),
                ),
            ),
        )
    return TokenCatalog(
        kinds=(
            _solana_tokens("solana-devnet"),
            NetworkTokens(
                scheme="exact",
                network="base-sepolia",
                tokens=(
                    SupportedToken(
                        "USDC",
                        "0x036CbD53842c5426634e7929541eC2318f3dCF7e",
                        "2",
                        "usdc",
                    ),
                ),
            ),
        ),
        aliases={"solana": "solana-devnet", "base": "base-sepolia"},
    )


@dataclass(frozen=True)
class ConfiguredToken:
    payment_token: str
    pay_to_address: str
    payment_amount: Union[int, str, Decimal]

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "ConfiguredToken":
        return cls(
            payment_token=str(values.get("paymentToken") or ""),
            pay_to_address=str(values.get("payToAddress") or ""),
            payment_amount=values.get("paymentAmount", ""),
        )


@dataclass(frozen=True)
class PaymentRequirement:
    scheme: str
    network: str
    max_amount_required: str
    resource: str
    description: str
    mime_type: str
    pay_to: str
    max_timeout_seconds: int
    asset: str
    extra: Dict[str, str]
    output_schema: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scheme": self.scheme,
            "network": self.network,
            "maxAmountRequired": self.max_amount_required,
            "resource": self.resource,
            "description": self.description,
            "mimeType": self.mime_type,
            "outputSchema": dict(self.output_schema),
            "payTo": self.pay_to,
            "maxTimeoutSeconds": self.max_timeout_seconds,
            "asset": self.asset,
            "extra": dict(self.extra),
        }


def _atomic_amount(raw: Union[int, str, Decimal], payment_token: str) -> str:
    if isinstance(raw, bool):
        raise InvalidPaymentAmount(f"paymentAmount for {payment_token} must be a number")
    try:
        amount = Decimal(str(raw).strip())
    except InvalidOperation as exc:
        raise InvalidPaymentAmount(
            f"paymentAmount for {payment_token} must be numeric, got {raw!r}"
        ) from exc
    if not amount.is_finite() or amount != amount.to_integral_value() or amount < 0:
        raise InvalidPaymentAmount(
            f"paymentAmount for {payment_token} must be a whole number of atomic units, got {raw!r}"
        )
    return str(int(amount))


def _split_token_spec(payment_token: str) -> Tuple[str, str]:
    parts = (payment_token or "").split(":")
    if len(parts) != 2 or not parts[0].strip() or not parts[1].strip():
        raise MalformedTokenSpec(
            'Misconfiguration: paymentToken must be in the form "network:contractAddress", '
            f"got {payment_token!r}"
        )
    return parts[0].strip(), parts[1].strip()


def build_payment_requirements(
    configured: Iterable[Union[ConfiguredToken, Mapping[str, Any]]],
    catalog: TokenCatalog,
    *,
    resource: str,
    description: str = "",
    mime_type: str = "application/json",
    max_timeout_seconds: int = DEFAULT_MAX_TIMEOUT_SECONDS,
) -> List[PaymentRequirement]:
    requirements: List[PaymentRequirement] = []
    seen_networks: set = set()

    for entry in configured:
        token = entry if isinstance(entry, ConfiguredToken) else ConfiguredToken.from_mapping(entry)
        network_name, asset_id = _split_token_spec(token.payment_token)

        kind = catalog.network(network_name)
        if kind is None:
            raise UnsupportedNetwork(f"Misconfiguration: network {network_name} is not supported")
        supported = kind.find(asset_id)
        if supported is None:
            raise UnsupportedAsset(
                f"Misconfiguration: token {asset_id} is not supported on {kind.network}"
            )

        if kind.network in seen_networks:
            raise DuplicateNetworkConfig(
                f"Misconfiguration: Network {kind.network} has multiple configured tokens. "
                "You may only have one payment token per network."
            )
        seen_networks.add(kind.network)

        if not token.pay_to_address.strip():
            raise MalformedTokenSpec(
                f"Misconfiguration: payToAddress is required for {token.payment_token}"
            )

        requirements.append(
            PaymentRequirement(
                scheme=kind.scheme,
                network=kind.network,
                max_amount_required=_atomic_amount(token.payment_amount, token.payment_token),
                resource=resource,
                description=description,
                mime_type=mime_type,
                pay_to=token.pay_to_address.strip(),
                max_timeout_seconds=max_timeout_seconds,
                asset=supported.address,
                extra={"name": supported.name, "version": supported.version},
            )
        )

    return requirements
