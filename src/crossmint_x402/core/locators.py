"""
Locator strings understood by the Crossmint wallets API.
"""

from __future__ import annotations

from typing import Optional

from .errors import ConfigError

__all__ = [
    "LOCATOR_MODES",
    "build_owner_locator",
    "build_recipient_locator",
    "build_wallet_locator",
]

LOCATOR_MODES = ("address", "email", "userId", "phoneNumber", "twitter", "x")


def _require_value(value: Optional[str], label: str) -> str:
    if value is None or not value.strip():
        raise ConfigError(f"{label} is required")
    return value.strip()


def _require_mode(mode: str, label: str) -> None:
    if mode not in LOCATOR_MODES:
        raise ConfigError(f"Unsupported {label} mode: {mode}")


def build_wallet_locator(mode: str, value: str, chain_type: Optional[str] = None) -> str:
    """
    ``address`` locators are passed through; the others become
    ``mode:value:chainType:smart`` and need a chain type.
    """
    value = _require_value(value, "Wallet identifier")
    _require_mode(mode, "locator")
    if mode == "address":
        return value
    if chain_type is None or not str(chain_type).strip():
        raise ConfigError("Chain type is required for non-address wallet locators")
    return f"{mode}:{value}:{str(chain_type).strip()}:smart"


def build_recipient_locator(mode: str, value: str, chain: Optional[str] = None) -> str:
    value = _require_value(value, "Recipient wallet value")
    _require_mode(mode, "recipient wallet")
    if mode == "address":
        return value
    if chain is None or not chain.strip():
        raise ConfigError("Chain is required for non-address recipient locators")
    return f"{mode}:{value}:{chain.strip()}"


def build_owner_locator(mode: str, value: str) -> str:
    value = _require_value(value, "Owner value")
    if mode == "address" or mode not in LOCATOR_MODES:
        raise ConfigError(f"Unsupported owner mode: {mode}")
    return f"{mode}:{value}"
