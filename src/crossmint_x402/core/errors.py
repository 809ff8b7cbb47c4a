"""
Exception hierarchy shared by the signing, payment and wallet helpers.
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "X402Error",
    "ConfigError",
    "PaymentConfigError",
    "MalformedTokenSpec",
    "UnsupportedNetwork",
    "UnsupportedAsset",
    "DuplicateNetworkConfig",
    "InvalidPaymentAmount",
    "InvalidKeyFormat",
    "InvalidKeyLength",
    "UnsupportedChainFamily",
    "MalformedMessage",
    "MalformedPaymentHeader",
    "UnsupportedKeyType",
    "FacilitatorError",
    "CrossmintApiError",
    "RLPEncodingError",
    "RLPDecodingError",
]


class X402Error(Exception):
    """Base class for every error raised by this package."""


class ConfigError(X402Error, ValueError):
    """Raised when the supplied configuration is invalid."""


class PaymentConfigError(ConfigError):
    """A configured payment token cannot be turned into a requirement."""


class MalformedTokenSpec(PaymentConfigError):
    pass


class UnsupportedNetwork(PaymentConfigError):
    pass


class UnsupportedAsset(PaymentConfigError):
    pass


class DuplicateNetworkConfig(PaymentConfigError):
    pass


class InvalidPaymentAmount(PaymentConfigError):
    pass


class InvalidKeyFormat(X402Error, ValueError):
    """Key material has the wrong encoding or charset."""


class InvalidKeyLength(X402Error, ValueError):
    """Key material decoded fine but has the wrong size for its chain."""


class UnsupportedChainFamily(X402Error, TypeError):
    pass


class MalformedMessage(X402Error, ValueError):
    pass


class MalformedPaymentHeader(X402Error, ValueError):
    pass


class UnsupportedKeyType(X402Error, ValueError):
    """The CDP key secret is neither an EC PEM key nor an Ed25519 seed."""


class _HttpError(X402Error, RuntimeError):
    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class FacilitatorError(_HttpError):
    """
    The facilitator could not be reached or answered with a non-2xx status.

    ``status_code`` is ``None`` for transport failures (timeouts, DNS, ...).
    """


class CrossmintApiError(_HttpError):
    pass


class RLPEncodingError(X402Error, TypeError):
    pass


class RLPDecodingError(X402Error, ValueError):
    pass
