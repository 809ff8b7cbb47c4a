"""
Thin client for the Crossmint smart-wallet API.

Wallets are administered by an external signer whose key never leaves this
process: the wallet is created with the derived address as admin signer and
pending transactions are approved with signatures produced locally.
"""

from __future__ import annotations

import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Optional, Union
from urllib.parse import quote

import requests

from .chains import ChainFamily
from .config import WALLETS_API_VERSION, CrossmintConfig
from .errors import ConfigError, CrossmintApiError
from .keys import derive_key_pair
from .signing import MessageInput, sign_message

__all__ = ["CrossmintClient", "pending_approval_message"]

TERMINAL_STATUSES = ("success", "failed")


def _segment(value: str) -> str:
    return quote(value, safe="")


def _positive_amount(amount: Union[str, int, Decimal]) -> str:
    text = str(amount).strip()
    try:
        parsed = Decimal(text)
    except InvalidOperation as exc:
        raise ConfigError(f"The amount '{text}' is not a valid positive number") from exc
    if not text or not parsed.is_finite() or parsed <= 0:
        raise ConfigError(f"The amount '{text}' is not a valid positive number")
    return text


def pending_approval_message(transaction: Dict[str, Any]) -> str:
    """Message of the first pending approval of a wallet transaction."""
    pending = (transaction.get("approvals") or {}).get("pending") or []
    if not pending:
        raise CrossmintApiError("No pending approvals found on transaction")
    message = pending[0].get("message")
    if not message:
        raise CrossmintApiError("Transaction message not found in pending approvals")
    return message


class CrossmintClient:
    def __init__(
        self,
        config: CrossmintConfig,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.config = config
        self.session = session or requests.Session()

    def _url(self, endpoint: str) -> str:
        return f"{self.config.base_url}/{WALLETS_API_VERSION}/{endpoint}"

    def _request(
        self,
        method: str,
        endpoint: str,
        body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = self._url(endpoint)
        headers = {
            "X-API-KEY": self.config.api_key,
            "Content-Type": "application/json",
        }
        try:
            response = self.session.request(
                method, url, json=body, headers=headers, timeout=self.config.timeout
            )
        except requests.RequestException as exc:
            raise CrossmintApiError(f"Crossmint request to {url} failed: {exc}") from exc

        logging.info("Crossmint %s %s answered with status %s", method, url, response.status_code)
        if not 200 <= response.status_code < 300:
            raise CrossmintApiError(
                f"Crossmint responded with {response.status_code}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise CrossmintApiError(
                f"Failed to parse JSON from Crossmint at {url}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            ) from exc

    def create_wallet(
        self,
        private_key: str,
        chain_family: Union[ChainFamily, str],
        owner: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a smart wallet whose admin signer is the key's derived address.

        The response is returned with ``derivedAddress`` and
        ``derivedPublicKey`` added.
        """
        family = ChainFamily.parse(chain_family)
        key_pair = derive_key_pair(private_key, family)
        body: Dict[str, Any] = {
            "type": "smart",
            "chainType": family.value,
            "config": {
                "adminSigner": {"type": "external-wallet", "address": key_pair.address},
            },
        }
        if owner:
            body["owner"] = owner

        result = dict(self._request("POST", "wallets", body))
        described = key_pair.as_dict()
        result["derivedAddress"] = described["address"]
        result["derivedPublicKey"] = described["publicKey"]
        logging.info("Created %s wallet administered by %s", family.value, key_pair.address)
        return result

    def get_wallet(self, locator: str) -> Dict[str, Any]:
        return self._request("GET", f"wallets/{_segment(locator)}")

    def get_balance(self, locator: str, tokens: str, chains: str) -> Dict[str, Any]:
        endpoint = (
            f"wallets/{_segment(locator)}/balances"
            f"?chains={_segment(chains)}&tokens={_segment(tokens)}"
        )
        return self._request("GET", endpoint)

    def transfer_token(
        self,
        locator: str,
        token: str,
        recipient: str,
        amount: Union[str, int, Decimal],
    ) -> Dict[str, Any]:
        """``token`` is a token locator such as ``base-sepolia:usdc``."""
        body = {"recipient": recipient, "amount": _positive_amount(amount)}
        endpoint = f"wallets/{_segment(locator)}/tokens/{_segment(token)}/transfers"
        return self._request("POST", endpoint, body)

    def get_transaction(self, locator: str, transaction_id: str) -> Dict[str, Any]:
        return self._request(
            "GET", f"wallets/{_segment(locator)}/transactions/{_segment(transaction_id)}"
        )

    def approve_transaction(
        self,
        locator: str,
        transaction_id: str,
        signer_address: str,
        signature: str,
    ) -> Dict[str, Any]:
        body = {
            "approvals": [
                {"signer": f"external-wallet:{signer_address}", "signature": signature},
            ]
        }
        endpoint = (
            f"wallets/{_segment(locator)}/transactions/{_segment(transaction_id)}/approvals"
        )
        return self._request("POST", endpoint, body)

    def sign_and_approve(
        self,
        locator: str,
        transaction_id: str,
        private_key: str,
        chain_family: Union[ChainFamily, str],
        message: Optional[MessageInput] = None,
    ) -> Dict[str, Any]:
        """
        Sign a pending transaction with the admin key and submit the approval.

        When ``message`` is omitted the transaction is fetched and its first
        pending approval message is signed.
        """
        family = ChainFamily.parse(chain_family)
        if message is None:
            message = pending_approval_message(self.get_transaction(locator, transaction_id))
        signer = derive_key_pair(private_key, family).address
        signature = sign_message(family, private_key, message)
        return self.approve_transaction(locator, transaction_id, signer, signature)

    def wait_for_transaction(
        self,
        locator: str,
        transaction_id: str,
        *,
        attempts: int = 60,
        interval: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> Dict[str, Any]:
        """Poll until the transaction leaves ``pending`` or attempts run out."""
        transaction = self.get_transaction(locator, transaction_id)
        for _ in range(attempts):
            if transaction.get("status") in TERMINAL_STATUSES:
                break
            sleep(interval)
            transaction = self.get_transaction(locator, transaction_id)
        return transaction
