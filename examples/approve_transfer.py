"""
Minimal script that transfers tokens from a Crossmint smart wallet and
approves the transfer with the wallet's external admin key.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Iterable, Tuple

from crossmint_x402 import (
    ConfigError,
    CrossmintApiError,
    build_recipient_locator,
    build_wallet_locator,
    create_wallet_client,
)
from crossmint_x402.core.environment import build_settings


def _override(value: str) -> Tuple[str, str]:
    if "=" not in value:
        raise argparse.ArgumentTypeError("Overrides must look like KEY=VALUE")
    key, val = value.split("=", 1)
    key = key.strip()
    if not key:
        raise argparse.ArgumentTypeError("Override key must not be empty")
    return key, val


def _build_overrides(pairs: Iterable[Tuple[str, str]]) -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, value in pairs:
        overrides[key] = value
    return overrides


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Transfer tokens and approve with the admin key")
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to the .env file containing CROSSMINT_* and SIGNER_PRIVATE_KEY",
    )
    parser.add_argument(
        "--set",
        action="append",
        type=_override,
        metavar="KEY=VALUE",
        default=None,
        help="Override an environment variable without editing the .env file",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Python logging level (default: INFO)",
    )
    parser.add_argument("--chain-type", default="evm", choices=["evm", "solana"])
    parser.add_argument("--wallet", required=True, help="Source wallet address")
    parser.add_argument("--token", default="base-sepolia:usdc", help="Token locator")
    parser.add_argument("--recipient", required=True, help="Recipient address or identity value")
    parser.add_argument(
        "--recipient-mode",
        default="address",
        help="address, email, userId, phoneNumber, twitter or x (default: address)",
    )
    parser.add_argument("--amount", required=True, help="Amount in token units (e.g. 0.5)")
    parser.add_argument(
        "--no-wait",
        action="store_true",
        help="Return right after submitting the approval",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )

    overrides = _build_overrides(args.set or ())
    settings = build_settings(env_file=args.env_file, overrides=overrides)
    private_key = settings.get("SIGNER_PRIVATE_KEY")
    if not private_key:
        logging.error("SIGNER_PRIVATE_KEY must be provided")
        return 1

    try:
        client = create_wallet_client(env_file=args.env_file, overrides=overrides)
        wallet = build_wallet_locator("address", args.wallet)
        chain = args.token.split(":", 1)[0]
        recipient = build_recipient_locator(args.recipient_mode, args.recipient, chain)
    except (ConfigError, ValueError) as exc:
        logging.error("Invalid configuration: %s", exc)
        return 1

    try:
        transfer = client.transfer_token(wallet, args.token, recipient, args.amount)
        logging.info("Created transfer %s with status %s", transfer.get("id"), transfer.get("status"))
        client.sign_and_approve(wallet, transfer["id"], private_key, args.chain_type)
    except (CrossmintApiError, ConfigError, ValueError) as exc:
        logging.error("Transfer failed: %s", exc)
        return 1

    if args.no_wait:
        logging.info("Approval submitted; not waiting for completion.")
        return 0

    try:
        final = client.wait_for_transaction(wallet, transfer["id"])
    except Exception as exc:  # noqa: BLE001
        logging.error("Polling transaction status failed: %s", exc)
        return 1

    if final.get("status") == "success":
        logging.info("Transfer %s completed", transfer["id"])
        return 0

    logging.error("Transfer ended with status %s: %s", final.get("status"), final.get("error"))
    return 1


if __name__ == "__main__":
    sys.exit(main())
