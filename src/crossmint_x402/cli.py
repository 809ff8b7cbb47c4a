"""
Command-line interface for the signing helpers and the paid webhook.
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence, Tuple

from .api import ConfigError, derive, load_webhook_config, sign, sign_evm_transaction
from .core.chains import ChainFamily
from .core.environment import build_settings
from .core.errors import X402Error
from .core.webhook import challenge_body

PRIVATE_KEY_ENV = "SIGNER_PRIVATE_KEY"


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )


def _env_override(value: str) -> Tuple[str, str]:
    if "=" not in value:
        raise argparse.ArgumentTypeError("Overrides must look like KEY=VALUE")
    key, val = value.split("=", 1)
    key = key.strip()
    if not key:
        raise argparse.ArgumentTypeError("Override key must not be empty")
    return key, val


def _collect_overrides(pairs: Iterable[Tuple[str, str]]) -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, value in pairs:
        overrides[key] = value
    return overrides


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2))


def _private_key(args: argparse.Namespace, overrides: dict[str, str]) -> str:
    if args.private_key:
        return args.private_key
    settings = build_settings(env_file=args.env_file, overrides=overrides)
    value = settings.get(PRIVATE_KEY_ENV)
    if not value:
        raise ConfigError(f"Pass --private-key or set {PRIVATE_KEY_ENV}")
    return value


def _add_key_arguments(parser: argparse.ArgumentParser, *, family: bool = True) -> None:
    if family:
        parser.add_argument(
            "--chain-family",
            required=True,
            choices=[member.value for member in ChainFamily],
            help="Key family of the private key",
        )
    parser.add_argument(
        "--private-key",
        default=None,
        help=f"Private key (hex for EVM, base58 for Solana); falls back to {PRIVATE_KEY_ENV}",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="crossmint-x402",
        description="Sign with Crossmint admin keys and serve an x402 paid webhook",
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        help="Path to the .env file containing CDP_*, CROSSMINT_* and X402_* settings (default: .env)",
    )
    parser.add_argument(
        "--set",
        action="append",
        type=_env_override,
        metavar="KEY=VALUE",
        default=None,
        help="Override an environment variable without editing the .env file",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Python logging level (default: INFO)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    derive_parser = commands.add_parser("derive", help="Print the address and public key of a key")
    _add_key_arguments(derive_parser)

    message_parser = commands.add_parser("sign-message", help="Sign a message")
    _add_key_arguments(message_parser)
    message_parser.add_argument("--message", required=True, help="Text, hex or JSON to sign")
    message_parser.add_argument(
        "--encoding",
        default="base58",
        choices=["base58", "base64"],
        help="Solana signature encoding (default: base58)",
    )

    tx_parser = commands.add_parser("sign-transaction", help="Sign an EVM transaction")
    _add_key_arguments(tx_parser, family=False)
    source = tx_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--transaction", help="Transaction as inline JSON")
    source.add_argument("--transaction-file", type=Path, help="Path to a JSON transaction")
    tx_parser.add_argument(
        "--chain",
        help="Named EVM chain (base, polygon-amoy...) whose id becomes chainId",
    )

    commands.add_parser("requirements", help="Print the 402 challenge of the configured webhook")

    serve_parser = commands.add_parser("serve", help="Serve the paid webhook over HTTP")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.add_argument("--path", default="/webhook", help="Webhook route (default: /webhook)")
    return parser


def _load_transaction(args: argparse.Namespace) -> dict:
    text = args.transaction
    if args.transaction_file is not None:
        text = args.transaction_file.read_text(encoding="utf-8")
    try:
        transaction = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Transaction is not valid JSON: {exc}") from exc
    if not isinstance(transaction, dict):
        raise ConfigError("Transaction must be a JSON object")
    return transaction


def _serve(args: argparse.Namespace, overrides: dict[str, str]) -> int:
    import uvicorn

    from .server import create_app

    config = load_webhook_config(env_file=args.env_file, overrides=overrides)
    uvicorn.run(create_app(config, path=args.path), host=args.host, port=args.port)
    return 0


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.log_level)
    overrides = _collect_overrides(args.set or ())

    try:
        if args.command == "derive":
            _emit(derive(_private_key(args, overrides), args.chain_family).as_dict())
        elif args.command == "sign-message":
            signature = sign(
                _private_key(args, overrides),
                args.chain_family,
                args.message,
                encoding=args.encoding,
            )
            _emit({"signature": signature, "chainType": args.chain_family})
        elif args.command == "sign-transaction":
            signed = sign_evm_transaction(
                _private_key(args, overrides), _load_transaction(args), chain=args.chain
            )
            _emit(signed.as_dict())
        elif args.command == "requirements":
            config = load_webhook_config(env_file=args.env_file, overrides=overrides)
            _emit(challenge_body(config.payment_requirements(), "Payment required"))
        elif args.command == "serve":
            return _serve(args, overrides)
    except (ConfigError, X402Error, ValueError) as exc:
        logging.error("%s failed: %s", args.command, exc)
        return 1
    except Exception as exc:  # noqa: BLE001
        logging.error("Unexpected failure in %s: %s", args.command, exc)
        return 1
    return 0


def main() -> None:
    raise SystemExit(run_cli())
