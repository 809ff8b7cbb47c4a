"""
Chain families and the catalog of named chains the wallet helpers accept.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple, Union

from .errors import UnsupportedChainFamily, UnsupportedNetwork

__all__ = [
    "ChainDefinition",
    "ChainFamily",
    "CHAINS",
    "evm_chain_id",
    "get_chain",
]


class ChainFamily(str, Enum):
    EVM = "evm"
    SOLANA = "solana"

    @classmethod
    def parse(cls, value: Union["ChainFamily", str]) -> "ChainFamily":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise UnsupportedChainFamily(
            f"Unsupported chain family {value!r}; expected one of "
            + ", ".join(member.value for member in cls)
        )


@dataclass(frozen=True)
class ChainDefinition:
    id: str
    label: str
    family: ChainFamily
    testnet: bool
    chain_id: Optional[int] = None
    aliases: Tuple[str, ...] = field(default_factory=tuple)


CHAINS: Tuple[ChainDefinition, ...] = (
    ChainDefinition("solana", "Solana", ChainFamily.SOLANA, False, aliases=("sol",)),
    ChainDefinition(
        "solana-devnet", "Solana Devnet", ChainFamily.SOLANA, True, aliases=("sol-devnet",)
    ),
    ChainDefinition("ethereum", "Ethereum", ChainFamily.EVM, False, 1, ("mainnet",)),
    ChainDefinition("ethereum-sepolia", "Ethereum Sepolia", ChainFamily.EVM, True, 11155111),
    ChainDefinition("polygon", "Polygon", ChainFamily.EVM, False, 137, ("polygon-mainnet", "matic")),
    ChainDefinition("polygon-amoy", "Polygon Amoy", ChainFamily.EVM, True, 80002, ("amoy",)),
    ChainDefinition("base", "Base", ChainFamily.EVM, False, 8453, ("base-mainnet",)),
    ChainDefinition("base-sepolia", "Base Sepolia", ChainFamily.EVM, True, 84532),
    ChainDefinition("arbitrum", "Arbitrum One", ChainFamily.EVM, False, 42161),
    ChainDefinition("arbitrum-sepolia", "Arbitrum Sepolia", ChainFamily.EVM, True, 421614),
    ChainDefinition("optimism", "Optimism", ChainFamily.EVM, False, 10),
    ChainDefinition("optimism-sepolia", "Optimism Sepolia", ChainFamily.EVM, True, 11155420),
)


def _build_index() -> Dict[str, ChainDefinition]:
    index: Dict[str, ChainDefinition] = {}
    for chain in CHAINS:
        index[chain.id] = chain
        for alias in chain.aliases:
            index[alias] = chain
    return index


_INDEX = _build_index()


def get_chain(name: str) -> ChainDefinition:
    try:
        return _INDEX[name.strip().lower()]
    except KeyError:
        raise UnsupportedNetwork(f"Unknown chain '{name}'") from None


def evm_chain_id(name: str) -> int:
    """Numeric EIP-155 chain id for a named EVM chain."""
    chain = get_chain(name)
    if chain.family is not ChainFamily.EVM or chain.chain_id is None:
        raise UnsupportedNetwork(f"Chain '{name}' is not an EVM chain")
    return chain.chain_id
