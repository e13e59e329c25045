"""Wallet address and identifier helpers."""

import re
from typing import Optional

from web3 import Web3

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,100}$")
TX_HASH_PATTERN = re.compile(r"^0x[0-9a-fA-F]{64}$")


def normalize_address(address: Optional[str]) -> str:
    """Canonical form (0x-prefixed, lowercase) used for every lookup and write."""

    value = (address or "").strip().lower()
    if Web3.is_address(value):
        # "4d4d..." and "0x4d4d..." are the same wallet
        return Web3.to_checksum_address(value).lower()
    return value


def is_valid_address(address: Optional[str]) -> bool:
    """Shape check only; mixed-case input is not held to EIP-55 checksum."""
    if not address:
        return False
    try:
        return bool(Web3.is_address(normalize_address(address)))
    except (TypeError, ValueError):
        return False


def to_checksum(address: str) -> str:
    return Web3.to_checksum_address(normalize_address(address))


def is_valid_identifier(identifier: Optional[str]) -> bool:
    return bool(identifier) and IDENTIFIER_PATTERN.fullmatch(identifier) is not None


def is_valid_tx_hash(tx_hash: Optional[str]) -> bool:
    return bool(tx_hash) and TX_HASH_PATTERN.fullmatch(tx_hash) is not None
