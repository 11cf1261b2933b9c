"""Hex string types shared by step, record and configuration models."""

from typing import Annotated

from pydantic import Field

# 20-byte account or contract address, any letter case
Address = Annotated[str, Field(pattern=r"^0x[a-fA-F0-9]{40}$")]

# 32-byte transaction hash
TxHash = Annotated[str, Field(pattern=r"^0x[a-fA-F0-9]{64}$")]


def _is_hex_of_length(value: object, hex_chars: int) -> bool:
    if not isinstance(value, str) or len(value) != hex_chars + 2 or value[:2] != "0x":
        return False
    try:
        int(value[2:], 16)
    except ValueError:
        return False
    return True


def is_valid_address(address: object) -> bool:
    """True for a 0x-prefixed 40 hex character string."""
    return _is_hex_of_length(address, 40)


def is_valid_private_key(key: object) -> bool:
    """True for a 0x-prefixed 64 hex character string."""
    return _is_hex_of_length(key, 64)


def normalize_address(address: str) -> str:
    """Lowercase form of an address, used for comparisons and lock keys.

    Raises:
        ValueError: If ``address`` is not a 0x-prefixed 20-byte hex string
    """
    if not is_valid_address(address):
        raise ValueError(f"Invalid address: {address!r}")
    return address.lower()
