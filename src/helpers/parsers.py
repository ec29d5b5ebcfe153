"""Parsing utilities for common data transformations."""

import re

from typing import Any

from src.helpers.constants import ETHER_DECIMALS, GWEI_DECIMALS


BLOCK_TAGS = frozenset({"latest", "earliest", "pending", "safe", "finalized"})

_HASH_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")


def parse_hex_int(hex_value: str | int | None, default: int = 0) -> int:
    """Parse hex string to integer.

    Args:
        hex_value: Hex-encoded string, an already decoded int, or None
        default: Default value if hex_value is None

    Returns:
        int: Parsed integer value

    Example:
        >>> parse_hex_int("0xff")
        255
        >>> parse_hex_int(None, 0)
        0
    """
    if hex_value is None:
        return default
    if isinstance(hex_value, int):
        return hex_value
    return int(hex_value, 16)


def parse_optional_hex_int(hex_value: str | int | None) -> int | None:
    """Like parse_hex_int, but keeps None for absent fields."""
    if hex_value is None:
        return None
    return parse_hex_int(hex_value)


def is_block_hash(value: Any) -> bool:
    """Return True when value looks like a 32-byte 0x-prefixed hash."""
    return isinstance(value, str) and bool(_HASH_RE.match(value))


def to_block_param(block: int | str) -> str:
    """Encode a block number or tag as a JSON-RPC block parameter.

    Args:
        block: Block number, decimal string, hex string or tag ("latest", ...)

    Returns:
        str: Hex quantity or tag

    Raises:
        ValueError: If the value is neither a non-negative number nor a known tag

    Example:
        >>> to_block_param(255)
        '0xff'
        >>> to_block_param("latest")
        'latest'
    """
    if isinstance(block, bool):
        msg = f"Invalid block identifier: {block!r}"
        raise ValueError(msg)
    if isinstance(block, int):
        if block < 0:
            msg = f"Block number cannot be negative: {block}"
            raise ValueError(msg)
        return hex(block)

    value = block.strip().lower()
    if value in BLOCK_TAGS:
        return value
    if value.startswith("0x"):
        return hex(int(value, 16))
    if value.isdigit():
        return hex(int(value))

    msg = f"Invalid block identifier: {block!r}"
    raise ValueError(msg)


def parse_block_identifier(raw: str) -> int | str:
    """Parse a path segment into a block number, tag or block hash.

    Example:
        >>> parse_block_identifier("latest")
        'latest'
        >>> parse_block_identifier("1024")
        1024
    """
    value = raw.strip()
    if value.lower() in BLOCK_TAGS:
        return value.lower()
    if is_block_hash(value):
        return value
    if value.isdigit():
        return int(value)
    msg = f"Invalid block identifier: {raw!r}"
    raise ValueError(msg)


def format_units(value: int, decimals: int) -> str:
    """Format an integer amount of base units as a decimal string.

    Trailing zeros are trimmed but at least one fractional digit is kept.

    Args:
        value: Amount in the smallest unit (e.g. wei)
        decimals: Number of decimals of the target unit

    Returns:
        str: Decimal representation

    Example:
        >>> format_units(1_500_000_000, 9)
        '1.5'
        >>> format_units(20_000_000_000, 9)
        '20.0'
    """
    sign = "-" if value < 0 else ""
    whole, fraction = divmod(abs(value), 10**decimals)
    fraction_str = str(fraction).rjust(decimals, "0").rstrip("0") or "0"
    return f"{sign}{whole}.{fraction_str}"


def format_gwei(wei: int) -> str:
    """Format wei as gwei (see format_units)."""
    return format_units(wei, GWEI_DECIMALS)


def format_ether(wei: int) -> str:
    """Format wei as ether (see format_units)."""
    return format_units(wei, ETHER_DECIMALS)


__all__ = [
    "BLOCK_TAGS",
    "format_ether",
    "format_gwei",
    "format_units",
    "is_block_hash",
    "parse_block_identifier",
    "parse_hex_int",
    "parse_optional_hex_int",
    "to_block_param",
]
