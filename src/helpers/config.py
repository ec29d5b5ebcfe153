"""Configuration management and environment variable utilities."""

import os

from dotenv import load_dotenv

from src.helpers.constants import DEFAULT_TIMEOUT


# Load environment variables from .env file
load_dotenv()

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


def get_optional_env(key: str, default: str | None = None) -> str | None:
    """Get an optional environment variable with a default value.

    Args:
        key: Environment variable name
        default: Default value if not set

    Returns:
        Environment variable value or default
    """
    return os.getenv(key, default)


def get_int_env(key: str, default: int) -> int:
    """Get an integer environment variable.

    Args:
        key: Environment variable name
        default: Value used when the variable is unset or empty

    Returns:
        Parsed integer

    Raises:
        ValueError: If the variable is set but is not an integer
    """
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        msg = f"{key} must be an integer, got {raw!r}"
        raise ValueError(msg) from None


def get_float_env(key: str, default: float) -> float:
    """Get a float environment variable.

    Raises:
        ValueError: If the variable is set but is not a number
    """
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        msg = f"{key} must be a number, got {raw!r}"
        raise ValueError(msg) from None


def get_bool_env(key: str, *, default: bool = False) -> bool:
    """Get a boolean environment variable ("true"/"false", "1"/"0", ...).

    Raises:
        ValueError: If the variable holds an unrecognised value
    """
    raw = os.getenv(key)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    msg = f"{key} must be a boolean, got {raw!r}"
    raise ValueError(msg)


def get_rpc_timeout() -> float:
    """Timeout in seconds applied to every outbound JSON-RPC request."""
    return get_float_env("RPC_TIMEOUT", DEFAULT_TIMEOUT)


__all__ = [
    "get_bool_env",
    "get_float_env",
    "get_int_env",
    "get_optional_env",
    "get_rpc_timeout",
]
