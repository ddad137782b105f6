"""
Typed readers for environment variables.

Every value is whitespace-stripped and an empty value counts as unset, so a
stray space in a deploy dashboard cannot turn into a real setting.
"""
import os
from typing import Optional

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def _read(name: str, strip: bool = True) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    if strip:
        value = value.strip()
    return value or None


def get_env_str(
    name: str,
    default: Optional[str] = None,
    required: bool = False,
    strip: bool = True
) -> Optional[str]:
    """
    Read a string environment variable.

    Args:
        name: Environment variable name
        default: Returned when the variable is missing or empty
        required: If True, raise ValueError when missing/empty
        strip: Strip leading/trailing whitespace (default: True)

    Raises:
        ValueError: If required=True and the value is missing or empty
    """
    value = _read(name, strip=strip)
    if value is not None:
        return value

    if required:
        state = "is not set" if os.getenv(name) is None else "is empty (or whitespace-only)"
        raise ValueError(
            f"Required environment variable '{name}' {state}. "
            f"Please set it in your .env file or environment."
        )
    return default


def get_env_bool(name: str, default: bool = False) -> bool:
    """
    Truthy values: "1", "true", "yes", "on" (case-insensitive).
    Anything else that is set counts as False.
    """
    value = _read(name)
    if value is None:
        return default
    return value.lower() in _TRUTHY


def get_env_int(name: str, default: int, minimum: Optional[int] = None) -> int:
    """
    Read an integer environment variable.

    A value that is not an integer raises ValueError so misconfiguration fails
    at boot rather than at request time. Values below ``minimum`` are clamped
    up to it.
    """
    raw = _read(name)
    if raw is None:
        return default

    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"Environment variable '{name}' must be an integer (got '{raw}').")

    if minimum is not None and value < minimum:
        return minimum
    return value
