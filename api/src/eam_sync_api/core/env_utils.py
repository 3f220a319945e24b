#!/usr/bin/env python3
"""
Utility functions for reading environment variables.

Values coming from .env files edited on Windows often carry CRLF endings;
every helper strips them before converting.
"""

import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)


def getenv_clean(key: str, default: str = None) -> Optional[str]:
    """Get environment variable with line endings and whitespace removed.

    Args:
        key: Environment variable name
        default: Default value if variable is not set

    Returns:
        Cleaned environment variable value, or default if not set

    Example:
        >>> # .env file has: NEO4J_URI=bolt://graph:7687\r\n
        >>> getenv_clean("NEO4J_URI")
        'bolt://graph:7687'
    """
    raw_value = os.getenv(key, default)

    if raw_value is None:
        return None

    cleaned = raw_value.strip()

    if raw_value != cleaned:
        logger.warning(
            f"Environment variable {key} had trailing whitespace/line endings: "
            f"raw={repr(raw_value)}, cleaned={repr(cleaned)}"
        )

    return cleaned


def getenv_bool(key: str, default: bool = False) -> bool:
    """Get environment variable as boolean.

    "true"/"1"/"yes"/"on" map to True and "false"/"0"/"no"/"off"/"" map to
    False (case-insensitive). Anything else falls back to the default with a
    warning.
    """
    raw_value = getenv_clean(key, None)

    if raw_value is None:
        return default

    cleaned_lower = raw_value.lower()
    if cleaned_lower in ("true", "1", "yes", "on"):
        return True
    elif cleaned_lower in ("false", "0", "no", "off", ""):
        return False
    else:
        logger.warning(
            f"Environment variable {key} has unexpected boolean value: {repr(raw_value)}. "
            f"Using default: {default}"
        )
        return default


def getenv_int(key: str, default: int, minimum: int = None) -> int:
    """Get environment variable as integer.

    Args:
        key: Environment variable name
        default: Default integer value if variable is not set or invalid
        minimum: Optional lower bound; smaller values fall back to the default

    Returns:
        Integer value
    """
    raw_value = getenv_clean(key, None)

    if raw_value is None:
        return default

    try:
        value = int(raw_value)
    except ValueError:
        logger.warning(
            f"Environment variable {key} is not a valid integer: {repr(raw_value)}. "
            f"Using default: {default}"
        )
        return default

    if minimum is not None and value < minimum:
        logger.warning(f"Environment variable {key}={value} is below {minimum}. Using default: {default}")
        return default
    return value


def getenv_list(key: str, default: list[str] = None, separator: str = ",") -> list[str]:
    """Get environment variable as a list of cleaned, non-empty items.

    Example:
        >>> # .env file has: CORS_ORIGINS=http://localhost:3000,http://localhost:8080
        >>> getenv_list("CORS_ORIGINS", ["http://localhost:3000"])
        ['http://localhost:3000', 'http://localhost:8080']
    """
    if default is None:
        default = []

    raw_value = getenv_clean(key, None)

    if raw_value is None or raw_value == "":
        return default

    items = [item.strip() for item in raw_value.split(separator) if item.strip()]
    return items if items else default
