"""
Centralized logging configuration for the storefront cart layer.

Usage:
    from storefront.logging import get_logger
    logger = get_logger(__name__)

    logger.info("Cart mutation completed")
    logger.error("Cart mutation failed", exc_info=True)
"""

import logging
import os
import sys
from functools import cache
from typing import Any, Mapping

# Default format for logs
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FORMAT_SIMPLE = "%(levelname)s - %(name)s - %(message)s"

# Prefix used for cart mutation narration
CART_LOG_PREFIX = "[CartService]"


def _get_log_level() -> int:
    """Get log level from environment or default to INFO."""
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def _configure_root_logger() -> None:
    """Configure root logger with appropriate handlers."""
    root = logging.getLogger()

    # Only configure if no handlers exist
    if root.handlers:
        return

    root.setLevel(_get_log_level())

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(_get_log_level())

    # Simple format in production (Vercel), detailed locally
    is_production = os.environ.get("VERCEL") == "1"
    formatter = logging.Formatter(LOG_FORMAT_SIMPLE if is_production else LOG_FORMAT)
    handler.setFormatter(formatter)

    root.addHandler(handler)

    # Storefront API requests are logged by the gateway itself
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# Configure once on module import
_configure_root_logger()


@cache
def get_logger(name: str) -> logging.Logger:
    """
    Get or create a logger with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


def _escape_log_injection(value: str) -> str:
    """
    Escape characters that could be used for log injection attacks (CWE-117).

    Args:
        value: String to escape

    Returns:
        Escaped string safe for logging
    """
    return (
        value.replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
        .replace("\x00", "")
    )


def sanitize_id_for_logging(id_value: str | None, max_length: int = 64) -> str:
    """
    Sanitize an opaque identifier (cart id, line id, session id) for logging.

    Storefront ids are long `gid://` URIs, so only the tail is kept when
    the value exceeds max_length; the tail is the distinguishing part.

    Args:
        id_value: ID value to sanitize (can be None)
        max_length: Maximum number of characters to keep

    Returns:
        Sanitized ID string or "N/A" if None
    """
    if not id_value:
        return "N/A"
    safe_value = _escape_log_injection(str(id_value))
    if len(safe_value) <= max_length:
        return safe_value
    return "..." + safe_value[-max_length:]


def sanitize_string_for_logging(value: str | None, max_length: int = 50) -> str:
    """
    Sanitize string for safe logging (truncate to max_length).

    Also escapes log injection characters (CWE-117).

    Args:
        value: String value to sanitize (can be None)
        max_length: Maximum length to keep (default: 50)

    Returns:
        Sanitized string or "N/A" if None
    """
    if not value:
        return "N/A"
    safe_value = _escape_log_injection(str(value))
    if len(safe_value) <= max_length:
        return safe_value
    return safe_value[:max_length] + "..."


def log_cart_mutation(
    logger: logging.Logger,
    operation: str,
    cart_id: str | None,
    details: Mapping[str, Any] | None = None,
    level: str = "info",
) -> None:
    """
    Narrate a cart operation in a uniform format.

    Info-level narration is only emitted at INFO when CART_DEBUG_LOGGING=1,
    otherwise it goes to DEBUG. Warnings and errors are always emitted.
    """
    rendered = ", ".join(
        f"{key}={sanitize_string_for_logging(str(value), 200)}"
        for key, value in (details or {}).items()
    )
    message = f"{CART_LOG_PREFIX} {operation} cart={sanitize_id_for_logging(cart_id)}"
    if rendered:
        message = f"{message} {rendered}"

    if level == "error":
        logger.error(message)
    elif level == "warn":
        logger.warning(message)
    elif os.environ.get("CART_DEBUG_LOGGING") == "1":
        logger.info(message)
    else:
        logger.debug(message)


__all__ = [
    "LOG_FORMAT",
    "LOG_FORMAT_SIMPLE",
    "CART_LOG_PREFIX",
    "get_logger",
    "log_cart_mutation",
    "sanitize_id_for_logging",
    "sanitize_string_for_logging",
]
