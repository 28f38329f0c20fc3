"""
Logging for the storefront cart.

Every module takes its logger from get_logger(__name__). The root logger is
configured once on import (stdout, level from LOG_LEVEL). Anything that can
carry user input, such as session ids, item ids and discount codes, goes
through the sanitize helpers before it reaches a log line, and persistence
records carry cart_log_extra() fields so failures can be filtered per cart.

Usage:
    from storefront.logging import get_logger, cart_log_extra
    logger = get_logger(__name__)

    logger.info("Cart hydrated")
    logger.error("Failed to persist cart", extra=cart_log_extra(key, "save", e))
"""

import logging
import os
import sys
from functools import cache

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _get_log_level() -> int:
    """Get log level from environment or default to INFO."""
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def _configure_root_logger() -> None:
    """Attach a stdout handler to the root logger unless one exists."""
    root = logging.getLogger()
    if root.handlers:
        return

    root.setLevel(_get_log_level())

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(_get_log_level())
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)

    # Supabase and Upstash clients both talk HTTP through httpx
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


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
    """Escape control characters that could forge log lines (CWE-117)."""
    return (
        value.replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
        .replace("\x00", "")
    )


def sanitize_id_for_logging(id_value: str | None) -> str:
    """
    Shorten an identifier to its first 8 characters for logging.

    Args:
        id_value: Cart, item or session identifier (can be None)

    Returns:
        Sanitized ID string or "N/A" if empty
    """
    if not id_value:
        return "N/A"
    safe_value = _escape_log_injection(str(id_value))
    return safe_value[:8] if len(safe_value) > 8 else safe_value


def sanitize_string_for_logging(value: str | None, max_length: int = 50) -> str:
    """Escape and truncate user-supplied text such as discount codes."""
    if not value:
        return "N/A"
    safe_value = _escape_log_injection(str(value))
    if len(safe_value) <= max_length:
        return safe_value
    return safe_value[:max_length] + "..."


def cart_log_extra(cart_key: str | None, operation: str, error: Exception | None = None) -> dict:
    """
    Structured `extra` fields for cart persistence and store log records.

    Storage keys look like "shopping-cart:{session_id}"; the session part is
    shortened the same way as any other identifier.

    Args:
        cart_key: Storage key of the cart (can be None)
        operation: "load", "save", "delete", "restore", ...
        error: Exception being reported, if any

    Returns:
        Dict suitable for `logger.<level>(..., extra=...)`
    """
    prefix, _, session_id = (cart_key or "").rpartition(":")
    safe_key = sanitize_id_for_logging(session_id)
    if prefix:
        safe_key = f"{_escape_log_injection(prefix)}:{safe_key}"

    extra = {"cart_key": safe_key, "operation": operation}
    if error is not None:
        extra["error_type"] = type(error).__name__
    return extra


__all__ = [
    "LOG_FORMAT",
    "cart_log_extra",
    "get_logger",
    "sanitize_id_for_logging",
    "sanitize_string_for_logging",
]
