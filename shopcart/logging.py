"""
Centralized logging configuration for shopcart.

Usage:
    from shopcart.logging import get_logger
    logger = get_logger(__name__)

    logger.info("Cart saved")
    logger.error("Failed to save cart", exc_info=True)
"""

import logging
import os
import sys
from functools import cache

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FORMAT_SIMPLE = "%(levelname)s - %(name)s - %(message)s"


def _get_log_level() -> int:
    """Get log level from environment or default to INFO."""
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def _configure_root_logger() -> None:
    """Configure root logger once, leaving host applications' handlers alone."""
    root = logging.getLogger()

    if root.handlers:
        return

    root.setLevel(_get_log_level())

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(_get_log_level())

    is_production = os.environ.get("SHOPCART_ENV") == "production"
    formatter = logging.Formatter(LOG_FORMAT_SIMPLE if is_production else LOG_FORMAT)
    handler.setFormatter(formatter)

    root.addHandler(handler)

    # Supabase and Upstash clients talk over httpx
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
    """Escape control characters that could forge log entries (CWE-117)."""
    return (
        value.replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
        .replace("\x00", "")
    )


def sanitize_id_for_logging(id_value: str | None) -> str:
    """
    Sanitize a session/account token for logging.

    Tokens are truncated to their first 8 characters so full session
    tokens never reach the logs.

    Args:
        id_value: Identifier to sanitize (can be None)

    Returns:
        Sanitized identifier or "N/A" if empty
    """
    if not id_value:
        return "N/A"
    safe_value = _escape_log_injection(str(id_value))
    return safe_value[:8] if len(safe_value) > 8 else safe_value


__all__ = [
    "get_logger",
    "sanitize_id_for_logging",
]
