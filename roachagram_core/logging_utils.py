"""
Logging Utilities for Roachagram

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-19
"""

import logging
import re
from enum import Enum
from typing import Union


class LogLevel(str, Enum):
    """Log levels accepted in configuration."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


# Patterns for identifier masking (device ids, header values, keys)
SECRET_PATTERNS = [
    (re.compile(r"(X-Device-ID)\s*[=:]\s*['\"]?([^'\"\s,}]+)", re.I), r"\1=***"),
    (
        re.compile(r"\b([0-9a-f]{8})-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\b", re.I),
        r"\1-****",
    ),
    (re.compile(r"(API_KEY|TOKEN|SECRET|PASSWORD|KEY)[=:]\s*['\"]?([^'\"\ \n]+)", re.I), r"\1=***"),
]


def mask_secrets(text: str) -> str:
    """
    Mask device identifiers and secrets in text before logging.

    Args:
        text: Raw text that may contain identifiers

    Returns:
        Text with identifiers shortened or replaced by ***
    """
    masked = text
    for pattern, replacement in SECRET_PATTERNS:
        masked = pattern.sub(replacement, masked)
    return masked


def configure_logging(level: Union[str, LogLevel] = LogLevel.WARNING, verbose: bool = False) -> None:
    """
    Configure root logging for command-line use.

    Args:
        level: Minimum level name
        verbose: Force DEBUG with logger names in the output
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s %(levelname)s %(message)s")
        return

    try:
        name = LogLevel(str(getattr(level, "value", level)).upper()).value
    except ValueError:
        name = LogLevel.WARNING.value
    logging.basicConfig(level=getattr(logging, name), format="%(levelname)s: %(message)s")
