"""
Error types and reporting for deskpad.

Stores never let persistence or parse errors escape to the caller. They hand
them to an ErrorReporter instead, which logs the full traceback and keeps a
one-line message for the shell to display.
"""

import logging
from typing import List, Optional

from .logger import get_logger


class DeskpadError(Exception):
    """Base class for deskpad errors."""


class ValidationFailure(DeskpadError):
    """Malformed input rejected before any mutation took place."""


class PersistenceFailure(DeskpadError):
    """A durable read or write failed (quota, I/O error, corrupt payload)."""

    def __init__(self, key: str, message: str):
        super().__init__(f"{message} ({key})")
        self.key = key


class ErrorReporter:
    """Receives non-fatal failures from stores and services."""

    def report(self, error: Exception, context: str = "") -> None:
        raise NotImplementedError


class LoggingErrorReporter(ErrorReporter):
    """
    Default reporter: logs with traceback and remembers the last message.

    Args:
        logger: Logger to write to (defaults to deskpad.errors)
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or get_logger("errors")
        self.messages: List[str] = []

    @property
    def last_message(self) -> Optional[str]:
        return self.messages[-1] if self.messages else None

    def report(self, error: Exception, context: str = "") -> None:
        message = user_message(error, context)
        self.logger.error(message, exc_info=(type(error), error, error.__traceback__))
        self.messages.append(message)


def user_message(error: Exception, context: str = "") -> str:
    """Single human-readable line for a failed operation."""
    if isinstance(error, PersistenceFailure):
        text = f"Storage problem: {error}"
    elif isinstance(error, ValidationFailure):
        text = str(error)
    else:
        text = f"Unexpected error: {error}"
    return f"{context}: {text}" if context else text
