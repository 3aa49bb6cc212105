"""
Error types and the continue-on-error policy shared by every command.
"""

import logging
from http import HTTPStatus

logger = logging.getLogger(__name__)


def status_text(status: int) -> str:
    """Return the standard reason phrase for an HTTP status code."""
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return ""


class SwiftBenchError(Exception):
    """Base class for all errors raised by the tool."""


class ConfigurationError(SwiftBenchError):
    """Invalid flags or settings."""


class AuthenticationError(SwiftBenchError):
    """Auth responded with a failure or gave no usable storage endpoint."""

    def __init__(self, status: int, body: str = "", message: str = None):
        self.status = status
        self.body = body
        super().__init__(
            message or f"Auth responded with {status} {status_text(status)} - {body}"
        )


class OperationError(SwiftBenchError):
    """A storage request completed with a non-2xx status."""

    def __init__(self, method: str, path: str, status: int, body: str = ""):
        self.method = method
        self.path = path
        self.status = status
        self.body = body
        prefix = f"{method} {path}" if path else method
        super().__init__(f"{prefix} - {status} {status_text(status)} - {body}")


class TransferError(SwiftBenchError):
    """Local file I/O or a body transfer failed."""


def handle_failure(error: SwiftBenchError, continue_on_error: bool) -> None:
    """Apply the global failure policy: log and carry on, or raise.

    Args:
        error: The failure that occurred
        continue_on_error: If True, log the failure and return

    Raises:
        SwiftBenchError: The given error, when continue_on_error is False
    """
    if not continue_on_error:
        raise error
    logger.error(str(error))
