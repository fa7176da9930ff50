"""
Exceptions raised by the FreshRSS client.

Everything a caller can catch derives from FreshRSSError. Rejected
subscriptions are not exceptions: they come back as ``{"error": ...}``.
"""

from typing import Any, Optional


class FreshRSSError(Exception):
    """Base class for FreshRSS client failures."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.body = body


class TransportError(FreshRSSError):
    """Network failure, non-2xx status or an undecodable response."""


class ProtocolError(FreshRSSError):
    """The server answered, but not in the shape the protocol requires."""


class SessionError(FreshRSSError):
    """A Google Reader session could not be established."""


class MissingTokenError(SessionError, ProtocolError):
    """Login or token response did not carry the expected token."""


class InvalidArgumentError(ValueError):
    """A tool argument is missing or has the wrong shape."""
