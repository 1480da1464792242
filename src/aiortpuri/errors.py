"""Exceptions and warnings raised by aiortpuri."""

from typing import Optional


class RtpUriError(Exception):
    """Base class for aiortpuri errors."""


class InvalidURI(RtpUriError, ValueError):
    """The URI scheme or authority could not be parsed."""


class MissingCapability(RtpUriError):
    """A required collaborator (multiplexer, endpoint) is unavailable."""

    def __init__(self, capability: str) -> None:
        super().__init__(f"{capability} is not available")
        self.capability = capability


class LinkFailure(RtpUriError):
    """An endpoint could not be opened or wired to the multiplexer."""

    def __init__(self, message: str, pad_name: Optional[str] = None) -> None:
        super().__init__(message)
        self.pad_name = pad_name


class CollisionWarning(UserWarning):
    """Duplicate SSRC detected on a session; the session keeps running."""
