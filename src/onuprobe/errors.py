# src/onuprobe/errors.py
from __future__ import annotations

__all__ = [
    "OLTError",
    "OLTConnectionError",
    "AuthError",
    "SessionExpiredError",
    "ParseMismatch",
    "ONUNotFound",
]


class OLTError(Exception):
    """Base for everything this package raises about an OLT."""


class OLTConnectionError(OLTError):
    """Socket, TLS, HTTP status or timeout problem reaching the device."""


class AuthError(OLTError):
    """Credentials rejected (detected from prompts or page text)."""


class SessionExpiredError(OLTError):
    """The web UI bounced us back to its login page."""


class ParseMismatch(OLTError):
    """The device answered, but nothing in the answer had the expected shape."""


class ONUNotFound(OLTError):
    """Answer parsed fine, no ONU carries the requested description."""
