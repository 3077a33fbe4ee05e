from .base import LineTransport
from .telnet import TelnetTransport
from .web import WebOLTClient, WebSession, needs_reauth, extract_session_key

__all__ = [
    "LineTransport",
    "TelnetTransport",
    "WebOLTClient", "WebSession",
    "needs_reauth", "extract_session_key",
]
