# src/onuprobe/transports/web.py
"""
HTTP session client for the OLT web UI.

The device keeps no cookie session. After a form login it renders links that
carry `SessionKey=<token>` in the query string, and every later form post has
to send that token back. This client logs in, scrapes the token, keeps it for
a fixed TTL and posts the ONU search form with it.

Endpoints:
    POST /action/main.html           user, pass, button=Login, who=100
    GET  /action/onuauthinfo.html    page whose links carry SessionKey=...
    POST /action/onuauthinfo.html    search form (who=300 searches by description)
"""
from __future__ import annotations

import re
import time
from dataclasses import dataclass
from typing import Callable, Optional

import requests
import urllib3

from ..errors import AuthError, OLTConnectionError, SessionExpiredError
from ..logging import get_logger, mask
from ..models import OLTEndpoint

__all__ = [
    "SESSION_TTL",
    "LOGIN_PATH",
    "ONU_PATH",
    "WebSession",
    "WebOLTClient",
    "needs_reauth",
    "extract_session_key",
]

log = get_logger(__name__)

SESSION_TTL = 10 * 60
LOGIN_PATH = "/action/main.html"
ONU_PATH = "/action/onuauthinfo.html"
REQUEST_TIMEOUT = 15

SESSION_KEY_RE = re.compile(r"SessionKey=([a-zA-Z0-9]+)", re.IGNORECASE)
LOGIN_FAILED_MARKERS = ("login.html", "Login failed")
REAUTH_MARKERS = ("login.html", "window.top.location.href", "Please login", "Session expired")

HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36",
}


def needs_reauth(html: str) -> bool:
    return any(m in (html or "") for m in REAUTH_MARKERS)


def extract_session_key(html: str) -> Optional[str]:
    m = SESSION_KEY_RE.search(html or "")
    return m.group(1) if m else None


@dataclass
class WebSession:
    """Cached session key for one endpoint. expires_at is on the client's clock."""
    key: Optional[str] = None
    expires_at: float = 0.0

    def valid(self, now: float) -> bool:
        return bool(self.key) and now < self.expires_at

    def store(self, key: str, now: float, ttl: float = SESSION_TTL) -> None:
        self.key = key
        self.expires_at = now + ttl

    def invalidate(self) -> None:
        self.key = None
        self.expires_at = 0.0


class WebOLTClient:
    """
    One client per OLTEndpoint; it owns its WebSession, so lookups against
    different OLTs never share a token. Not thread-safe by itself, callers
    serialize (WebOLT holds a lock).

    verify_tls=False on the endpoint is the only way certificate checks get
    switched off, and it is logged when the client is built.
    """

    def __init__(
        self,
        endpoint: OLTEndpoint,
        *,
        http: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.monotonic,
        ttl: float = SESSION_TTL,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.endpoint = endpoint
        self.base_url = endpoint.base_url.rstrip("/")
        self.clock = clock
        self.ttl = float(ttl)
        self.timeout = timeout
        self.session = WebSession()
        self.login_count = 0

        self.http = http if http is not None else requests.Session()
        self.http.headers.update(HEADERS)
        if endpoint.verify_tls:
            self.http.verify = True
        else:
            self.http.verify = False
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
            log.warning(
                "TLS certificate verification is DISABLED for %s (%s); "
                "accepting the device's self-signed certificate",
                endpoint.name, self.base_url,
            )

    # ---------------- session ----------------
    def ensure_session(self) -> str:
        if self.session.valid(self.clock()):
            return self.session.key  # type: ignore[return-value]
        return self.login()

    def invalidate(self) -> None:
        if self.session.key:
            log.debug("%s: dropping session key %s", self.endpoint.name, mask(self.session.key))
        self.session.invalidate()

    def login(self) -> str:
        """Form login, then scrape SessionKey from the ONU page. Raises AuthError / OLTConnectionError."""
        self.login_count += 1
        log.info("%s: logging in to web UI", self.endpoint.name)

        body = self._request(
            "POST", LOGIN_PATH,
            data={
                "user": self.endpoint.username,
                "pass": self.endpoint.password,
                "button": "Login",
                "who": "100",
            },
        )
        if any(m in body for m in LOGIN_FAILED_MARKERS):
            raise AuthError(f"{self.endpoint.name}: web login rejected (invalid credentials)")

        page = self._request("GET", ONU_PATH)
        key = extract_session_key(page)
        if not key:
            log.error("%s: no SessionKey in ONU page: %r", self.endpoint.name, page[:300])
            raise AuthError(f"{self.endpoint.name}: login accepted but no session key was issued")

        self.session.store(key, self.clock(), self.ttl)
        log.info("%s: web session established (key %s)", self.endpoint.name, mask(key))
        return key

    # ---------------- search ----------------
    def search(self, description: str, key: Optional[str] = None) -> str:
        """POST the description search form. Raises SessionExpiredError on a login bounce."""
        key = key or self.ensure_session()
        html = self._request(
            "POST", ONU_PATH,
            data={
                "select": "255",        # all PON ports
                "onutype": "0",         # authenticated ONUs
                "searchMac": "",
                "searchDescription": (description or "").lower(),
                "onuid": "0/",
                "select2": "1/",
                "who": "300",           # search by description
                "SessionKey": key,
            },
            headers={"Referer": f"{self.base_url}{ONU_PATH}"},
        )
        if needs_reauth(html):
            raise SessionExpiredError(f"{self.endpoint.name}: web session expired")
        return html

    def close(self) -> None:
        self.invalidate()
        try:
            self.http.close()
        except Exception:
            pass

    # ---------------- internals ----------------
    def _request(self, method: str, path: str, **kw) -> str:
        url = f"{self.base_url}{path}"
        try:
            resp = self.http.request(method, url, timeout=self.timeout, **kw)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise OLTConnectionError(f"{self.endpoint.name}: {method} {path} failed: {e}") from e
        return resp.text
