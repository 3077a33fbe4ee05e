# src/onuprobe/systems/web_olt.py
from __future__ import annotations

import asyncio
import threading
from typing import Optional

from ..errors import AuthError, OLTConnectionError, SessionExpiredError
from ..logging import get_logger
from ..models import LookupOutcome, LookupResult, OLTEndpoint, ONUInfo
from ..parsers.web_table import WebTableParser, get_parser
from ..transports.web import WebOLTClient

__all__ = ["WebOLT", "MAX_ATTEMPTS"]

log = get_logger(__name__)

# initial search + one retry after re-login
MAX_ATTEMPTS = 2


class WebOLT:
    """
    ONU lookup through the OLT web UI.

    Retry policy: an expired session or a network/HTTP error drops the cached
    key and uses up one attempt; rejected credentials end the lookup at once.
    The HTTP client is blocking (requests), so the async entry points run it in
    a worker thread; a lock keeps one search in flight per endpoint.
    """
    name = "http"

    def __init__(self, endpoint: OLTEndpoint, client: Optional[WebOLTClient] = None,
                 parser: Optional[WebTableParser] = None):
        self.endpoint = endpoint
        self.parser = parser or get_parser(endpoint.web_parser)
        self.client = client or WebOLTClient(endpoint)
        self.search_count = 0
        self._lock = threading.Lock()

    # ---------- async (orchestrator) ----------
    async def lookup(self, description: str) -> LookupResult:
        return await asyncio.to_thread(self.search_onu, description)

    async def get_onu_info(self, description: str) -> Optional[ONUInfo]:
        return (await self.lookup(description)).info

    async def close(self) -> None:
        await asyncio.to_thread(self.client.close)

    # ---------- blocking ----------
    def search_onu(self, description: str) -> LookupResult:
        with self._lock:
            return self._search(description)

    def _search(self, description: str) -> LookupResult:
        ep = self.endpoint
        last_error = ""

        for attempt in range(MAX_ATTEMPTS):
            try:
                key = self.client.ensure_session()
                log.info("%s: searching ONU %r (attempt %d)", ep.name, description, attempt + 1)
                self.search_count += 1
                html = self.client.search(description, key)
            except SessionExpiredError as e:
                log.warning("%s: session expired on attempt %d, re-authenticating", ep.name, attempt + 1)
                self.client.invalidate()
                last_error = str(e)
                continue
            except OLTConnectionError as e:
                log.error("%s: web request failed on attempt %d: %s", ep.name, attempt + 1, e)
                self.client.invalidate()
                last_error = str(e)
                continue
            except AuthError as e:
                log.error("%s: %s", ep.name, e)
                self.client.invalidate()
                return LookupResult(ep.name, description, LookupOutcome.AUTH_FAILED, error=str(e))

            match = self.parser.find(html, description)
            if match.info is not None:
                log.info("%s: ONU %r found as %s (%s)", ep.name, description,
                         match.info.onu_id, match.info.status)
                return LookupResult(ep.name, description, LookupOutcome.FOUND, info=match.info,
                                    rows_examined=match.rows_examined, rows_unparsed=match.rows_unparsed)

            result = LookupResult.from_counts(ep.name, description,
                                              examined=match.rows_examined, unparsed=match.rows_unparsed)
            log.warning("%s: ONU %r not in web table (%s, %d rows examined, %d unparsed, parser %s)",
                        ep.name, description, result.outcome.value,
                        match.rows_examined, match.rows_unparsed, self.parser.version)
            return result

        log.error("%s: giving up on %r after %d attempts", ep.name, description, MAX_ATTEMPTS)
        return LookupResult(ep.name, description, LookupOutcome.UNREACHABLE,
                            error=last_error or "web lookup failed")
