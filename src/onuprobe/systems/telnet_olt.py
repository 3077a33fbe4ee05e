# src/onuprobe/systems/telnet_olt.py
"""
EPON OLT over the telnet CLI.

The session is a small state machine. Every step is one row of TRANSITIONS:
send a command (or nothing), poll the buffer for the next prompt within the
row's timeout, move to the next state. A prompt that never shows up raises the
row's error class; nothing at this layer retries.

    Login:  -> username -> Password: -> password -> '>'     (user mode)
    enable  -> Password: -> enable password -> '#'           (privileged)
    configure terminal -> (config)#
    interface epon 0/N -> (config-pon-0/N)#                  (per port)
    exit -> (config)#
"""
from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Type

from ..errors import AuthError, OLTConnectionError, OLTError, ParseMismatch
from ..logging import get_logger
from ..models import LookupOutcome, LookupResult, OLTEndpoint, ONUInfo
from ..parsers.onu_status import (
    count_unparsed_status_lines,
    parse_description,
    parse_link_state,
    parse_onu_status,
    parse_optical_info,
)
from ..transports.base import LineTransport
from ..transports.telnet import TelnetTransport, _to_str

__all__ = [
    "DriverState",
    "Transition",
    "TRANSITIONS",
    "PromptDriver",
    "TelnetOLT",
]

log = get_logger(__name__)

PRIV_PROMPT = r"#"
# a '#' prompt line with no (config...) mode in it
PRIV_ONLY_PROMPT = r"(?m)^[^\r\n(#]*#[ \t\r]*$"
STATUS_TIMEOUT = 5.0
DESCRIPTION_TIMEOUT = 2.0
DETAIL_TIMEOUT = 3.0
CONNECT_TIMEOUT = 10.0


class DriverState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AWAITING_LOGIN = "awaiting_login"
    AWAITING_USER_PASSWORD = "awaiting_user_password"
    USER_MODE = "user_mode"
    AWAITING_ENABLE_PASSWORD = "awaiting_enable_password"
    PRIVILEGED_MODE = "privileged_mode"
    CONFIG_MODE = "config_mode"
    INTERFACE_SELECTED = "interface_selected"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class Transition:
    state: DriverState
    command: Optional[str]          # format() fields: username, password, enable_password, port
    expect: str                     # regex the buffer must match
    timeout: float
    next_state: DriverState
    failure: Type[OLTError] = ParseMismatch
    confirm: Optional[str] = None   # literal that must also be present, e.g. the selected port
    delay: float = 0.3
    secret: bool = False            # keep the command out of the logs


TRANSITIONS: Dict[DriverState, Transition] = {t.state: t for t in (
    Transition(DriverState.CONNECTING, None, r"(?i)Login:", 5.0,
               DriverState.AWAITING_LOGIN, failure=OLTConnectionError, delay=0),
    Transition(DriverState.AWAITING_LOGIN, "{username}", r"(?i)Password:", 5.0,
               DriverState.AWAITING_USER_PASSWORD, failure=AuthError, delay=0.4),
    Transition(DriverState.AWAITING_USER_PASSWORD, "{password}", r">", 5.0,
               DriverState.USER_MODE, failure=AuthError, delay=1.0, secret=True),
    Transition(DriverState.USER_MODE, "enable", r"(?i)Password:", 5.0,
               DriverState.AWAITING_ENABLE_PASSWORD, failure=AuthError, delay=1.0),
    Transition(DriverState.AWAITING_ENABLE_PASSWORD, "{enable_password}", PRIV_PROMPT, 5.0,
               DriverState.PRIVILEGED_MODE, failure=AuthError, delay=1.0, secret=True),
    Transition(DriverState.PRIVILEGED_MODE, "configure terminal", r"\(config\)#", 2.0,
               DriverState.CONFIG_MODE),
    Transition(DriverState.CONFIG_MODE, "interface epon {port}", r"\(config-pon-", 2.0,
               DriverState.INTERFACE_SELECTED, confirm="config-pon-{port}"),
    Transition(DriverState.INTERFACE_SELECTED, "exit", r"\(config\)#", 2.0,
               DriverState.CONFIG_MODE, delay=0.2),
)}


class PromptDriver:
    """
    Walks TRANSITIONS over one LineTransport. `history` keeps every state
    entered, with the port for INTERFACE_SELECTED, so a run can be inspected
    without a live OLT.
    """

    def __init__(self, transport: LineTransport, endpoint: OLTEndpoint,
                 transitions: Dict[DriverState, Transition] = TRANSITIONS):
        self.transport = transport
        self.endpoint = endpoint
        self.transitions = transitions
        self.state = DriverState.DISCONNECTED
        self.port: Optional[str] = None
        self.history: List[tuple] = [(DriverState.DISCONNECTED, None)]

    def _enter(self, state: DriverState, port: Optional[str] = None) -> None:
        self.state = state
        self.port = port if state is DriverState.INTERFACE_SELECTED else None
        self.history.append((state, self.port))

    def _fields(self, port: Optional[str]) -> dict:
        return {
            "username": self.endpoint.username,
            "password": self.endpoint.password,
            "enable_password": self.endpoint.effective_enable_password,
            "port": port or "",
        }

    async def step(self, port: Optional[str] = None) -> str:
        """Run the one transition leaving the current state; return the prompt text."""
        t = self.transitions.get(self.state)
        if t is None:
            raise OLTError(f"no transition out of {self.state.value}")
        fields = self._fields(port)

        if t.command is not None:
            cmd = t.command.format(**fields)
            log.debug("%s [%s] >> %s", self.endpoint.name, self.state.value, "****" if t.secret else cmd)
            self._drop_stale(self.state.value)
            await self.transport.send(cmd, delay=t.delay)

        text = _to_str(await self.transport.wait_for_prompt(t.expect, t.timeout))
        confirm = t.confirm.format(**fields) if t.confirm else None
        if not re.search(t.expect, text) or (confirm and confirm not in text):
            failed = self.state
            self._enter(DriverState.ERROR)
            raise t.failure(
                f"{self.endpoint.name}: expected {confirm or t.expect!r} after {failed.value} "
                f"within {t.timeout:.0f}s, got {text[-200:]!r}"
            )
        self._enter(t.next_state, port)
        return text

    # ---------- phases ----------
    async def open(self, connect_timeout: float = CONNECT_TIMEOUT) -> None:
        """Connect and log in through to privileged mode."""
        self._enter(DriverState.CONNECTING)
        ok = await self.transport.connect(self.endpoint.host, self.endpoint.effective_port, connect_timeout)
        if not ok:
            self._enter(DriverState.ERROR)
            raise OLTConnectionError(
                f"{self.endpoint.name}: cannot reach {self.endpoint.host}:{self.endpoint.effective_port}")
        while self.state is not DriverState.PRIVILEGED_MODE:
            await self.step()
        # paging off; not every firmware knows the command
        await self.command("terminal length 0", timeout=DESCRIPTION_TIMEOUT, echo=False)
        log.debug("%s: authenticated", self.endpoint.name)

    async def select_interface(self, port: str) -> None:
        if self.state is DriverState.INTERFACE_SELECTED:
            await self.step()
        if self.state is DriverState.PRIVILEGED_MODE:
            await self.step()
        if self.state is not DriverState.CONFIG_MODE:
            raise ParseMismatch(f"{self.endpoint.name}: cannot select {port} from {self.state.value}")
        await self.step(port)

    async def exit_interface(self) -> None:
        if self.state is DriverState.INTERFACE_SELECTED:
            await self.step()

    async def command(self, cmd: str, *, timeout: float, delay: float = 0.3,
                      echo: bool = True) -> Optional[str]:
        """
        Send a show command in the current mode and return its answer.

        With echo (the CLI echoes what it is sent) the answer starts at the
        echoed command and must end in a prompt, so output that an earlier,
        timed-out command delivers late is never taken for this one. None if
        the prompt did not come back in time.
        """
        self._drop_stale(cmd)
        await self.transport.send(cmd, delay=delay)
        expect = re.escape(cmd) + r"[\s\S]*" + PRIV_PROMPT if echo else PRIV_PROMPT
        text = _to_str(await self.transport.wait_for_prompt(expect, timeout))
        if echo:
            at = text.rfind(cmd)
            text = text[at:] if at >= 0 else ""
        if not re.search(PRIV_PROMPT, text):
            log.debug("%s: no prompt after %r within %.0fs", self.endpoint.name, cmd, timeout)
            return None
        return text

    async def recover(self) -> None:
        """Back to privileged mode after a port went wrong."""
        self._drop_stale("end")
        await self.transport.send("end", delay=0.2)
        # late output from the failed port ends in a (config-pon-...)# prompt; wait past it
        text = _to_str(await self.transport.wait_for_prompt(PRIV_ONLY_PROMPT, STATUS_TIMEOUT))
        if re.search(PRIV_ONLY_PROMPT, text):
            self._enter(DriverState.PRIVILEGED_MODE)
        else:
            self._enter(DriverState.ERROR)
            raise OLTConnectionError(f"{self.endpoint.name}: CLI did not return to privileged mode")

    def _drop_stale(self, before: str) -> None:
        stale = self.transport.clear()
        if stale:
            log.debug("%s: dropped %d stale bytes before %r", self.endpoint.name, len(stale), before)

    async def close(self) -> None:
        await self.transport.disconnect()
        if self.state is not DriverState.ERROR:
            self._enter(DriverState.DONE)


class TelnetOLT:
    """
    ONU lookup by description over telnet. A fresh connection per lookup, torn
    down when the lookup ends, however it ends. Lookups on one instance are
    serialized.
    """
    name = "telnet"

    def __init__(self, endpoint: OLTEndpoint,
                 transport_factory: Callable[[], LineTransport] = TelnetTransport,
                 *, connect_timeout: float = CONNECT_TIMEOUT, fetch_details: bool = True):
        self.endpoint = endpoint
        self.transport_factory = transport_factory
        self.connect_timeout = connect_timeout
        self.fetch_details = fetch_details
        self.last_driver: Optional[PromptDriver] = None
        self._lock = asyncio.Lock()

    async def get_onu_info(self, description: str) -> Optional[ONUInfo]:
        return (await self.lookup(description)).info

    async def lookup(self, description: str) -> LookupResult:
        async with self._lock:
            return await self._lookup(description)

    async def close(self) -> None:
        return

    async def _lookup(self, description: str) -> LookupResult:
        ep = self.endpoint
        target = (description or "").strip().casefold()
        driver = PromptDriver(self.transport_factory(), ep)
        self.last_driver = driver
        examined = unparsed = 0
        log.info("%s: searching ONU %r over telnet", ep.name, description)

        try:
            await driver.open(self.connect_timeout)

            for port in ep.epon_ports:
                try:
                    info, seen, bad = await self._search_port(driver, port, target)
                except ParseMismatch as e:
                    log.warning("%s: skipping port %s: %s", ep.name, port, e)
                    await driver.recover()
                    continue
                examined += seen
                unparsed += bad
                if info:
                    log.info("%s: ONU %r found as %s (%s)", ep.name, description, info.onu_id, info.status)
                    return LookupResult(ep.name, description, LookupOutcome.FOUND, info=info,
                                        rows_examined=examined, rows_unparsed=unparsed)
                try:
                    await driver.exit_interface()
                except ParseMismatch as e:
                    log.warning("%s: leaving port %s: %s", ep.name, port, e)
                    await driver.recover()

            result = LookupResult.from_counts(ep.name, description, examined=examined, unparsed=unparsed)
            log.warning("%s: ONU %r not found on ports %s (%s, %d examined, %d unparsed)",
                        ep.name, description, ",".join(ep.epon_ports), result.outcome.value, examined, unparsed)
            return result

        except (OLTConnectionError, ConnectionError) as e:
            log.error("%s unreachable: %s", ep.name, e)
            return LookupResult(ep.name, description, LookupOutcome.UNREACHABLE, error=str(e))
        except AuthError as e:
            log.error("%s login failed: %s", ep.name, e)
            return LookupResult(ep.name, description, LookupOutcome.AUTH_FAILED, error=str(e))
        except Exception as e:
            log.exception("%s: telnet lookup failed", ep.name)
            return LookupResult(ep.name, description, LookupOutcome.UNREACHABLE, error=f"unexpected error: {e}")
        finally:
            await driver.close()

    async def _search_port(self, driver: PromptDriver, port: str, target: str):
        """Returns (info or None, ONUs examined, lines/descriptions that did not parse)."""
        await driver.select_interface(port)

        status_out = await driver.command("show onu status", timeout=STATUS_TIMEOUT)
        if status_out is None:
            raise ParseMismatch(f"no prompt after 'show onu status' on {port}")
        onus = parse_onu_status(status_out)
        unparsed = count_unparsed_status_lines(status_out)
        examined = 0
        log.debug("%s: %d ONUs on %s", self.endpoint.name, len(onus), port)

        for onu in onus:
            index = onu.index
            if not index:
                unparsed += 1
                continue
            out = await driver.command(f"show onu {index} description", timeout=DESCRIPTION_TIMEOUT, delay=0.2)
            desc = parse_description(out) if out is not None else None
            if desc is None:
                unparsed += 1
                continue
            examined += 1
            if desc.casefold() == target:
                info = ONUInfo.from_status(onu, description=desc, port=port)
                if self.fetch_details:
                    await self._fetch_details(driver, index, info)
                return info, examined, unparsed

        return None, examined, unparsed

    async def _fetch_details(self, driver: PromptDriver, index: str, info: ONUInfo) -> None:
        """Optical diagnostics and LAN link state; best effort, still inside the interface."""
        opt = await driver.command(f"show onu {index} ctc opm_diag", timeout=DETAIL_TIMEOUT)
        if opt is not None:
            info.optical = parse_optical_info(opt)
        link = await driver.command(f"show onu {index} ctc eth 1 linkstate", timeout=DETAIL_TIMEOUT)
        if link is not None:
            info.link_status = parse_link_state(link)
        log.debug("%s: details for ONU %s optical=%s link=%s",
                  self.endpoint.name, index, info.optical is not None, info.link_status)
