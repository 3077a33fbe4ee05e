import re
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, List, Optional, Tuple

import pytest
import requests

from onuprobe.models import OLTEndpoint


# =============================================================================
# Telnet fakes
# =============================================================================


@dataclass
class Late:
    """A responder answer that only arrives after the next command is sent."""
    text: str


class FakeLine:
    """
    Stands in for TelnetTransport. Each send queues the echoed command and the
    responder's answer as chunks that have not arrived yet; wait_for_prompt lets
    chunks arrive one at a time until the pattern matches or none are left, so
    whatever it did not need stays queued for later. A `Late` answer is held
    back until the following send, like output from a command that outlived
    its timeout.
    """

    def __init__(self, responder: Callable[[str], object], banner: str = "\r\nLogin: ",
                 connect_ok: bool = True, echo: bool = True):
        self.responder = responder
        self.banner = banner
        self.connect_ok = connect_ok
        self.echo = echo
        self.sent: List[str] = []
        self.waits: List[Tuple[str, float]] = []
        self.chunks: Deque[str] = deque()
        self.held: List[str] = []
        self.buffer = ""
        self.connected = False
        self.disconnect_calls = 0

    async def connect(self, host, port=23, timeout=10.0):
        self.connected = self.connect_ok
        if self.connect_ok:
            self.chunks.append(self.banner)
        return self.connect_ok

    async def send(self, command, delay=0.2):
        self.sent.append(command)
        self.chunks.extend(self.held)
        self.held = []
        if self.echo:
            self.chunks.append(command)
        answer = self.responder(command)
        if isinstance(answer, Late):
            self.held.append(answer.text)
        else:
            self.chunks.append(answer)

    async def send_and_wait(self, command, wait=1.0):
        self.clear()
        await self.send(command, 0)
        self._arrive_all()
        return self._take()

    async def wait_for_prompt(self, pattern, timeout=3.0):
        self.waits.append((pattern if isinstance(pattern, str) else repr(pattern), timeout))
        if isinstance(pattern, re.Pattern):
            pattern = pattern.pattern
        if isinstance(pattern, bytes):
            pattern = pattern.decode()
        rx = re.compile(pattern)
        while not rx.search(self.buffer) and self.chunks:
            self.buffer += self.chunks.popleft()
        return self._take()

    def clear(self) -> bytes:
        return self._take()

    async def disconnect(self):
        self.disconnect_calls += 1
        self.connected = False

    def _arrive_all(self) -> None:
        while self.chunks:
            self.buffer += self.chunks.popleft()

    def _take(self) -> bytes:
        out, self.buffer = self.buffer, ""
        return out.encode()


STATUS_HEADER = (
    "ONU-ID      Status    MAC  Address         Distance(m)  RTT(TQ) LastRegTime             "
    "LastDeregTime           LastDeregReason    AliveTime    Upgrade\r\n"
    "-----------------------------------------------------------------------------------------\r\n"
)


def status_line(port: str, idx: int, status: str = "online", mac: str = "74:a0:63:7e:d6:a8",
                distance: int = 1436, rtt: int = 972, alive: str = "42 02:24:43") -> str:
    return (f"EPON{port}:{idx}   {status}    {mac}    {distance}         {rtt}     "
            f"1907/12/27 01:26:01     N/A                     N/A               {alive}  N/A")


class FakeOLT:
    """
    Scripted EPON CLI. `ports` maps '0/1' -> [(status_line, description), ...];
    ports not in the map answer 'interface epon' with an error.
    """

    def __init__(self, ports: Dict[str, List[Tuple[str, str]]], *, password: str = "secret",
                 enable_password: str = "secret", status_override: Optional[Dict[str, str]] = None):
        self.ports = ports
        self.password = password
        self.enable_password = enable_password
        self.status_override = status_override or {}
        self.stage = "login"
        self.iface: Optional[str] = None

    def prompt(self) -> str:
        if self.iface:
            return f"\r\nOLT(config-pon-{self.iface})# "
        if self.stage == "config":
            return "\r\nOLT(config)# "
        if self.stage == "user":
            return "\r\nOLT> "
        return "\r\nOLT# "

    def __call__(self, cmd: str) -> str:
        if self.stage == "login":
            self.stage = "password"
            return "\r\nPassword: "
        if self.stage == "password":
            if cmd != self.password:
                self.stage = "login"
                return "\r\n% Authentication failed\r\nLogin: "
            self.stage = "user"
            return self.prompt()
        if self.stage == "user":
            if cmd == "enable":
                self.stage = "enable"
                return "\r\nPassword: "
            return "\r\n% Unknown command" + self.prompt()
        if self.stage == "enable":
            if cmd != self.enable_password:
                self.stage = "user"
                return "\r\n% Access denied" + self.prompt()
            self.stage = "priv"
            return self.prompt()

        if cmd == "terminal length 0":
            return self.prompt()
        if cmd == "configure terminal":
            self.stage = "config"
            return self.prompt()
        if cmd == "end":
            self.stage, self.iface = "priv", None
            return self.prompt()
        if cmd == "exit":
            if self.iface:
                self.iface = None
            elif self.stage == "config":
                self.stage = "priv"
            return self.prompt()
        m = re.match(r"interface epon (\S+)$", cmd)
        if m:
            if self.stage == "config" and m.group(1) in self.ports:
                self.iface = m.group(1)
                return self.prompt()
            return "\r\n% Invalid interface" + self.prompt()
        if cmd == "show onu status" and self.iface:
            if self.iface in self.status_override:
                return f"\r\n{self.status_override[self.iface]}" + self.prompt()
            lines = "\r\n".join(line for line, _ in self.ports[self.iface])
            return f"\r\n{STATUS_HEADER}{lines}" + self.prompt()
        m = re.match(r"show onu (\d+) description$", cmd)
        if m and self.iface:
            for line, desc in self.ports[self.iface]:
                if line.split()[0].endswith(f":{m.group(1)}"):
                    return f"\r\ndescription         : {desc}" + self.prompt()
            return "\r\n% ONU not exist" + self.prompt()
        m = re.match(r"show onu (\d+) ctc opm_diag$", cmd)
        if m and self.iface:
            return ("\r\nTemperature         : 37.00 C\r\nSupply Voltage      : 3.31 V\r\n"
                    "TX Bias Current     : 8.00 mA\r\nTX Power            : 1.63 mW (2.13 dBm)\r\n"
                    "RX Power            : 0.04 mW (-14.55 dBm)" + self.prompt())
        m = re.match(r"show onu (\d+) ctc eth 1 linkstate$", cmd)
        if m and self.iface:
            return "\r\nEthernet link state: up" + self.prompt()
        return "\r\n% Unknown command" + self.prompt()


# =============================================================================
# HTTP fakes
# =============================================================================


class FakeResponse:
    def __init__(self, text: str = "", status_code: int = 200):
        self.text = text
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


class FakeHTTP:
    """
    Quacks like requests.Session for WebOLTClient. `handler(method, path, data)`
    returns a FakeResponse, a str, or raises.
    """

    def __init__(self, handler: Callable[[str, str, dict], object]):
        self.handler = handler
        self.headers: dict = {}
        self.verify = True
        self.calls: List[Tuple[str, str, dict]] = []
        self.closed = False

    def request(self, method, url, timeout=None, data=None, headers=None, **kw):
        path = "/" + url.split("/", 3)[3] if url.count("/") >= 3 else url
        self.calls.append((method, path, dict(data or {})))
        res = self.handler(method, path, dict(data or {}))
        return res if isinstance(res, FakeResponse) else FakeResponse(str(res))

    def close(self):
        self.closed = True

    def count(self, method: str, path: str) -> int:
        return sum(1 for m, p, _ in self.calls if m == method and p == path)


def onu_row(onu_id="EPON0/2:3", status="Online", mac="aa:bb:cc:dd:ee:ff", desc="deirkyeme", rtt="45",
            typ="1GE", auth="Auth", exch="Finish", mode="None", loid="N/A") -> str:
    cells = [onu_id, status, mac, desc, rtt, typ, auth, exch, mode, loid]
    tds = "".join(f"<td>{c}</td>" for c in cells[1:])
    return (f"<tr><td class='hd'>{cells[0]}</td>{tds}"
            f"<td><a href='onuedit.html?SessionKey=abc12'>Edit</a></td></tr>")


def onu_page(*rows: str) -> str:
    header = ("<tr><td>ONU ID</td><td>Status</td><td>MAC</td><td>Description</td><td>RTT(TQ)</td>"
              "<td>Type</td><td>Auth Flag</td><td>Exchange</td><td>Auth Mode</td><td>Loid/pwd</td>"
              "<td>Action</td></tr>")
    return f"<html><body><table>{header}{''.join(rows)}</table></body></html>"


class OLTWeb:
    """Scripted web UI: accepts admin/secret, hands out session keys k1, k2, ..."""

    def __init__(self, rows: List[str], password: str = "secret"):
        self.rows = rows
        self.password = password
        self.keys_issued = 0
        self.valid_keys: set = set()
        self.expire_next_search = 0

    def __call__(self, method, path, data):
        if path == "/action/main.html":
            if data.get("pass") != self.password:
                return "<script>window.location='login.html'</script>Login failed"
            return "<html><frameset>main</frameset></html>" + "x" * 1200
        if path == "/action/onuauthinfo.html" and method == "GET":
            self.keys_issued += 1
            key = f"k{self.keys_issued}"
            self.valid_keys.add(key)
            return f"<a href='onuauthinfo.html?SessionKey={key}&select=1'>PON1</a>"
        if path == "/action/onuauthinfo.html" and method == "POST":
            if self.expire_next_search > 0:
                self.expire_next_search -= 1
                self.valid_keys.clear()
            if data.get("SessionKey") not in self.valid_keys:
                return "<script>window.top.location.href='/login.html'</script>"
            return onu_page(*self.rows)
        return FakeResponse("not found", 404)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def telnet_endpoint():
    return OLTEndpoint(name="OLT1", host="192.0.2.10", transport="telnet",
                       username="admin", password="secret", epon_ports=("0/1", "0/2", "0/3", "0/4"))


@pytest.fixture
def web_endpoint():
    return OLTEndpoint(name="OLT2", host="192.0.2.20", transport="http",
                       username="admin", password="secret")
