# src/onuprobe/models.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal, Optional, Tuple

from .errors import AuthError, OLTConnectionError, ONUNotFound, ParseMismatch

__all__ = [
    "Transport",
    "DEFAULT_EPON_PORTS",
    "OLTEndpoint",
    "ONUStatus",
    "ONUOpticalInfo",
    "ONUInfo",
    "LookupOutcome",
    "LookupResult",
]

Transport = Literal["telnet", "http"]

DEFAULT_EPON_PORTS: Tuple[str, ...] = ("0/1", "0/2", "0/3", "0/4")


@dataclass(frozen=True)
class OLTEndpoint:
    """
    One OLT as the support flow knows it. Supplied from env/inventory, never mutated.

    Telnet endpoints use username/password for login and enable_password for
    'enable' (falls back to password). HTTP endpoints use scheme/host/port for
    the base URL; verify_tls=False accepts the device's self-signed certificate.
    """
    name: str
    host: str
    transport: Transport = "telnet"
    port: Optional[int] = None
    username: str = "admin"
    password: str = ""
    enable_password: Optional[str] = None
    enabled: bool = True
    epon_ports: Tuple[str, ...] = DEFAULT_EPON_PORTS
    verify_tls: bool = False
    web_parser: str = "v1"
    scheme: str = "https"

    @property
    def effective_port(self) -> int:
        if self.port:
            return int(self.port)
        if self.transport == "http":
            return 443 if self.scheme == "https" else 80
        return 23

    @property
    def effective_enable_password(self) -> str:
        return self.enable_password if self.enable_password is not None else self.password

    @property
    def base_url(self) -> str:
        default = 443 if self.scheme == "https" else 80
        if self.effective_port == default:
            return f"{self.scheme}://{self.host}"
        return f"{self.scheme}://{self.host}:{self.effective_port}"

    def __repr__(self) -> str:
        # keep credentials out of logs and tracebacks
        return (f"OLTEndpoint(name={self.name!r}, host={self.host!r}, "
                f"transport={self.transport!r}, port={self.effective_port}, enabled={self.enabled})")


@dataclass
class ONUStatus:
    """One line of 'show onu status'. rtt is in TQ (time quanta), not ms."""
    onu_id: str
    status: str
    mac_address: str
    distance_meters: int
    rtt: int
    alive_time: str = "N/A"
    last_reg_time: str = "N/A"
    last_dereg_time: str = "N/A"
    last_dereg_reason: str = "N/A"

    @property
    def index(self) -> Optional[str]:
        head, sep, tail = self.onu_id.rpartition(":")
        return tail if sep and tail.isdigit() else None


@dataclass
class ONUOpticalInfo:
    temperature: str = "N/A"
    supply_voltage: str = "N/A"
    bias_current: str = "N/A"
    transmit_power: str = "N/A"
    receive_power: str = "N/A"


@dataclass
class ONUInfo:
    onu_id: str
    status: str
    mac_address: str
    description: str
    rtt: int
    port: str = ""
    distance_meters: Optional[int] = None
    alive_time: Optional[str] = None
    last_reg_time: str = "N/A"
    last_dereg_time: str = "N/A"
    last_dereg_reason: str = "N/A"
    # telnet detail queries
    optical: Optional[ONUOpticalInfo] = None
    link_status: Optional[str] = None
    # web table only
    onu_type: Optional[str] = None
    auth_flag: Optional[str] = None
    exchange: Optional[str] = None
    auth_mode: Optional[str] = None
    loid: Optional[str] = None

    @property
    def online(self) -> bool:
        return self.status == "online"

    @classmethod
    def from_status(cls, st: ONUStatus, *, description: str, port: str) -> "ONUInfo":
        return cls(
            onu_id=st.onu_id,
            status=st.status,
            mac_address=st.mac_address,
            description=description,
            rtt=st.rtt,
            port=port,
            distance_meters=st.distance_meters,
            alive_time=st.alive_time,
            last_reg_time=st.last_reg_time,
            last_dereg_time=st.last_dereg_time,
            last_dereg_reason=st.last_dereg_reason,
        )


class LookupOutcome(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    PARSE_MISMATCH = "parse_mismatch"
    UNREACHABLE = "unreachable"
    AUTH_FAILED = "auth_failed"
    DISABLED = "disabled"


@dataclass
class LookupResult:
    """
    What one endpoint said about one description.

    rows_examined counts ONUs/table rows that parsed and were compared;
    rows_unparsed counts ones that looked like data but did not parse. A
    NOT_FOUND with rows_examined == 0 and rows_unparsed > 0 is reported as
    PARSE_MISMATCH instead, so "absent" and "scraper broke" stay apart.
    """
    endpoint: str
    description: str
    outcome: LookupOutcome
    info: Optional[ONUInfo] = None
    rows_examined: int = 0
    rows_unparsed: int = 0
    error: str = ""

    @property
    def found(self) -> bool:
        return self.outcome is LookupOutcome.FOUND and self.info is not None

    def unwrap(self) -> ONUInfo:
        if self.found:
            return self.info  # type: ignore[return-value]
        msg = self.error or f"{self.description!r} on {self.endpoint}: {self.outcome.value}"
        if self.outcome is LookupOutcome.PARSE_MISMATCH:
            raise ParseMismatch(msg)
        if self.outcome is LookupOutcome.AUTH_FAILED:
            raise AuthError(msg)
        if self.outcome is LookupOutcome.UNREACHABLE:
            raise OLTConnectionError(msg)
        raise ONUNotFound(msg)

    @classmethod
    def from_counts(cls, endpoint: str, description: str, *, examined: int, unparsed: int) -> "LookupResult":
        outcome = LookupOutcome.PARSE_MISMATCH if (examined == 0 and unparsed > 0) else LookupOutcome.NOT_FOUND
        return cls(endpoint, description, outcome, rows_examined=examined, rows_unparsed=unparsed)
