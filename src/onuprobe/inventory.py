# src/onuprobe/inventory.py
from __future__ import annotations
from pathlib import Path
from typing import List, Iterable, Optional
import csv, os, unicodedata

from .config import env_flag, parse_ports
from .models import OLTEndpoint

def _norm(s: str) -> str:
    if s is None: return ""
    s = unicodedata.normalize("NFKC", s).replace("\uFEFF", "").strip()
    return s

def _norm_key(s: str) -> str:
    # ENV keys like OLT1_USER/OLT1_PW: strip whitespace/newlines and upper-case
    s = _norm(s)
    return "".join(ch for ch in s if ch not in " \t\r\n").upper()

def _secret(ref: str) -> str:
    """Env var name if one exists by that name, else the literal text."""
    ref = _norm(ref)
    if not ref:
        return ""
    return os.getenv(_norm_key(ref)) or ref

def load_inventory_csv(path: str | Path) -> List[OLTEndpoint]:
    """
    Columns: Name, Host, Port, Transport, UserEnv, PwEnv, EnablePwEnv, Enabled,
    Ports, VerifyTLS, Parser. Row order is the order lookups try the OLTs.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Inventory not found: {p}")

    out: List[OLTEndpoint] = []
    with p.open("r", encoding="utf-8-sig", newline="") as f:
        r = csv.DictReader(f)
        for row in r:
            if not row: continue
            name   = _norm(row.get("Name",""))
            host   = _norm(row.get("Host",""))
            if not name or not host: continue
            transport = (_norm(row.get("Transport","telnet")) or "telnet").lower()
            if transport not in ("telnet", "http"):
                raise ValueError(f"{p}: {name}: unknown transport {transport!r}")
            port   = _norm(row.get("Port",""))
            enable = _norm(row.get("EnablePwEnv",""))
            out.append(OLTEndpoint(
                name=name,
                host=host,
                transport=transport,  # type: ignore[arg-type]
                port=int(port) if port.isdigit() else None,
                username=_secret(row.get("UserEnv","")) or "admin",
                password=_secret(row.get("PwEnv","")),
                enable_password=_secret(enable) if enable else None,
                enabled=env_flag(row.get("Enabled"), default=True),
                epon_ports=parse_ports(_norm(row.get("Ports",""))),
                verify_tls=env_flag(row.get("VerifyTLS"), default=False),
                web_parser=_norm(row.get("Parser","")) or "v1",
            ))
    return out

def select(eps: Iterable[OLTEndpoint], *, names: Optional[List[str]] = None,
           transports: Optional[List[str]] = None, enabled_only: bool = True) -> List[OLTEndpoint]:
    out: List[OLTEndpoint] = []
    names_l = [n.lower() for n in names] if names else None
    trans_l = [t.lower() for t in transports] if transports else None
    for e in eps:
        if enabled_only and not e.enabled: continue
        if names_l and e.name.lower() not in names_l: continue
        if trans_l and e.transport not in trans_l: continue
        out.append(e)
    return out
