# src/onuprobe/parsers/onu_status.py
"""
Parsers for the EPON OLT telnet CLI.

All functions are pure and total: malformed input gives None / [] / "N/A",
never an exception.

'show onu status' looks like:

    ONU-ID      Status    MAC  Address         Distance(m)  RTT(TQ) LastRegTime             LastDeregTime           LastDeregReason    AliveTime    Upgrade
    EPON0/1:1   online    74:a0:63:7e:d6:a8    1436         972     1907/12/27 01:26:01     N/A                     N/A               42 02:24:43  N/A
"""
from __future__ import annotations

import re
from typing import List, Optional

from ..models import ONUOpticalInfo, ONUStatus

__all__ = [
    "parse_onu_status_line",
    "parse_onu_status",
    "count_unparsed_status_lines",
    "parse_description",
    "parse_optical_info",
    "parse_link_state",
]

CORE_RE = re.compile(
    r"^\s*(EPON\d+/\d+:\d+)\s+(online|offline)\s+([0-9a-f:]+)\s+(\d+)\s+(\d+)(?:\s+|$)",
    re.IGNORECASE,
)
ONU_LINE_RE = re.compile(r"^\s*EPON\d+/\d+:\d+\b", re.IGNORECASE)
ALIVE_RE = re.compile(r"(?<!\S)(\d+\s+\d{2}:\d{2}:\d{2}|\d{2}:\d{2}:\d{2})\s*(?:N/A)?\s*$", re.IGNORECASE)
STAMP = r"\d{4}/\d{2}/\d{2}\s+\d{2}:\d{2}:\d{2}|N/A"
LAST_REG_RE = re.compile(rf"^({STAMP})", re.IGNORECASE)
LAST_DEREG_RE = re.compile(rf"^\s+({STAMP})", re.IGNORECASE)
REASON_RE = re.compile(r"^\s+([A-Za-z][A-Za-z\s/]*?)(?=\s+\d)")
DESCRIPTION_RE = re.compile(r"description\s*:\s*(\S+)", re.IGNORECASE)


def parse_onu_status_line(line: str) -> Optional[ONUStatus]:
    if not line:
        return None
    m = CORE_RE.match(line)
    if not m:
        return None
    onu_id, status, mac, distance, rtt = m.groups()
    rest = line[m.end():].rstrip()

    alive = ALIVE_RE.search(rest)
    alive_time = " ".join(alive.group(1).split()) if alive else "N/A"

    last_reg = last_dereg = reason = "N/A"
    reg = LAST_REG_RE.match(rest)
    if reg:
        last_reg = " ".join(reg.group(1).split())
        after_reg = rest[reg.end():]
        dereg = LAST_DEREG_RE.match(after_reg)
        if dereg:
            last_dereg = " ".join(dereg.group(1).split())
            r = REASON_RE.match(after_reg[dereg.end():])
            if r and r.group(1).strip():
                reason = r.group(1).strip()

    return ONUStatus(
        onu_id=onu_id,
        status=status.lower(),
        mac_address=mac.lower(),
        distance_meters=int(distance),
        rtt=int(rtt),
        alive_time=alive_time,
        last_reg_time=last_reg,
        last_dereg_time=last_dereg,
        last_dereg_reason=reason,
    )


def parse_onu_status(output: str) -> List[ONUStatus]:
    out: List[ONUStatus] = []
    for line in (output or "").splitlines():
        st = parse_onu_status_line(line)
        if st:
            out.append(st)
    return out


def count_unparsed_status_lines(output: str) -> int:
    """Lines that start like an ONU row but did not parse (firmware drift)."""
    n = 0
    for line in (output or "").splitlines():
        if ONU_LINE_RE.match(line) and parse_onu_status_line(line) is None:
            n += 1
    return n


def parse_description(block: str) -> Optional[str]:
    """`description : rogersaade` -> 'rogersaade' (case kept)."""
    m = DESCRIPTION_RE.search(block or "")
    return m.group(1).strip() if m else None


def parse_optical_info(output: str) -> Optional[ONUOpticalInfo]:
    """
    'show onu <n> ctc opm_diag':

        Temperature         : 37.00 C
        Supply Voltage      : 3.31 V
        TX Bias Current     : 8.00 mA
        TX Power            : 1.63 mW (2.13 dBm)
        RX Power            : 0.04 mW (-14.55 dBm)
    """
    text = output or ""
    temp = re.search(r"Temperature\s*:\s*([\d.]+)\s*C", text, re.I)
    volt = re.search(r"Supply\s*Voltage\s*:\s*([\d.]+)\s*V", text, re.I)
    bias = re.search(r"TX\s*Bias\s*Current\s*:\s*([\d.]+)\s*mA", text, re.I)
    tx = re.search(r"TX\s*Power\s*:\s*([\d.]+)\s*mW\s*\(([-\d.]+)\s*dBm\)", text, re.I)
    rx = re.search(r"RX\s*Power\s*:\s*([\d.]+)\s*mW\s*\(([-\d.]+)\s*dBm\)", text, re.I)

    if not temp and not rx:
        return None

    return ONUOpticalInfo(
        temperature=f"{temp.group(1)} °C" if temp else "N/A",
        supply_voltage=f"{volt.group(1)} V" if volt else "N/A",
        bias_current=f"{bias.group(1)} mA" if bias else "N/A",
        transmit_power=f"{tx.group(1)} mW ({tx.group(2)} dBm)" if tx else "N/A",
        receive_power=f"{rx.group(1)} mW ({rx.group(2)} dBm)" if rx else "N/A",
    )


def parse_link_state(output: str) -> Optional[str]:
    """'Ethernet link state: up' (or a bare up/down) -> 'Up' / 'Down'."""
    text = output or ""
    m = (re.search(r"(?:Ethernet\s*)?(?:link\s*)?state\s*:\s*(up|down)", text, re.I)
         or re.search(r"\b(up|down)\b", text, re.I))
    if not m:
        return None
    return "Up" if m.group(1).lower() == "up" else "Down"

