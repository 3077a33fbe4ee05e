# src/onuprobe/formatting.py
from __future__ import annotations

from html import escape
from typing import Dict

from .models import LookupOutcome, LookupResult, ONUInfo

__all__ = ["format_onu_info", "format_result", "result_row", "RESULT_COLUMNS"]

RESULT_COLUMNS = ["Description", "OLT", "Outcome", "ONU ID", "Port", "Status", "MAC",
                  "Distance (m)", "RTT (TQ)", "Uptime", "Link", "RX Power", "Error"]


def _has(v) -> bool:
    return bool(v) and v != "N/A"


def format_onu_info(info: ONUInfo) -> str:
    """Telegram-style HTML summary the support bot shows for one ONU."""
    status = "Online" if info.online else "Offline"
    lines = [f"{'🟢' if info.online else '🔴'} <b>ONU Status:</b> {status}"]

    if info.link_status:
        link_icon = "🔗" if info.link_status == "Up" else "⛓️‍💥"
        lines.append(f"{link_icon} <b>Link Status:</b> {info.link_status}")

    lines.append(f"  - <b>ONU ID:</b> <code>{escape(info.onu_id)}</code>")
    lines.append(f"  - <b>MAC:</b> <code>{escape(info.mac_address)}</code>")

    # web UI rows carry type/RTT, the CLI carries distance/uptime
    if info.onu_type is not None:
        lines.append(f"  - <b>Type:</b> {escape(info.onu_type)}")
        lines.append(f"  - <b>RTT:</b> {info.rtt} TQ")
    if info.distance_meters is not None:
        lines.append(f"  - <b>Distance:</b> {info.distance_meters}m")
    if info.alive_time is not None:
        lines.append(f"  - <b>Uptime:</b> {escape(info.alive_time)}")

    if _has(info.last_reg_time):
        lines.append(f"  - <b>Last Registration:</b> {escape(info.last_reg_time)}")
    if _has(info.last_dereg_time):
        offline = f"  - <b>Last Offline:</b> {escape(info.last_dereg_time)}"
        if _has(info.last_dereg_reason):
            offline += f" ({escape(info.last_dereg_reason)})"
        lines.append(offline)

    if info.optical:
        o = info.optical
        lines.append("")
        lines.append("<b>💡 Optical Info:</b>")
        lines.append(f"  - <b>Temperature:</b> {o.temperature}")
        lines.append(f"  - <b>Voltage:</b> {o.supply_voltage}")
        lines.append(f"  - <b>Bias Current:</b> {o.bias_current}")
        lines.append(f"  - <b>TX Power:</b> {o.transmit_power}")
        lines.append(f"  - <b>RX Power:</b> {o.receive_power}")

    return "\n".join(lines)


def format_result(result: LookupResult) -> str:
    if result.found:
        return format_onu_info(result.info)  # type: ignore[arg-type]
    if result.outcome is LookupOutcome.PARSE_MISMATCH:
        return (f"⚠️ {escape(result.endpoint)} answered but its output could not be read "
                f"({result.rows_unparsed} unreadable rows). ONU {escape(result.description)} not confirmed.")
    if result.outcome in (LookupOutcome.UNREACHABLE, LookupOutcome.AUTH_FAILED):
        return f"❌ {escape(result.endpoint)} unreachable: {escape(result.error or result.outcome.value)}"
    return f"❓ ONU <b>{escape(result.description)}</b> not found."


def result_row(result: LookupResult) -> Dict[str, object]:
    info = result.info
    return {
        "Description": result.description,
        "OLT": result.endpoint,
        "Outcome": result.outcome.value,
        "ONU ID": info.onu_id if info else "",
        "Port": info.port if info else "",
        "Status": info.status if info else "",
        "MAC": info.mac_address if info else "",
        "Distance (m)": info.distance_meters if info and info.distance_meters is not None else "",
        "RTT (TQ)": info.rtt if info else "",
        "Uptime": (info.alive_time or "") if info else "",
        "Link": (info.link_status or "") if info else "",
        "RX Power": info.optical.receive_power if info and info.optical else "",
        "Error": result.error,
    }
