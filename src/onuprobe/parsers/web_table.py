# src/onuprobe/parsers/web_table.py
"""
Parsers for the ONU table on the OLT web UI (/action/onuauthinfo.html).

The vendor page has no schema: columns are positional. Each markup layout is a
parser variant registered under a version name, and an endpoint selects one
with `web_parser`. A firmware that moves columns gets a new variant; the HTTP
client does not change.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol

from bs4 import BeautifulSoup

from ..models import ONUInfo

__all__ = [
    "TableMatch",
    "WebTableParser",
    "OnuAuthTableV1",
    "cell_texts",
    "parse_html_row",
    "register_parser",
    "get_parser",
    "available_parsers",
]

ONU_ID_RE = re.compile(r"^EPON\d+/\d+:\d+$", re.IGNORECASE)


@dataclass
class TableMatch:
    info: Optional[ONUInfo]
    rows_examined: int = 0
    rows_unparsed: int = 0


class WebTableParser(Protocol):
    version: str
    def parse_row(self, row_html: str) -> Optional[ONUInfo]: ...
    def find(self, html: str, description: str) -> TableMatch: ...


def _clean(text: str) -> str:
    # get_text() has already decoded entities; &nbsp; arrives as \xa0
    return " ".join(text.replace("\xa0", " ").split())


def cell_texts(row) -> List[str]:
    """Text of the direct <td> children of a <tr> tag, tags and entities stripped."""
    return [_clean(td.get_text(" ")) for td in row.find_all("td", recursive=False)]


def _to_int(s: str) -> int:
    s = (s or "").strip()
    return int(s) if s.isdigit() else 0


class OnuAuthTableV1:
    """
    Layout seen on current VSOL-style firmware:

        0 ONU ID (EPON0/2:3)   5 Type (1GE)
        1 Status               6 Auth flag
        2 MAC address          7 Exchange (Finish / MPCP DEREG)
        3 Description          8 Auth mode
        4 RTT (TQ)             9 LOID/password   (10 Action, ignored)
    """
    version = "v1"
    min_cells = 10

    def _from_cells(self, cells: List[str]) -> Optional[ONUInfo]:
        if len(cells) < self.min_cells:
            return None
        description = cells[3]
        if not description:
            return None
        onu_id = cells[0] or "Unknown"
        return ONUInfo(
            onu_id=onu_id,
            status="online" if "online" in cells[1].lower() else "offline",
            mac_address=cells[2] or "Unknown",
            description=description,
            rtt=_to_int(cells[4]),
            port=_port_of(onu_id),
            onu_type=cells[5] or "Unknown",
            auth_flag=cells[6] or "Unknown",
            exchange=cells[7] or "Unknown",
            auth_mode=cells[8] or "None",
            loid=cells[9] or "N/A",
        )

    def parse_row(self, row_html: str) -> Optional[ONUInfo]:
        soup = BeautifulSoup(row_html or "", "html.parser")
        row = soup.find("tr")
        if row is None:
            return None
        return self._from_cells(cell_texts(row))

    def find(self, html: str, description: str) -> TableMatch:
        target = (description or "").strip().casefold()
        match = TableMatch(info=None)
        soup = BeautifulSoup(html or "", "html.parser")
        for row in soup.find_all("tr"):
            cells = cell_texts(row)
            # header, pager and layout rows have no ONU id up front
            if not cells or not ONU_ID_RE.match(cells[0]):
                continue
            info = self._from_cells(cells)
            if info is None:
                match.rows_unparsed += 1
                continue
            match.rows_examined += 1
            if info.description.casefold() == target:
                match.info = info
                return match
        return match


def _port_of(onu_id: str) -> str:
    # EPON0/2:3 -> 0/2
    if onu_id.upper().startswith("EPON") and ":" in onu_id:
        return onu_id[4:].split(":", 1)[0]
    return ""


_PARSERS: Dict[str, WebTableParser] = {}


def register_parser(parser: WebTableParser) -> None:
    _PARSERS[parser.version] = parser


def get_parser(version: str = "v1") -> WebTableParser:
    try:
        return _PARSERS[version]
    except KeyError:
        raise KeyError(f"Unknown web table parser {version!r}; known: {', '.join(sorted(_PARSERS))}") from None


def available_parsers() -> List[str]:
    return sorted(_PARSERS)


def parse_html_row(row_html: str) -> Optional[ONUInfo]:
    return get_parser("v1").parse_row(row_html)


register_parser(OnuAuthTableV1())
