from .onu_status import (
    parse_onu_status_line, parse_onu_status, count_unparsed_status_lines,
    parse_description, parse_optical_info, parse_link_state,
)
from .web_table import (
    TableMatch, WebTableParser, OnuAuthTableV1, parse_html_row,
    get_parser, register_parser, available_parsers,
)
from .mikrotik_iface import extract_onu_username, olt_tag_of

__all__ = [
    "parse_onu_status_line", "parse_onu_status", "count_unparsed_status_lines",
    "parse_description", "parse_optical_info", "parse_link_state",
    "TableMatch", "WebTableParser", "OnuAuthTableV1", "parse_html_row",
    "get_parser", "register_parser", "available_parsers",
    "extract_onu_username", "olt_tag_of",
]
