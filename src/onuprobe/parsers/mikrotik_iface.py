import re

OLT_TAG_RE = re.compile(r'\bOLT\d+\b', flags=re.I)

def extract_onu_username(interface: str, olt_tag: str | None = None) -> str | None:
    """
    PPPoE interface names carry the ONU description as their last '-' segment:
      (VM-PPPoe4)-vlan1607-zone4-OLT1-eliehajjarb1  ->  eliehajjarb1
    With olt_tag, names that don't mention that OLT give None.
    """
    if not interface:
        return None
    if olt_tag and olt_tag.upper() not in interface.upper():
        return None
    parts = interface.split('-')
    if len(parts) < 2:
        return None
    last = parts[-1].strip()
    return last or None

def olt_tag_of(interface: str) -> str | None:
    """'...-OLT2-PON1-SAIID' -> 'OLT2' (upper-cased), None if no tag."""
    m = OLT_TAG_RE.search(interface or '')
    return m.group(0).upper() if m else None
