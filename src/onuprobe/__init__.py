"""ONU status lookups against EPON OLTs over the telnet CLI or the vendor web UI."""
from onuprobe.errors import (
    OLTError, OLTConnectionError, AuthError, SessionExpiredError, ParseMismatch, ONUNotFound,
)
from onuprobe.models import (
    OLTEndpoint, ONUStatus, ONUOpticalInfo, ONUInfo, LookupOutcome, LookupResult,
)
from onuprobe.orchestrator import OLTRegistry, build_system, lookup_onu, find_onu, lookup_many

__version__ = "0.1.0"

__all__ = [
    "OLTError", "OLTConnectionError", "AuthError", "SessionExpiredError", "ParseMismatch", "ONUNotFound",
    "OLTEndpoint", "ONUStatus", "ONUOpticalInfo", "ONUInfo", "LookupOutcome", "LookupResult",
    "OLTRegistry", "build_system", "lookup_onu", "find_onu", "lookup_many",
]
