from .base import OLTSystem
from .telnet_olt import DriverState, Transition, TRANSITIONS, PromptDriver, TelnetOLT
from .web_olt import WebOLT

__all__ = [
    "OLTSystem",
    "DriverState", "Transition", "TRANSITIONS", "PromptDriver", "TelnetOLT",
    "WebOLT",
]
