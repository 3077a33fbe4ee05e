# src/onuprobe/config.py
from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional, Tuple
from dotenv import load_dotenv

from .models import DEFAULT_EPON_PORTS, OLTEndpoint

# Load .env once at import; harmless if no .env present.
load_dotenv()

__all__ = [
    "load_env",
    "require_env",
    "env_flag",
    "parse_ports",
    "endpoint_from_env",
    "endpoints_from_env",
]

TRUE_WORDS = {"yes", "true", "1", "on"}


# ---------------------------
# Env helpers
# ---------------------------

def load_env(env_file: Optional[str | Path] = None) -> None:
    """
    Load environment variables from a .env file.
    - If env_file is provided, load it directly.
    - Otherwise, attempt to load from current working directory, then repo root.
    """
    if env_file:
        env_path = Path(env_file)
    else:
        env_path = Path.cwd() / ".env"

    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=bool(env_file))
    else:
        # fallback: repo root (.env next to pyproject.toml)
        repo_env = Path(__file__).resolve().parents[2] / ".env"
        if repo_env.exists():
            load_dotenv(dotenv_path=repo_env)


def require_env(name: str, *, friendly: Optional[str] = None) -> str:
    """Raise a clear error if a required env is missing."""
    val = os.getenv(name)
    if not val:
        raise RuntimeError(f"Missing environment variable: {friendly or name} ({name})")
    return val


def env_flag(value: Optional[str], default: bool = False) -> bool:
    if value is None or not str(value).strip():
        return default
    return str(value).strip().lower() in TRUE_WORDS


def parse_ports(value: Optional[str]) -> Tuple[str, ...]:
    """'0/1, 0/2;0/3' -> ('0/1', '0/2', '0/3'); empty -> default EPON ports."""
    if not value or not value.strip():
        return DEFAULT_EPON_PORTS
    toks = [t.strip() for t in value.replace(";", ",").split(",")]
    return tuple(t for t in toks if t)


# ---------------------------
# OLT endpoints from env
# ---------------------------

def endpoint_from_env(name: str) -> OLTEndpoint:
    """
    Build one endpoint from OLT_<NAME>_* variables:

        OLT_OLT1_HOST=10.0.0.2        (required)
        OLT_OLT1_TRANSPORT=telnet     telnet | http
        OLT_OLT1_PORT=23
        OLT_OLT1_USER=admin
        OLT_OLT1_PASSWORD=...
        OLT_OLT1_ENABLE_PASSWORD=...  (telnet; defaults to password)
        OLT_OLT1_ENABLED=yes
        OLT_OLT1_PORTS=0/1,0/2,0/3,0/4
        OLT_OLT1_VERIFY_TLS=no        (http)
        OLT_OLT1_WEB_PARSER=v1        (http)
    """
    key = name.strip().upper().replace("-", "_")
    p = f"OLT_{key}_"
    host = require_env(p + "HOST", friendly=f"{name} host")
    transport = (os.getenv(p + "TRANSPORT") or "telnet").strip().lower()
    if transport not in ("telnet", "http"):
        raise RuntimeError(f"{p}TRANSPORT must be telnet or http, got {transport!r}")
    port = os.getenv(p + "PORT")
    return OLTEndpoint(
        name=name.strip(),
        host=host.strip(),
        transport=transport,  # type: ignore[arg-type]
        port=int(port) if port and port.strip() else None,
        username=os.getenv(p + "USER", "admin"),
        password=os.getenv(p + "PASSWORD", ""),
        enable_password=os.getenv(p + "ENABLE_PASSWORD"),
        enabled=env_flag(os.getenv(p + "ENABLED"), default=True),
        epon_ports=parse_ports(os.getenv(p + "PORTS")),
        verify_tls=env_flag(os.getenv(p + "VERIFY_TLS"), default=False),
        web_parser=(os.getenv(p + "WEB_PARSER") or "v1").strip(),
        scheme=(os.getenv(p + "SCHEME") or "https").strip().lower(),
    )


def endpoints_from_env(names: Optional[str] = None) -> List[OLTEndpoint]:
    """OLT_NAMES=OLT1,OLT2 -> endpoints in that order (the order lookups try them)."""
    raw = names if names is not None else os.getenv("OLT_NAMES", "")
    return [endpoint_from_env(n) for n in raw.split(",") if n.strip()]
