# src/onuprobe/cli/lookup.py
from __future__ import annotations

import asyncio
import json
from dataclasses import asdict
from pathlib import Path
from typing import List, Optional, Sequence

import click

from ..config import endpoints_from_env
from ..formatting import format_result
from ..inventory import load_inventory_csv, select
from ..logging import get_logger
from ..models import LookupOutcome, LookupResult, OLTEndpoint
from ..orchestrator import DEFAULT_TIMEOUT, find_onu
from ..parsers.mikrotik_iface import extract_onu_username, olt_tag_of

log = get_logger(__name__)

DEFAULT_INVENTORY = "olts.csv"

EXIT_CODES = {
    LookupOutcome.FOUND: 0,
    LookupOutcome.NOT_FOUND: 1,
    LookupOutcome.DISABLED: 1,
    LookupOutcome.PARSE_MISMATCH: 2,
    LookupOutcome.UNREACHABLE: 3,
    LookupOutcome.AUTH_FAILED: 3,
}


def load_endpoints(inventory_path: Optional[str], names: Sequence[str] = ()) -> List[OLTEndpoint]:
    """Inventory CSV when given (or ./olts.csv exists), otherwise OLT_NAMES from the environment."""
    if inventory_path or Path(DEFAULT_INVENTORY).exists():
        eps = load_inventory_csv(inventory_path or DEFAULT_INVENTORY)
    else:
        eps = endpoints_from_env()
    eps = select(eps, names=list(names) or None, enabled_only=True)
    if not eps:
        raise click.ClickException(
            "No enabled OLT endpoints (pass -I inventory.csv or set OLT_NAMES and OLT_<NAME>_HOST).")
    return eps


def _emit(result: LookupResult, as_json: bool) -> None:
    if as_json:
        payload = asdict(result)
        payload["outcome"] = result.outcome.value
        click.echo(json.dumps(payload, indent=2, default=str))
    else:
        click.echo(format_result(result))


def _run(endpoints: List[OLTEndpoint], description: str, timeout: float, as_json: bool) -> None:
    result = asyncio.run(find_onu(endpoints, description, timeout=timeout))
    _emit(result, as_json)
    raise SystemExit(EXIT_CODES.get(result.outcome, 1))


@click.command("lookup")
@click.argument("description")
@click.option("-I", "--inventory", "inventory_path", default=None,
              help="OLT inventory CSV (Name,Host,Port,Transport,UserEnv,PwEnv,...).")
@click.option("--olt", "olts", multiple=True, help="Only these OLT names (repeatable).")
@click.option("--timeout", type=float, default=DEFAULT_TIMEOUT, show_default=True,
              help="Per-OLT timeout in seconds.")
@click.option("--json", "as_json", is_flag=True, help="Print the raw result as JSON.")
def lookup_cmd(description, inventory_path, olts, timeout, as_json):
    """Find the ONU whose description is DESCRIPTION (case-insensitive, exact)."""
    _run(load_endpoints(inventory_path, olts), description, timeout, as_json)


@click.command("from-interface")
@click.argument("interface")
@click.option("-I", "--inventory", "inventory_path", default=None, help="OLT inventory CSV.")
@click.option("--timeout", type=float, default=DEFAULT_TIMEOUT, show_default=True)
@click.option("--json", "as_json", is_flag=True)
def from_interface_cmd(interface, inventory_path, timeout, as_json):
    """
    Look up the ONU behind a Mikrotik PPPoE interface name, e.g.
    "(VM-PPPoe4)-vlan1607-zone4-OLT1-eliehajjarb1". When the name carries an
    OLT tag and an endpoint has that name, only that OLT is asked.
    """
    description = extract_onu_username(interface)
    if not description:
        raise click.ClickException(f"Cannot derive an ONU description from {interface!r}")
    eps = load_endpoints(inventory_path)
    tag = olt_tag_of(interface)
    if tag:
        tagged = [e for e in eps if e.name.upper() == tag]
        if tagged:
            eps = tagged
    log.info(f"{interface!r} -> {description!r} via {', '.join(e.name for e in eps)}")
    _run(eps, description, timeout, as_json)
