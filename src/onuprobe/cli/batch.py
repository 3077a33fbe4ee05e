# src/onuprobe/cli/batch.py
from __future__ import annotations

import asyncio
from pathlib import Path

import click
import pandas as pd

from ..formatting import RESULT_COLUMNS, result_row
from ..logging import get_logger
from ..orchestrator import DEFAULT_TIMEOUT, lookup_many
from .lookup import load_endpoints

log = get_logger(__name__)


def read_descriptions(path: str | Path) -> list[str]:
    """One description per line; blank lines and '#' comments ignored."""
    out = []
    for ln in Path(path).read_text(encoding="utf-8").splitlines():
        s = ln.strip()
        if s and not s.startswith("#"):
            out.append(s)
    return out


@click.command("batch")
@click.argument("descriptions_file", type=click.Path(exists=True, dir_okay=False))
@click.option("-I", "--inventory", "inventory_path", default=None, help="OLT inventory CSV.")
@click.option("--olt", "olts", multiple=True, help="Only these OLT names (repeatable).")
@click.option("-o", "--output", default=None, help="Write results to this CSV (default: print table).")
@click.option("-c", "--concurrency", type=int, default=4, show_default=True,
              help="Descriptions in flight at once (each OLT still serves one at a time).")
@click.option("--timeout", type=float, default=DEFAULT_TIMEOUT, show_default=True)
@click.option("--progress/--no-progress", default=True, show_default=True)
def batch_cmd(descriptions_file, inventory_path, olts, output, concurrency, timeout, progress):
    """Look up every description in DESCRIPTIONS_FILE and tabulate the results."""
    descs = read_descriptions(descriptions_file)
    if not descs:
        raise click.ClickException(f"No descriptions in {descriptions_file}")
    eps = load_endpoints(inventory_path, olts)

    results = asyncio.run(lookup_many(eps, descs, concurrency=concurrency,
                                      show_progress=progress, timeout=timeout))
    df = pd.DataFrame([result_row(r) for r in results], columns=RESULT_COLUMNS)

    if output:
        df.to_csv(output, index=False)
        click.echo(f"Wrote {len(df)} rows to {output}")
    else:
        click.echo(df.to_string(index=False))

    found = int((df["Outcome"] == "found").sum())
    log.info(f"batch done: {found}/{len(df)} found")
    click.echo(f"{found}/{len(df)} found")
