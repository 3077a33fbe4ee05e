# src/onuprobe/cli/__init__.py
from __future__ import annotations
import click

from ..config import load_env
from ..logging import setup_logging


@click.group()
@click.option("--env-file", default=None, type=click.Path(dir_okay=False),
              help="Load OLT settings from this .env file.")
@click.option("--log-level", default="WARNING", show_default=True,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False))
@click.option("--log-file", default=None, help="Also write logs to this (rotating) file.")
@click.option("--quiet", is_flag=True, help="Silence console logs.")
@click.pass_context
def cli(ctx: click.Context, env_file, log_level, log_file, quiet):
    """onuprobe: ONU status lookups against EPON OLTs (telnet CLI / web UI)."""
    load_env(env_file)
    setup_logging(level=log_level, quiet=quiet, log_file=log_file)
    ctx.ensure_object(dict)


from .lookup import lookup_cmd, from_interface_cmd  # noqa: E402
from .batch import batch_cmd  # noqa: E402

cli.add_command(lookup_cmd, name="lookup")
cli.add_command(from_interface_cmd, name="from-interface")
cli.add_command(batch_cmd, name="batch")


if __name__ == "__main__":
    cli()
