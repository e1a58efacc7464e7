"""
SKMembase CLI — encrypted memory backup from the command line.

Each command group lives in its own module and is registered on
the main Click group here.

Entry point: skmembase.cli:main
"""

from __future__ import annotations

import logging
from typing import Optional

import click

from .. import __version__


@click.group()
@click.version_option(version=__version__, prog_name="skmembase")
@click.option("-v", "--verbose", is_flag=True, help="Log progress to stderr.")
@click.option("--config", "config_path", default=None, type=click.Path(), help="Config file (YAML or JSON).")
@click.pass_context
def main(ctx: click.Context, verbose: bool, config_path: Optional[str]):
    """SKMembase — encrypted memory backup on Membase Hub.

    Your memories. Your password. Restorable anywhere.
    """
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


# ---------------------------------------------------------------------------
# Register all commands from modular files
# ---------------------------------------------------------------------------

from .backup import register_backup_commands
from .status import register_status_commands

register_backup_commands(main)
register_status_commands(main)
