"""
SessionKeeper CLI - session store maintenance.

This package splits CLI commands into focused modules:
- main:        logging, environment, shared state and formatting
- maintenance: analyze, cleanup (default), migrate
- backups:     backups, restore
"""

from pathlib import Path
from typing import List, Optional

import typer

from sessionkeeper.cli import backups, maintenance
from sessionkeeper.cli.main import build_state, configure_logging, load_environment

app = typer.Typer(help="SessionKeeper - session store maintenance")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    store: Optional[Path] = typer.Option(
        None,
        "--store",
        "-s",
        help="Session store file (default: $SESSIONKEEPER_STORE or sessions.json)",
    ),
    backup_dir: Optional[Path] = typer.Option(
        None, "--backup-dir", help="Snapshot directory (default: <store dir>/backups)"
    ),
    settings: Optional[List[str]] = typer.Option(
        None, "--set", help="Override a setting as KEY=VALUE (repeatable)"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose logging (DEBUG level)"
    ),
):
    """
    SessionKeeper - session store maintenance.

    Runs cleanup when no command is given.
    """
    configure_logging(verbose)
    load_environment()
    ctx.obj = build_state(store, backup_dir, settings)

    if ctx.invoked_subcommand is None:
        maintenance.run_cleanup(ctx.obj)


maintenance.register_commands(app)
backups.register_commands(app)

if __name__ == "__main__":
    app()
