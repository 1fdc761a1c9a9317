"""
Backup commands.

Usage:
    sessionkeeper backups
    sessionkeeper restore [BACKUP]
"""

from pathlib import Path
from typing import Optional

import typer

from sessionkeeper.cli.main import format_size, maintenance_errors


def register_commands(app: typer.Typer):
    """Register backup commands on the root app."""

    @app.command("backups")
    def list_backups(ctx: typer.Context):
        """List snapshots of the store, newest first."""
        manager = ctx.obj.manager
        found = manager.backups.list_backups(manager.store_path)
        if not found:
            typer.echo(
                f"No backups found in {manager.backups.directory_for(manager.store_path)}"
            )
            return

        typer.echo(f"Backups of {manager.store_path}:")
        for path in found:
            typer.echo(f"  {path.name}  {format_size(path.stat().st_size)}")

    @app.command("restore")
    def restore(
        ctx: typer.Context,
        backup: Optional[Path] = typer.Argument(
            None, help="Snapshot to restore (defaults to the latest)"
        ),
    ):
        """Restore the store from a snapshot."""
        manager = ctx.obj.manager
        with maintenance_errors():
            source = manager.restore(backup)
        typer.echo(f"✅ Restored {manager.store_path} from {source}")
