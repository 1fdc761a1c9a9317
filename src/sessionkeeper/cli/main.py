"""
Shared CLI plumbing: logging, environment, state and report rendering.
"""

import os
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, List, Optional

import typer

from sessionkeeper.errors import SessionStoreError, StoreNotFoundError
from sessionkeeper.logger import get_logger

if TYPE_CHECKING:
    from sessionkeeper.lifecycle import SessionStoreLifecycleManager

logger = get_logger(__name__)


def configure_logging(verbose: bool = False):
    """Configure logging for the CLI."""
    from sessionkeeper.logger import setup_logging

    log_level = "DEBUG" if verbose else "WARNING"
    setup_logging(level=log_level, log_file=os.getenv("SESSIONKEEPER_LOG_FILE"))


def load_environment():
    """Load variables from a .env file without overriding the real environment."""
    from dotenv import load_dotenv

    load_dotenv(override=False)


@dataclass
class CLIState:
    """Objects shared by every command of one invocation."""

    manager: "SessionStoreLifecycleManager"


def build_state(
    store: Optional[Path], backup_dir: Optional[Path], settings: Optional[List[str]]
) -> CLIState:
    """Resolve store path and configuration, then create the lifecycle manager."""
    from sessionkeeper.backup import BackupManager
    from sessionkeeper.config import (
        DEFAULT_STORE_PATH,
        ConfigError,
        MaintenanceConfig,
        parse_assignments,
    )
    from sessionkeeper.lifecycle import SessionStoreLifecycleManager

    store = store or Path(os.getenv("SESSIONKEEPER_STORE", str(DEFAULT_STORE_PATH)))
    backup_dir = backup_dir or (
        Path(os.environ["SESSIONKEEPER_BACKUP_DIR"])
        if os.getenv("SESSIONKEEPER_BACKUP_DIR")
        else None
    )

    try:
        config = MaintenanceConfig.from_env(environ=os.environ)
        config = config.with_overrides(parse_assignments(settings))
    except ConfigError as e:
        typer.echo(f"❌ Invalid configuration: {e}", err=True)
        raise typer.Exit(code=1)

    manager = SessionStoreLifecycleManager(
        store, config=config, backups=BackupManager(backup_dir)
    )
    return CLIState(manager=manager)


@contextmanager
def maintenance_errors() -> Iterator[None]:
    """Turn maintenance errors into diagnostics and exit codes."""
    try:
        yield
    except StoreNotFoundError as e:
        logger.warning(f"Store not found: {e.path}")
        typer.echo(f"❌ Sessions file not found: {e.path}")
        raise typer.Exit(code=0)
    except SessionStoreError as e:
        logger.error(f"Maintenance pass failed: {e}")
        typer.echo(f"❌ {type(e).__name__}: {e}", err=True)
        raise typer.Exit(code=1)


# ─── Formatting ──────────────────────────────────────────────────────


def format_size(size_bytes: float) -> str:
    """Format byte size to human-readable string."""
    for unit in ["B", "KB", "MB", "GB"]:
        if abs(size_bytes) < 1024.0:
            return f"{size_bytes:.2f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.2f} TB"


def format_duration(duration: timedelta) -> str:
    seconds = int(duration.total_seconds())
    if seconds % 86400 == 0:
        return f"{seconds // 86400} days"
    if seconds % 3600 == 0:
        return f"{seconds // 3600}h"
    return f"{seconds // 60}m"
