"""
Store snapshots.

A snapshot is a byte-identical copy of the store named after the moment it
was taken, e.g. ``backups/sessions_backup_2026-02-08T14-32-00-123Z.json``.
Snapshots are never removed automatically.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Union

from sessionkeeper.errors import BackupFailedError, SessionStoreError
from sessionkeeper.logger import get_logger
from sessionkeeper.storage import atomic_write_bytes

logger = get_logger(__name__)

PathLike = Union[str, Path]


def backup_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC timestamp with filesystem-unsafe characters replaced."""
    moment = moment.astimezone(timezone.utc) if moment.tzinfo else moment
    return f"{moment:%Y-%m-%dT%H-%M-%S}-{moment.microsecond // 1000:03d}Z"


class BackupManager:
    """Creates, lists and restores store snapshots."""

    def __init__(
        self,
        backup_dir: Optional[PathLike] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.backup_dir = Path(backup_dir) if backup_dir else None
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def directory_for(self, store_path: PathLike) -> Path:
        return self.backup_dir or Path(store_path).parent / "backups"

    def _target(self, store_path: Path) -> Path:
        directory = self.directory_for(store_path)
        base = f"{store_path.stem}_backup_{backup_timestamp(self.clock())}"
        target = directory / f"{base}{store_path.suffix}"
        counter = 1
        while target.exists():
            target = directory / f"{base}_{counter}{store_path.suffix}"
            counter += 1
        return target

    def snapshot(self, store_path: PathLike) -> Path:
        """
        Copy the store verbatim into the backup directory.

        Returns:
            Path of the verified snapshot.

        Raises:
            BackupFailedError: If the store is unreadable, the snapshot cannot
                be written, or the written copy differs from the source.
        """
        store_path = Path(store_path)
        try:
            content = store_path.read_bytes()
        except OSError as e:
            raise BackupFailedError(f"Cannot read store for backup: {e}") from e

        try:
            self.directory_for(store_path).mkdir(parents=True, exist_ok=True)
            target = self._target(store_path)
            atomic_write_bytes(target, content)
            copied = target.read_bytes()
        except (OSError, SessionStoreError) as e:
            raise BackupFailedError(f"Cannot write backup: {e}") from e

        if copied != content:
            raise BackupFailedError(f"Backup {target} does not match {store_path}")

        logger.info(f"Backup created: {target}")
        return target

    def restore(self, backup_path: PathLike, store_path: PathLike) -> None:
        """Copy a snapshot back over the store."""
        backup_path = Path(backup_path)
        try:
            content = backup_path.read_bytes()
        except OSError as e:
            raise BackupFailedError(f"Cannot read backup {backup_path}: {e}") from e

        try:
            atomic_write_bytes(store_path, content)
        except SessionStoreError as e:
            raise BackupFailedError(f"Cannot restore {store_path}: {e}") from e

        logger.info(f"Restored {store_path} from {backup_path}")

    def list_backups(self, store_path: PathLike) -> List[Path]:
        """Snapshots of the given store, newest first."""
        store_path = Path(store_path)
        directory = self.directory_for(store_path)
        if not directory.is_dir():
            return []
        pattern = f"{store_path.stem}_backup_*{store_path.suffix}"
        return sorted(directory.glob(pattern), key=lambda p: p.name, reverse=True)

    def latest(self, store_path: PathLike) -> Optional[Path]:
        backups = self.list_backups(store_path)
        return backups[0] if backups else None
