"""
Store file access.

Writes never touch the store in place: content goes to a temporary file in
the same directory, is flushed and fsynced, then renamed over the target.
``guarded_rewrite`` ties a rewrite to a snapshot taken beforehand and restores
that snapshot if anything inside the block fails.
"""

import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Tuple, Union

from sessionkeeper import codec
from sessionkeeper.errors import SessionStoreError, StoreNotFoundError, WriteFailedError
from sessionkeeper.logger import get_logger
from sessionkeeper.models import StoreDocument

logger = get_logger(__name__)

PathLike = Union[str, Path]


def read_store_bytes(path: PathLike) -> bytes:
    path = Path(path)
    if not path.is_file():
        raise StoreNotFoundError(path)
    try:
        return path.read_bytes()
    except OSError as e:
        raise SessionStoreError(f"Cannot read store {path}: {e}") from e


def load_store(path: PathLike) -> Tuple[bytes, StoreDocument]:
    """Read and decode the store, returning the raw bytes alongside."""
    raw = read_store_bytes(path)
    return raw, codec.decode(raw)


def atomic_write_bytes(path: PathLike, data: bytes) -> None:
    """
    Replace ``path`` with ``data`` in one rename.

    Raises:
        WriteFailedError: If the temporary file cannot be written or renamed.
    """
    path = Path(path)
    tmp_path = None
    try:
        fd, tmp_path = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
        )
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except OSError as e:
        if tmp_path and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise WriteFailedError(f"Failed to write {path}: {e}") from e


def write_store(path: PathLike, document: StoreDocument) -> int:
    """
    Atomically write the document, then re-read it to confirm every session
    id made it to disk.

    Returns:
        Number of bytes written.
    """
    payload = codec.encode(document)
    atomic_write_bytes(path, payload)

    try:
        _, written = load_store(path)
    except SessionStoreError as e:
        raise WriteFailedError(f"Written store could not be read back: {e}") from e

    expected: List = document.ids()
    if written.ids() != expected:
        raise WriteFailedError(
            f"Written store has {len(written.sessions)} sessions, expected {len(expected)}"
        )
    return len(payload)


@contextmanager
def guarded_rewrite(store_path: PathLike, backups) -> Iterator[Path]:
    """
    Snapshot the store, then run the block; restore the snapshot on failure.

    Yields:
        Path of the snapshot taken before the block runs.

    Raises:
        BackupFailedError: If the snapshot cannot be taken (the block never runs).
    """
    backup_path = backups.snapshot(store_path)
    try:
        yield backup_path
    except BaseException as error:
        logger.error(f"Rewrite of {store_path} failed ({error}); restoring {backup_path}")
        try:
            backups.restore(backup_path, store_path)
        except SessionStoreError as restore_error:
            logger.critical(
                f"Restore failed: {restore_error}. Recover manually from {backup_path}"
            )
        raise
