"""Exception taxonomy for store maintenance."""

from pathlib import Path
from typing import Optional, Union


class SessionStoreError(Exception):
    """Base exception for session store maintenance errors."""

    pass


class StoreNotFoundError(SessionStoreError):
    """Raised when the store file does not exist."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        super().__init__(f"Session store not found: {self.path}")


class MalformedStoreError(SessionStoreError):
    """Raised when the store cannot be decoded into sessions."""

    pass


class BackupFailedError(SessionStoreError):
    """Raised when a snapshot of the store cannot be created or restored."""

    pass


class RecordTransformError(SessionStoreError):
    """Raised when a single record cannot be migrated."""

    def __init__(self, record_id, message: str, cause: Optional[BaseException] = None):
        self.record_id = record_id
        self.cause = cause
        super().__init__(f"Record {record_id!r}: {message}")


class WriteFailedError(SessionStoreError):
    """Raised when the rewritten store could not be written or verified."""

    pass
