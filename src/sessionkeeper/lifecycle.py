"""
Session store lifecycle management.

One maintenance pass over the store file:
- analyze: statistics and a savings estimate, read-only
- cleanup: evict expired sessions, compact large ones, rewrite the store
- migrate: rewrite every session into the canonical schema
- restore: put a snapshot back in place

Destructive passes load and decode the store first (a malformed store aborts
before anything is touched), then snapshot it, then rewrite it atomically
inside ``guarded_rewrite`` so any failure restores the snapshot.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, List, Optional, Union

from sessionkeeper.activity import ActivityTracker
from sessionkeeper.backup import BackupManager
from sessionkeeper.codec import record_size
from sessionkeeper.config import MaintenanceConfig
from sessionkeeper.errors import BackupFailedError, RecordTransformError
from sessionkeeper.eviction import EvictionPolicy, Verdict
from sessionkeeper.logger import get_logger
from sessionkeeper.migration import SchemaMigrator
from sessionkeeper.models import SessionRecord, StoreDocument
from sessionkeeper.optimizer import FieldOptimizer
from sessionkeeper.stats import StatsDelta, StatsReporter, StoreStats
from sessionkeeper.storage import guarded_rewrite, load_store, write_store

logger = get_logger(__name__)


@dataclass
class RemovedSession:
    id: Any
    verdict: Verdict
    reason: str


@dataclass
class OptimizedSession:
    id: Any
    original_size: int
    optimized_size: int
    compression_ratio: float
    dropped_fields: List[str] = field(default_factory=list)


@dataclass
class AnalysisReport:
    store_path: Path
    stats: StoreStats
    estimated_savings_bytes: int


@dataclass
class CleanupReport:
    store_path: Path
    backup_path: Path
    before: StoreStats
    after: StoreStats
    removed: List[RemovedSession] = field(default_factory=list)
    optimized: List[OptimizedSession] = field(default_factory=list)
    optimization_rejected: int = 0

    @property
    def removed_count(self) -> int:
        return len(self.removed)

    @property
    def optimized_count(self) -> int:
        return len(self.optimized)

    @property
    def optimization_saved_bytes(self) -> int:
        return sum(o.original_size - o.optimized_size for o in self.optimized)

    @property
    def delta(self) -> StatsDelta:
        return StatsReporter.compare(self.before, self.after)


@dataclass
class MigrationFailure:
    id: Any
    message: str


@dataclass
class MigrationReport:
    store_path: Path
    backup_path: Path
    migrated_count: int
    failures: List[MigrationFailure] = field(default_factory=list)
    size_before: int = 0
    size_after: int = 0

    @property
    def failed_count(self) -> int:
        return len(self.failures)


class SessionStoreLifecycleManager:
    """Runs maintenance passes over a single session store file."""

    def __init__(
        self,
        store_path: Union[str, Path],
        config: Optional[MaintenanceConfig] = None,
        backups: Optional[BackupManager] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store_path = Path(store_path)
        self.config = config or MaintenanceConfig()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.backups = backups or BackupManager(clock=self.clock)

        tracker = ActivityTracker(self.config)
        self.policy = EvictionPolicy(self.config, tracker)
        self.optimizer = FieldOptimizer(self.config)
        self.migrator = SchemaMigrator(self.config, clock=self.clock)
        self.stats = StatsReporter(self.config, tracker)

    def analyze(self) -> AnalysisReport:
        """Summarize the store without writing anything."""
        _, document = load_store(self.store_path)
        stats = self.stats.summarize(document.sessions, self.clock())
        logger.info(f"Analyzed {stats.total} sessions in {self.store_path}")
        return AnalysisReport(
            store_path=self.store_path,
            stats=stats,
            estimated_savings_bytes=self.stats.estimate_savings(stats),
        )

    def cleanup(self) -> CleanupReport:
        """
        Evict expired sessions and compact oversized ones.

        Raises:
            StoreNotFoundError: If the store does not exist.
            MalformedStoreError: If the store cannot be decoded (nothing is written).
            BackupFailedError: If the snapshot fails (nothing is written).
            WriteFailedError: If the rewrite fails (the snapshot is restored).
        """
        now = self.clock()
        _, document = load_store(self.store_path)
        before = self.stats.summarize(document.sessions, now)
        logger.info(
            f"Cleanup of {self.store_path}: {before.total} sessions, "
            f"{before.total_size_bytes} bytes"
        )

        with guarded_rewrite(self.store_path, self.backups) as backup_path:
            report = CleanupReport(
                store_path=self.store_path,
                backup_path=backup_path,
                before=before,
                after=before,
            )
            kept = self._sweep(document.sessions, now, report)
            write_store(
                self.store_path,
                StoreDocument(metadata=document.metadata, sessions=kept),
            )
            report.after = self.stats.summarize(kept, now)

        logger.info(
            f"Cleanup complete: removed {report.removed_count}, "
            f"optimized {report.optimized_count}, "
            f"saved {report.delta.bytes_saved} bytes"
        )
        return report

    def _sweep(
        self, sessions: List[SessionRecord], now: datetime, report: CleanupReport
    ) -> List[SessionRecord]:
        kept = []
        for record in sessions:
            decision = self.policy.classify(record.data, now)
            if decision.expired:
                report.removed.append(
                    RemovedSession(record.id, decision.verdict, decision.reason)
                )
                logger.info(f"Removed session {record.id}: {decision.reason}")
                continue

            if record_size(record.data) <= self.config.session_size_threshold_bytes:
                kept.append(record)
                continue

            result = self.optimizer.optimize(record.data)
            if not self.optimizer.is_worthwhile(result):
                report.optimization_rejected += 1
                logger.debug(
                    f"Kept session {record.id} unchanged: compaction saves only "
                    f"{result.compression_ratio:.2f}%"
                )
                kept.append(record)
                continue

            kept.append(SessionRecord(id=record.id, data=result.data))
            report.optimized.append(
                OptimizedSession(
                    id=record.id,
                    original_size=result.original_size,
                    optimized_size=result.optimized_size,
                    compression_ratio=result.compression_ratio,
                    dropped_fields=result.dropped_fields,
                )
            )
            logger.info(
                f"Optimized session {record.id}: {result.original_size} -> "
                f"{result.optimized_size} bytes ({result.compression_ratio:.2f}%), "
                f"removed {', '.join(result.dropped_fields)}"
            )
        return kept

    def migrate(self) -> MigrationReport:
        """
        Rewrite every session into the canonical schema.

        Records that fail to migrate are kept as they were and reported.
        """
        raw, document = load_store(self.store_path)

        with guarded_rewrite(self.store_path, self.backups) as backup_path:
            report = MigrationReport(
                store_path=self.store_path,
                backup_path=backup_path,
                migrated_count=0,
                size_before=len(raw),
            )
            sessions = []
            for record in document.sessions:
                try:
                    sessions.append(self.migrator.migrate(record))
                    report.migrated_count += 1
                except RecordTransformError as e:
                    logger.warning(f"Migration failed, keeping original: {e}")
                    report.failures.append(MigrationFailure(record.id, str(e)))
                    sessions.append(record)

            report.size_after = write_store(
                self.store_path,
                StoreDocument(metadata=document.metadata, sessions=sessions),
            )

        logger.info(
            f"Migration complete: {report.migrated_count} migrated, "
            f"{report.failed_count} failed"
        )
        return report

    def restore(self, backup_path: Optional[Union[str, Path]] = None) -> Path:
        """
        Put a snapshot (the latest one by default) back in place.

        The current store, when present, is snapshotted first so the restore
        itself can be undone.
        """
        source = Path(backup_path) if backup_path else self.backups.latest(self.store_path)
        if source is None:
            raise BackupFailedError(
                f"No backups found in {self.backups.directory_for(self.store_path)}"
            )
        if not source.is_file():
            raise BackupFailedError(f"Backup not found: {source}")

        if self.store_path.is_file():
            self.backups.snapshot(self.store_path)
        self.backups.restore(source, self.store_path)
        return source
