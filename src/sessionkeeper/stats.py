"""Store-wide statistics used by analyze reports and pass comparisons."""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Iterable, Optional

from sessionkeeper.activity import ActivityTracker
from sessionkeeper.codec import record_size
from sessionkeeper.config import MaintenanceConfig
from sessionkeeper.models import SessionRecord

# Share of a large session's threshold size that compaction typically recovers
OPTIMIZATION_YIELD = 0.7


@dataclass(frozen=True)
class StoreStats:
    total: int = 0
    total_size_bytes: int = 0
    average_size_bytes: float = 0.0
    largest_size_bytes: int = 0
    count_above_size_threshold: int = 0
    count_older_than_max_age: int = 0
    count_inactive_beyond_threshold: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class StatsDelta:
    """Difference between the stats taken before and after a pass."""

    sessions_removed: int
    bytes_saved: int
    size_reduction_percent: float


class StatsReporter:
    """Aggregates per-record size and activity into StoreStats."""

    def __init__(
        self,
        config: Optional[MaintenanceConfig] = None,
        tracker: Optional[ActivityTracker] = None,
    ):
        self.config = config or MaintenanceConfig()
        self.tracker = tracker or ActivityTracker(self.config)

    def summarize(self, records: Iterable[SessionRecord], now: datetime) -> StoreStats:
        total = 0
        total_size = 0
        largest = 0
        large = 0
        old = 0
        inactive = 0

        for record in records:
            size = record_size(record.data)
            total += 1
            total_size += size
            largest = max(largest, size)
            if size > self.config.session_size_threshold_bytes:
                large += 1

            idle = self.tracker.inactivity(record.data, now)
            if idle > self.config.max_session_age:
                old += 1
            if idle > self.config.max_inactive_age:
                inactive += 1

        return StoreStats(
            total=total,
            total_size_bytes=total_size,
            average_size_bytes=total_size / total if total else 0.0,
            largest_size_bytes=largest,
            count_above_size_threshold=large,
            count_older_than_max_age=old,
            count_inactive_beyond_threshold=inactive,
        )

    @staticmethod
    def compare(before: StoreStats, after: StoreStats) -> StatsDelta:
        saved = before.total_size_bytes - after.total_size_bytes
        reduction = saved / before.total_size_bytes * 100 if before.total_size_bytes else 0.0
        return StatsDelta(
            sessions_removed=before.total - after.total,
            bytes_saved=saved,
            size_reduction_percent=reduction,
        )

    def estimate_savings(self, stats: StoreStats) -> int:
        """Rough number of bytes a cleanup pass would free."""
        estimate = (
            stats.count_above_size_threshold
            * self.config.session_size_threshold_bytes
            * OPTIMIZATION_YIELD
            + stats.count_older_than_max_age * stats.average_size_bytes
            + stats.count_inactive_beyond_threshold * stats.average_size_bytes
        )
        return int(estimate)
