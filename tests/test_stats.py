"""Unit tests for store statistics (sessionkeeper.stats)."""

from datetime import timedelta

from sessionkeeper.codec import record_size
from sessionkeeper.config import MaintenanceConfig
from sessionkeeper.models import SessionRecord
from sessionkeeper.stats import StatsReporter, StoreStats


class TestSummarize:
    def test_empty_store(self, now):
        assert StatsReporter().summarize([], now) == StoreStats()

    def test_counts_and_sizes(self, now, epoch_ms):
        config = MaintenanceConfig(session_size_threshold_bytes=100)
        records = [
            SessionRecord(id=1, data={"lastOtpSent": epoch_ms(now - timedelta(days=9))}),
            SessionRecord(id=2, data={"lastOtpSent": epoch_ms(now - timedelta(hours=30))}),
            SessionRecord(id=3, data={"lastOtpSent": epoch_ms(now), "blob": "x" * 200}),
        ]
        sizes = [record_size(r.data) for r in records]

        stats = StatsReporter(config).summarize(records, now)

        assert stats.total == 3
        assert stats.total_size_bytes == sum(sizes)
        assert stats.average_size_bytes == sum(sizes) / 3
        assert stats.largest_size_bytes == max(sizes)
        assert stats.count_above_size_threshold == 1
        assert stats.count_older_than_max_age == 1
        assert stats.count_inactive_beyond_threshold == 2


class TestCompare:
    def test_compare_reports_reduction(self):
        before = StoreStats(total=4, total_size_bytes=1000)
        after = StoreStats(total=3, total_size_bytes=250)

        delta = StatsReporter.compare(before, after)

        assert delta.sessions_removed == 1
        assert delta.bytes_saved == 750
        assert delta.size_reduction_percent == 75.0

    def test_compare_empty_store(self):
        assert StatsReporter.compare(StoreStats(), StoreStats()).size_reduction_percent == 0.0

    def test_estimate_savings(self):
        config = MaintenanceConfig(session_size_threshold_bytes=1000)
        stats = StoreStats(
            total=10,
            average_size_bytes=100.0,
            count_above_size_threshold=2,
            count_older_than_max_age=1,
            count_inactive_beyond_threshold=3,
        )

        assert StatsReporter(config).estimate_savings(stats) == 2 * 1000 * 0.7 + 4 * 100
