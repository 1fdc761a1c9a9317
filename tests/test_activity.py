"""Unit tests for last-activity derivation and eviction."""

from datetime import datetime, timedelta, timezone

from sessionkeeper.activity import ActivityTracker, parse_timestamp
from sessionkeeper.config import MaintenanceConfig
from sessionkeeper.eviction import EvictionPolicy, Verdict


class TestParseTimestamp:
    def test_epoch_millis(self):
        assert parse_timestamp(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_iso_with_zulu_suffix(self):
        parsed = parse_timestamp("2026-02-08T10:00:00.000Z")
        assert parsed == datetime(2026, 2, 8, 10, tzinfo=timezone.utc)

    def test_naive_iso_is_utc(self):
        assert parse_timestamp("2026-02-08T10:00:00").tzinfo is not None

    def test_garbage_is_none(self):
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp(True) is None
        assert parse_timestamp({"at": 1}) is None


class TestActivityTracker:
    """Tests for ActivityTracker.last_activity."""

    def test_latest_candidate_wins(self, now, epoch_ms):
        tracker = ActivityTracker()
        data = {
            "lastOtpSent": epoch_ms(now - timedelta(hours=5)),
            "cart": {"items": [], "updatedAt": (now - timedelta(hours=2)).isoformat()},
        }

        assert tracker.last_activity(data, now) == now - timedelta(hours=2)

    def test_no_timestamps_means_max_session_age(self, now):
        config = MaintenanceConfig(max_session_age=timedelta(days=3))
        tracker = ActivityTracker(config)

        assert tracker.last_activity({"language": "en"}, now) == now - timedelta(days=3)

    def test_unparseable_candidates_are_ignored(self, now, epoch_ms):
        tracker = ActivityTracker()
        data = {
            "lastOtpSent": epoch_ms(now - timedelta(hours=1)),
            "cart": {"updatedAt": "not a date"},
        }

        assert tracker.last_activity(data, now) == now - timedelta(hours=1)

    def test_top_level_updated_at_counts(self, now):
        data = {"updatedAt": (now - timedelta(minutes=10)).isoformat()}

        assert ActivityTracker().inactivity(data, now) == timedelta(minutes=10)


class TestEvictionPolicy:
    """Tests for EvictionPolicy.classify."""

    def test_eight_days_is_expired_old(self, now, epoch_ms):
        policy = EvictionPolicy()
        decision = policy.classify({"lastOtpSent": epoch_ms(now - timedelta(days=8))}, now)

        assert decision.verdict is Verdict.EXPIRE_OLD
        assert decision.expired
        assert "8d" in decision.reason

    def test_two_hours_is_kept(self, now, epoch_ms):
        policy = EvictionPolicy()
        decision = policy.classify({"lastOtpSent": epoch_ms(now - timedelta(hours=2))}, now)

        assert decision.verdict is Verdict.KEEP
        assert not decision.expired
        assert decision.age == timedelta(hours=2)

    def test_thirty_hours_is_expired_idle(self, now, epoch_ms):
        policy = EvictionPolicy()
        decision = policy.classify({"lastOtpSent": epoch_ms(now - timedelta(hours=30))}, now)

        assert decision.verdict is Verdict.EXPIRE_IDLE
        assert "30h" in decision.reason

    def test_record_without_timestamps_is_idle(self, now):
        decision = EvictionPolicy().classify({}, now)

        assert decision.verdict is Verdict.EXPIRE_IDLE

    def test_thresholds_come_from_config(self, now, epoch_ms):
        config = MaintenanceConfig(
            max_session_age=timedelta(days=30), max_inactive_age=timedelta(days=10)
        )
        data = {"lastOtpSent": epoch_ms(now - timedelta(days=8))}

        assert EvictionPolicy(config).classify(data, now).verdict is Verdict.KEEP

    def test_naive_now_is_accepted(self, now, epoch_ms):
        data = {"lastOtpSent": epoch_ms(now - timedelta(hours=1))}

        decision = EvictionPolicy().classify(data, now.replace(tzinfo=None))

        assert decision.verdict is Verdict.KEEP
