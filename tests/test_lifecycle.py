"""End-to-end tests for SessionStoreLifecycleManager."""

import json
from datetime import timedelta

import pytest

from sessionkeeper.backup import BackupManager
from sessionkeeper.config import MaintenanceConfig
from sessionkeeper.errors import (
    BackupFailedError,
    MalformedStoreError,
    StoreNotFoundError,
    WriteFailedError,
)
from sessionkeeper.eviction import Verdict
from sessionkeeper.lifecycle import SessionStoreLifecycleManager


def read_root(path):
    return json.loads(path.read_text(encoding="utf-8"))


@pytest.fixture
def manager_for(clock):
    def build(store, **config):
        return SessionStoreLifecycleManager(store, config=MaintenanceConfig(**config), clock=clock)

    return build


class TestAnalyze:
    def test_analyze_does_not_write(self, write_store, manager_for, now, epoch_ms):
        store = write_store(
            [
                {"id": 1, "data": {"lastOtpSent": epoch_ms(now - timedelta(days=10))}},
                {"id": 2, "data": {"lastOtpSent": epoch_ms(now)}},
            ]
        )
        original = store.read_bytes()

        report = manager_for(store).analyze()

        assert report.stats.total == 2
        assert report.stats.count_older_than_max_age == 1
        assert report.estimated_savings_bytes > 0
        assert store.read_bytes() == original
        assert not (store.parent / "backups").exists()


class TestCleanup:
    def test_expired_sessions_are_removed(self, write_store, manager_for, now, epoch_ms, big_catalog):
        fresh = {"language": "ru", "lastOtpSent": epoch_ms(now - timedelta(hours=1))}
        store = write_store(
            [
                {"id": "old", "data": {"lastOtpSent": epoch_ms(now - timedelta(days=10))}},
                {
                    "id": "idle",
                    "data": {
                        "cart": {"items": [], "updatedAt": (now - timedelta(hours=30)).isoformat()},
                        "products": big_catalog,
                    },
                },
                {"id": "fresh", "data": fresh},
            ],
            version=3,
        )
        original = store.read_bytes()

        report = manager_for(store).cleanup()

        assert report.removed_count == 2
        assert [(r.id, r.verdict) for r in report.removed] == [
            ("old", Verdict.EXPIRE_OLD),
            ("idle", Verdict.EXPIRE_IDLE),
        ]
        assert report.optimized_count == 0
        assert report.backup_path.read_bytes() == original
        assert report.delta.sessions_removed == 2

        root = read_root(store)
        assert root == {"version": 3, "sessions": [{"id": "fresh", "data": fresh}]}

    def test_large_session_is_compacted(self, write_store, manager_for, now, epoch_ms, big_catalog):
        data = {"language": "ru", "lastOtpSent": epoch_ms(now), "products": big_catalog}
        store = write_store([{"id": 7, "data": data}])

        report = manager_for(store).cleanup()

        assert report.optimized_count == 1
        assert report.optimized[0].compression_ratio > 90
        assert "products" in report.optimized[0].dropped_fields
        assert read_root(store)["sessions"] == [
            {"id": 7, "data": {"language": "ru", "lastOtpSent": epoch_ms(now)}}
        ]
        assert report.delta.bytes_saved > 0

    def test_small_saving_leaves_session_unchanged(self, write_store, manager_for, now, epoch_ms):
        data = {"lastOtpSent": epoch_ms(now), "payload": "x" * 2000, "step": "s" * 90}
        store = write_store([{"id": 1, "data": data}])

        report = manager_for(store, session_size_threshold_bytes=1000).cleanup()

        assert report.optimized_count == 0
        assert report.optimization_rejected == 1
        assert read_root(store)["sessions"][0]["data"] == data

    def test_write_failure_restores_store(self, write_store, manager_for, now, epoch_ms, monkeypatch):
        store = write_store([{"id": 1, "data": {"lastOtpSent": epoch_ms(now - timedelta(days=30))}}])
        original = store.read_bytes()

        def broken_write(path, document):
            path.write_text("{ truncated")
            raise WriteFailedError("disk full")

        monkeypatch.setattr("sessionkeeper.lifecycle.write_store", broken_write)

        with pytest.raises(WriteFailedError):
            manager_for(store).cleanup()

        assert store.read_bytes() == original

    def test_backup_failure_leaves_store_untouched(self, write_store, now, epoch_ms, clock, tmp_path):
        store = write_store([{"id": 1, "data": {"lastOtpSent": epoch_ms(now - timedelta(days=30))}}])
        original = store.read_bytes()
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        manager = SessionStoreLifecycleManager(store, backups=BackupManager(blocker), clock=clock)

        with pytest.raises(BackupFailedError):
            manager.cleanup()

        assert store.read_bytes() == original

    def test_malformed_store_is_not_touched(self, tmp_path, manager_for):
        store = tmp_path / "sessions.json"
        store.write_text("[]")

        with pytest.raises(MalformedStoreError):
            manager_for(store).cleanup()

        assert store.read_text() == "[]"
        assert not (tmp_path / "backups").exists()

    def test_missing_store(self, tmp_path, manager_for):
        with pytest.raises(StoreNotFoundError):
            manager_for(tmp_path / "sessions.json").cleanup()

    def test_empty_store(self, write_store, manager_for):
        store = write_store([])

        report = manager_for(store).cleanup()

        assert report.removed_count == 0
        assert read_root(store) == {"sessions": []}


class TestMigrate:
    def test_sessions_are_rewritten(self, write_store, manager_for):
        store = write_store(
            [
                {"id": 1, "data": {"selectedCity": {"id": 4, "name": "Tashkent"}, "registered": 1}},
                {"id": 2, "data": {"language": "de", "coordinates": {"latitude": 95, "longitude": 10}}},
            ]
        )

        report = manager_for(store).migrate()

        assert report.migrated_count == 2
        assert report.failed_count == 0
        assert report.backup_path.exists()
        sessions = read_root(store)["sessions"]
        assert sessions[0]["data"]["selectedCity"] == 4
        assert sessions[0]["data"]["registered"] is True
        assert sessions[1]["data"]["language"] == "en"
        assert "coordinates" not in sessions[1]["data"]

    def test_failed_record_is_kept_as_is(self, write_store, manager_for):
        # price x quantity overflows to infinity, so the cart total cannot validate
        broken = {"cart": {"items": [{"id": 1, "name": "Pizza", "price": 1e308, "quantity": 10}]}}
        store = write_store(
            [
                {"id": "ok", "data": {"language": "xx"}},
                {"id": "bad", "data": broken},
                {"id": "also-ok", "data": {"registered": 1}},
            ]
        )

        report = manager_for(store).migrate()

        assert report.migrated_count == 2
        assert report.failed_count == 1
        assert report.failures[0].id == "bad"
        sessions = read_root(store)["sessions"]
        assert sessions[0]["data"]["language"] == "en"
        assert sessions[1] == {"id": "bad", "data": broken}
        assert sessions[2]["data"]["registered"] is True

    def test_oversized_integers_do_not_abort_the_batch(self, write_store, manager_for):
        store = write_store(
            [
                {"id": "ok", "data": {"language": "ru"}},
                {"id": "big", "data": {"otpRetries": 10**400, "lastOtpSent": 10**400}},
            ]
        )

        report = manager_for(store).migrate()

        assert report.migrated_count == 2
        assert report.failed_count == 0
        migrated = read_root(store)["sessions"][1]["data"]
        assert migrated["otpRetries"] == 0
        assert "lastOtpSent" not in migrated

    def test_cleanup_survives_oversized_cart_prices(self, write_store, manager_for, now, epoch_ms):
        items = [{"id": i, "name": f"item {i}", "price": 10, "quantity": 1} for i in range(1, 26)]
        items[-1]["price"] = 10**400
        data = {"lastOtpSent": epoch_ms(now), "cart": {"items": items, "total": 0}}
        store = write_store([{"id": 1, "data": data}])

        report = manager_for(
            store, session_size_threshold_bytes=0, compression_acceptance_threshold_percent=1
        ).cleanup()

        assert report.removed_count == 0
        cart = read_root(store)["sessions"][0]["data"]["cart"]
        assert len(cart["items"]) == 20
        assert cart["total"] == 19 * 10


class TestRestore:
    def test_restore_latest_backup(self, write_store, manager_for, now, epoch_ms):
        store = write_store([{"id": 1, "data": {"lastOtpSent": epoch_ms(now - timedelta(days=30))}}])
        original = store.read_bytes()
        manager = manager_for(store)
        report = manager.cleanup()
        assert read_root(store)["sessions"] == []

        source = manager.restore()

        assert source == report.backup_path
        assert store.read_bytes() == original
        assert len(manager.backups.list_backups(store)) == 2

    def test_restore_without_backups(self, write_store, manager_for):
        with pytest.raises(BackupFailedError, match="No backups found"):
            manager_for(write_store([])).restore()

    def test_restore_missing_backup_file(self, write_store, manager_for, tmp_path):
        with pytest.raises(BackupFailedError, match="Backup not found"):
            manager_for(write_store([])).restore(tmp_path / "missing.json")
