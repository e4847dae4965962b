"""Tests for the connection tracker."""

import threading

import pytest

from querycore.config.models import TrackerConfig
from querycore.core.exceptions import ErrorKind
from querycore.database import tracker as tracker_module
from querycore.database.tracker import AttemptStatus, ConnectionTracker, get_default_tracker


class TestConnectionTracker:
    """Test cases for ConnectionTracker."""

    def test_tracking_id_format(self, tracker, mysql_profile, mongo_profile):
        first = tracker.start_attempt(mysql_profile, "MySQL")
        second = tracker.start_attempt(mongo_profile, "MongoDB")

        assert first == "MySQL-1"
        assert second == "MongoDB-2"
        assert tracker.get_status(first) is AttemptStatus.CONNECTING

    def test_success_lifecycle(self, tracker, mysql_profile):
        tracking_id = tracker.start_attempt(mysql_profile, "MySQL")
        tracker.record_success(tracking_id, "MySQL 8.0.36")

        entry = tracker.detailed_history()[0]
        assert entry["status"] == "SUCCESS"
        assert entry["details"] == "MySQL 8.0.36"
        assert entry["duration_ms"] >= 0
        assert entry["has_credentials"] is True

        tracker.record_disconnect(tracking_id)
        assert tracker.get_status(tracking_id) is AttemptStatus.DISCONNECTED

    def test_failure_keeps_error_type(self, tracker, mysql_profile):
        tracking_id = tracker.start_attempt(mysql_profile, "MySQL")
        tracker.record_failure(tracking_id, "Authentication failed", ErrorKind.AUTH_FAILED)

        entry = tracker.detailed_history()[0]
        assert entry["status"] == "FAILED"
        assert entry["error_type"] == "AUTH_FAILED"
        assert entry["error_details"] == "Authentication failed"
        assert tracker.stats()["failed"] == 1

    def test_disconnect_of_failed_attempt_is_ignored(self, tracker, mysql_profile):
        tracking_id = tracker.start_attempt(mysql_profile, "MySQL")
        tracker.record_failure(tracking_id, "refused")
        tracker.record_disconnect(tracking_id)

        assert tracker.get_status(tracking_id) is AttemptStatus.FAILED

    def test_outcome_recorded_once(self, tracker, mysql_profile):
        tracking_id = tracker.start_attempt(mysql_profile, "MySQL")
        tracker.record_success(tracking_id, "v1")
        tracker.record_failure(tracking_id, "late failure")

        stats = tracker.stats()
        assert stats["successful"] == 1
        assert stats["failed"] == 0
        assert tracker.get_status(tracking_id) is AttemptStatus.SUCCESS

    def test_unknown_id_is_noop(self, tracker):
        tracker.record_success("MySQL-99")
        tracker.record_failure("MySQL-99", "nope")
        tracker.record_disconnect("MySQL-99")

        assert tracker.get_status("MySQL-99") is None
        assert tracker.stats()["total_attempts"] == 0

    def test_history_is_bounded(self, tracker, mysql_profile):
        ids = [tracker.start_attempt(mysql_profile, "MySQL") for _ in range(25)]

        history = tracker.detailed_history()
        assert len(history) == 20
        assert [entry["id"] for entry in history] == ids[5:]
        for evicted in ids[:5]:
            assert tracker.get_status(evicted) is None
        assert tracker.stats()["total_attempts"] == 25

    def test_custom_capacity(self, mysql_profile):
        tracker = ConnectionTracker(TrackerConfig(history_size=3))
        for _ in range(5):
            tracker.start_attempt(mysql_profile, "MySQL")

        assert tracker.capacity == 3
        assert len(tracker.detailed_history()) == 3

    def test_password_never_stored(self, tracker, mysql_profile):
        tracker.start_attempt(mysql_profile, "MySQL")

        entry = tracker.detailed_history()[0]
        assert "password" not in entry
        assert "x" not in entry.values()

    def test_summary(self, tracker, mysql_profile, mongo_profile):
        ok = tracker.start_attempt(mysql_profile, "MySQL")
        tracker.record_success(ok, "MySQL 8.0")
        bad = tracker.start_attempt(mongo_profile, "MongoDB")
        tracker.record_failure(bad, "refused", ErrorKind.TIMEOUT)

        summary = tracker.summary()
        assert "Connection Statistics:" in summary
        assert "- Total connection attempts: 2" in summary
        assert "- Successful connections: 1" in summary
        assert "- Failed connections: 1" in summary
        assert "- Success rate: 50.0%" in summary
        lines = summary.splitlines()
        history_start = lines.index("Recent Connection History (most recent first):")
        assert "MongoDB - mongo.example:27017 - FAILED" in lines[history_start + 1]
        assert "Error: TIMEOUT" in lines[history_start + 1]
        assert "MySQL - db.example:3306 - SUCCESS" in lines[history_start + 2]

    def test_summary_without_success_omits_rate(self, tracker, mysql_profile):
        tracker.record_failure(tracker.start_attempt(mysql_profile, "MySQL"), "refused")

        assert "Success rate" not in tracker.summary()

    def test_reset_keeps_ids_increasing(self, tracker, mysql_profile):
        tracker.start_attempt(mysql_profile, "MySQL")
        tracker.reset()

        assert tracker.detailed_history() == []
        assert tracker.stats()["total_attempts"] == 0
        assert tracker.start_attempt(mysql_profile, "MySQL") == "MySQL-2"

    def test_concurrent_attempts_get_unique_ids(self, mysql_profile):
        tracker = ConnectionTracker(TrackerConfig(history_size=500))
        ids = []
        lock = threading.Lock()

        def worker():
            for _ in range(50):
                tracking_id = tracker.start_attempt(mysql_profile, "MySQL")
                with lock:
                    ids.append(tracking_id)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(set(ids)) == 200
        assert tracker.stats()["total_attempts"] == 200


class TestDefaultTracker:
    """Test the process-wide tracker accessor."""

    @pytest.fixture(autouse=True)
    def reset_default(self, monkeypatch):
        monkeypatch.setattr(tracker_module, "_default_tracker", None)

    def test_singleton(self):
        assert get_default_tracker() is get_default_tracker()

    def test_config_applies_on_creation_only(self):
        first = get_default_tracker(TrackerConfig(history_size=7))
        second = get_default_tracker(TrackerConfig(history_size=3))

        assert first is second
        assert second.capacity == 7
