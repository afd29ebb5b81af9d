"""
Tests for the local store and debounced pending writes.
"""

import sqlite3
import time

from pantry_pal.data.storage import BUDGET_KEY, LocalStore, PendingWrites


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


class TestPendingWrites:

    def test_new_write_supersedes_pending_one(self):
        pending = PendingWrites(1.0, clock=FakeClock())
        pending.schedule("k", 1)
        pending.schedule("k", 2)
        assert len(pending) == 1
        assert pending.peek("k") == 2

    def test_due_only_returns_elapsed_writes(self):
        clock = FakeClock()
        pending = PendingWrites(1.0, clock=clock)
        pending.schedule("a", 1)
        clock.now = 0.5
        pending.schedule("b", 2)

        clock.now = 1.0
        assert pending.due() == [("a", 1)]
        assert "a" not in pending
        assert "b" in pending

    def test_drain_returns_everything(self):
        pending = PendingWrites(10.0, clock=FakeClock())
        pending.schedule("a", 1)
        pending.schedule("b", 2)
        assert sorted(pending.drain()) == [("a", 1), ("b", 2)]
        assert len(pending) == 0

    def test_cancel(self):
        pending = PendingWrites(1.0, clock=FakeClock())
        pending.schedule("a", 1)
        assert pending.cancel("a")
        assert not pending.cancel("a")


class TestLocalStore:

    def test_creates_database_file(self, temp_data_dir):
        store = LocalStore(db_dir=temp_data_dir)
        assert store.available
        assert store.db_path.exists()

        with sqlite3.connect(store.db_path) as conn:
            tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        assert {"app_state", "api_cache"} <= tables

    def test_set_and_get_json_values(self, store):
        store.set("available_ingredients", ["chicken", "rice"])
        assert store.get("available_ingredients") == ["chicken", "rice"]
        assert store.get("missing", default=[]) == []

    def test_values_survive_reopen(self, temp_data_dir):
        LocalStore(db_dir=temp_data_dir).set(BUDGET_KEY, 55.0)
        assert LocalStore(db_dir=temp_data_dir).get(BUDGET_KEY) == 55.0

    def test_corrupt_value_is_treated_as_absent(self, store):
        with sqlite3.connect(store.db_path) as conn:
            conn.execute(
                "INSERT INTO app_state (key, value, updated_at) VALUES (?, ?, ?)",
                ("broken", "{not json", "2025-01-01"),
            )
        assert store.get("broken", default="fallback") == "fallback"

    def test_unserializable_value_is_logged_not_raised(self, store):
        assert store.write_now("bad", object()) is False
        assert store.get("bad") is None

    def test_delete(self, store):
        store.set("k", 1)
        store.delete("k")
        assert store.get("k") is None

    def test_debounced_writes_are_visible_before_flush(self, temp_data_dir):
        clock = FakeClock()
        store = LocalStore(db_dir=temp_data_dir, debounce_seconds=0.5, clock=clock, autoflush=False)
        store.set(BUDGET_KEY, 40.0)

        assert store.get(BUDGET_KEY) == 40.0
        assert LocalStore(db_dir=temp_data_dir).get(BUDGET_KEY) is None

    def test_flush_due_writes_after_delay(self, temp_data_dir):
        clock = FakeClock()
        store = LocalStore(db_dir=temp_data_dir, debounce_seconds=0.5, clock=clock, autoflush=False)
        store.set(BUDGET_KEY, 40.0)

        assert store.flush_due() == 0
        clock.now = 0.6
        assert store.flush_due() == 1
        assert LocalStore(db_dir=temp_data_dir).get(BUDGET_KEY) == 40.0

    def test_flush_writes_final_value(self, temp_data_dir):
        store = LocalStore(db_dir=temp_data_dir, debounce_seconds=60, clock=FakeClock())
        store.set(BUDGET_KEY, 10.0)
        store.set(BUDGET_KEY, 20.0)

        assert store.flush() == 1
        assert LocalStore(db_dir=temp_data_dir).get(BUDGET_KEY) == 20.0

    def test_unavailable_store_keeps_working_in_memory(self, mocker, temp_data_dir):
        mocker.patch.object(LocalStore, "_init_database", side_effect=sqlite3.OperationalError("locked"))
        store = LocalStore(db_dir=temp_data_dir)

        assert not store.available
        assert store.write_now("k", 1) is False
        assert store.get("k", default="none") == "none"

    def test_timer_writes_due_value_without_further_calls(self, temp_data_dir):
        store = LocalStore(db_dir=temp_data_dir, debounce_seconds=0.05)
        store.set(BUDGET_KEY, 42.0)

        reader = LocalStore(db_dir=temp_data_dir)
        deadline = time.monotonic() + 5
        while reader.get(BUDGET_KEY) is None and time.monotonic() < deadline:
            time.sleep(0.02)

        assert reader.get(BUDGET_KEY) == 42.0
        assert len(store.pending) == 0

    def test_timer_keeps_latest_value_after_superseding_write(self, temp_data_dir):
        store = LocalStore(db_dir=temp_data_dir, debounce_seconds=0.05)
        store.set(BUDGET_KEY, 10.0)
        store.set(BUDGET_KEY, 20.0)

        reader = LocalStore(db_dir=temp_data_dir)
        deadline = time.monotonic() + 5
        while reader.get(BUDGET_KEY) != 20.0 and time.monotonic() < deadline:
            time.sleep(0.02)

        assert reader.get(BUDGET_KEY) == 20.0

    def test_flush_stops_the_timer(self, temp_data_dir):
        store = LocalStore(db_dir=temp_data_dir, debounce_seconds=60)
        store.set(BUDGET_KEY, 5.0)
        assert store._timer is not None

        store.flush()

        assert store._timer is None
        assert LocalStore(db_dir=temp_data_dir).get(BUDGET_KEY) == 5.0
