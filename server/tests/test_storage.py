"""Tests for session storage and activity stamping."""

import itertools
import json
import threading

from pantry_auth.storage import (
    ACTIVITY_KEY,
    LANGUAGE_KEY,
    ActivityTrackingStorage,
    FileStorage,
    MemoryStorage,
)

from conftest import SESSION_KEY


class TestFileStorage:
    """Tests for FileStorage."""

    def test_survives_restart(self, tmp_path):
        path = tmp_path / "state" / "session.json"
        FileStorage(path).set_item(SESSION_KEY, "blob")

        assert FileStorage(path).get_item(SESSION_KEY) == "blob"

    def test_remove_item(self, tmp_path):
        path = tmp_path / "session.json"
        storage = FileStorage(path)
        storage.set_item("a", "1")
        storage.remove_item("a")

        assert FileStorage(path).get_item("a") is None
        storage.remove_item("missing")

    def test_unreadable_file_starts_empty(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{not json", encoding="utf-8")

        assert FileStorage(path).get_item(SESSION_KEY) is None

    def test_non_object_file_starts_empty(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text(json.dumps(["a"]), encoding="utf-8")

        assert FileStorage(path).get_item("a") is None

    def test_concurrent_writers(self, tmp_path):
        path = tmp_path / "session.json"
        storage = FileStorage(path)
        errors: list[Exception] = []

        def _writer(n: int) -> None:
            try:
                for i in range(300):
                    storage.set_item(f"key-{n}", str(i))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=_writer, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        reloaded = FileStorage(path)
        assert [reloaded.get_item(f"key-{n}") for n in range(4)] == ["299"] * 4


class TestActivityTrackingStorage:
    """Tests for ActivityTrackingStorage."""

    def test_session_write_stamps_activity(self, storage, clock):
        storage.set_item(SESSION_KEY, "blob")

        assert storage.get_item(SESSION_KEY) == "blob"
        assert storage.last_activity() == clock.now

    def test_other_writes_do_not_stamp(self, storage):
        storage.set_item(LANGUAGE_KEY, "es")

        assert storage.last_activity() is None

    def test_stamp_never_moves_backwards(self, clock):
        inner = MemoryStorage()
        storage = ActivityTrackingStorage(inner, SESSION_KEY, clock=clock)
        storage.stamp_activity()
        stamped = clock.now

        clock.advance(-5_000)
        storage.stamp_activity()

        assert storage.last_activity() == stamped

    def test_concurrent_stamps_stay_ordered(self):
        written: list[int] = []

        class _RecordingStorage(MemoryStorage):
            def set_item(self, key: str, value: str) -> None:
                super().set_item(key, value)
                if key == ACTIVITY_KEY:
                    written.append(int(value))

        ticks = itertools.count(1)
        storage = ActivityTrackingStorage(
            _RecordingStorage(), SESSION_KEY, clock=lambda: next(ticks)
        )

        def _stamper() -> None:
            for _ in range(200):
                storage.stamp_activity()

        threads = [threading.Thread(target=_stamper) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert written == sorted(written)
        assert storage.last_activity() == max(written)

    def test_malformed_timestamp_reads_as_missing(self, storage):
        storage.inner.set_item(ACTIVITY_KEY, "yesterday")

        assert storage.last_activity() is None

    def test_clear_local_state(self, storage):
        storage.set_item(SESSION_KEY, "blob")
        storage.set_item(LANGUAGE_KEY, "fr")
        storage.set_item("unrelated", "keep")

        storage.clear_local_state()

        assert storage.get_item(SESSION_KEY) is None
        assert storage.get_item(ACTIVITY_KEY) is None
        assert storage.get_item(LANGUAGE_KEY) is None
        assert storage.get_item("unrelated") == "keep"
