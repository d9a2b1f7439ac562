import json

from subtrans.core.storage import (
    BatchProgressKey,
    BatchProgressRecord,
    BatchProgressStore,
    JsonFileStore,
    MemoryStore,
    PreferenceStore,
)

KEY = BatchProgressKey(file_name="episode01.ass", file_size=2048)


def test_json_file_store_round_trip(tmp_path) -> None:
    path = tmp_path / "nested" / "state.json"
    store = JsonFileStore(path)

    store.set("a", "1")
    store.set("b", "2")
    store.remove("a")
    store.remove("missing")

    assert store.get("a") is None
    assert JsonFileStore(path).get("b") == "2"
    assert json.loads(path.read_text(encoding="utf-8")) == {"b": "2"}


def test_json_file_store_treats_corrupt_file_as_empty(tmp_path) -> None:
    path = tmp_path / "state.json"
    path.write_text("{broken", encoding="utf-8")
    store = JsonFileStore(path)

    assert store.get("a") is None
    store.set("a", "1")
    assert store.get("a") == "1"


def test_progress_key_format() -> None:
    assert KEY.storage_key == "progress_episode01.ass_2048"


def test_progress_round_trip() -> None:
    progress = BatchProgressStore(MemoryStore())

    progress.save(KEY, ["a", None, "c"])
    record = progress.load(KEY, expected_lines=3)

    assert record is not None
    assert record.lines == ["a", None, "c"]
    assert record.completed_count == 2


def test_progress_of_other_length_is_ignored() -> None:
    progress = BatchProgressStore(MemoryStore())
    progress.save(KEY, ["a", None])

    assert progress.load(KEY, expected_lines=3) is None


def test_corrupt_progress_is_ignored() -> None:
    store = MemoryStore({KEY.storage_key: '{"lines": 5}'})

    assert BatchProgressStore(store).load(KEY, expected_lines=5) is None


def test_progress_clear() -> None:
    store = MemoryStore()
    progress = BatchProgressStore(store)
    progress.save(KEY, ["a"])

    progress.clear(KEY)

    assert progress.load(KEY, expected_lines=1) is None


def test_progress_save_failure_is_not_raised() -> None:
    class FailingStore(MemoryStore):
        def set(self, key: str, value: str) -> None:
            raise OSError("read-only")

    BatchProgressStore(FailingStore()).save(KEY, ["a"])


def test_record_timestamp_defaults_to_now() -> None:
    assert BatchProgressRecord(lines=[]).timestamp > 0


def test_preference_flags() -> None:
    store = MemoryStore()
    preferences = PreferenceStore(store)

    assert preferences.get_flag("focus_mode") is False
    assert preferences.get_flag("focus_mode", default=True) is True

    preferences.set_flag("focus_mode", True)

    assert preferences.get_flag("focus_mode") is True
    assert store.get("pref_focus_mode") == "true"
