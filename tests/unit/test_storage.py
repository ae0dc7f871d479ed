"""
Tests for key/value storage and sequence library persistence.

Storage trouble never raises: it comes back as a StorageResult and the
in-memory library carries on.
"""
import json

from chronus import (
    ChronusEngine,
    EventBus,
    EventKind,
    KeyValueStorage,
    MemoryStorage,
    SequenceLibrary,
    SqliteStorage,
    StorageErrorKind,
    StorageResult,
)
from chronus.kernel.sequences import DEFAULT_STORAGE_KEY


class BrokenStorage(KeyValueStorage):
    """Fails every read and write."""

    def read(self, key):
        return StorageResult.failure(StorageErrorKind.READ, "disk on fire")

    def write(self, key, value):
        return StorageResult.failure(StorageErrorKind.WRITE, "disk on fire")


class TestSqliteStorage:
    def test_missing_key_reads_as_none(self, temp_db):
        result = SqliteStorage(temp_db).read("nothing-here")
        assert result.ok
        assert result.data is None

    def test_write_then_read(self, temp_db):
        storage = SqliteStorage(temp_db)
        assert storage.write("k", "v1").ok
        assert storage.write("k", "v2").ok

        assert SqliteStorage(temp_db).read("k").data == "v2"

    def test_unusable_path_reports_failures(self, tmp_path):
        storage = SqliteStorage(str(tmp_path / "missing-dir" / "nope.db"))

        read = storage.read("k")
        write = storage.write("k", "v")

        assert not read.ok
        assert read.error_kind is StorageErrorKind.READ
        assert read.to_dict()["error_kind"] == "read"
        assert not write.ok
        assert write.error_kind is StorageErrorKind.WRITE

    def test_path_that_becomes_usable_is_picked_up(self, tmp_path):
        folder = tmp_path / "later"
        storage = SqliteStorage(str(folder / "chronus.db"))
        folder.mkdir()

        assert storage.write("k", "v").ok
        assert storage.read("k").data == "v"


class TestLibraryPersistence:
    def test_load_of_empty_storage(self):
        library = SequenceLibrary(MemoryStorage())
        result = library.load()
        assert result.ok
        assert len(library) == 0

    def test_malformed_json_is_a_serialization_error(self):
        library = SequenceLibrary(MemoryStorage({DEFAULT_STORAGE_KEY: "{not json"}))

        result = library.load()

        assert not result.ok
        assert result.error_kind is StorageErrorKind.SERIALIZATION
        assert len(library) == 0
        assert library.last_result is result

    def test_non_array_is_a_serialization_error(self):
        library = SequenceLibrary(MemoryStorage({DEFAULT_STORAGE_KEY: '{"id": "x"}'}))
        assert library.load().error_kind is StorageErrorKind.SERIALIZATION

    def test_invalid_entries_are_skipped(self):
        stored = json.dumps([{"id": "good", "steps": [{"id": "s"}]}, {"label": "no id"}, "junk"])
        library = SequenceLibrary(MemoryStorage({DEFAULT_STORAGE_KEY: stored}))

        result = library.load()

        assert result.ok
        assert result.data == 1
        assert "good" in library

    def test_saved_with_wire_names(self):
        storage = MemoryStorage()
        library = SequenceLibrary(storage)
        library.upsert_sequences([{"id": "m", "steps": [{"id": "s", "offsetMs": 60000}]}])

        saved = json.loads(storage.read(DEFAULT_STORAGE_KEY).data)

        assert saved == [{"id": "m", "steps": [{"id": "s", "offsetMs": 60000}]}]

    def test_custom_key(self):
        storage = MemoryStorage()
        SequenceLibrary(storage, key="other").upsert_sequences([{"id": "m"}])
        assert storage.read(DEFAULT_STORAGE_KEY).data is None
        assert storage.read("other").data is not None

    def test_failing_storage_keeps_memory_state(self):
        bus = EventBus()
        updates = []
        bus.on(EventKind.SEQUENCES_UPDATED, updates.append)
        library = SequenceLibrary(BrokenStorage(), bus)

        assert not library.load().ok
        changed = library.upsert_sequences([{"id": "m", "label": "Morning"}])

        assert changed == ["m"]
        assert library.get_sequences(["m"])[0].label == "Morning"
        assert library.last_result.error_kind is StorageErrorKind.WRITE
        assert [u.ids for u in updates] == [["m"]]


class TestLibraryOperations:
    def test_entries_without_id_are_skipped(self):
        library = SequenceLibrary()
        assert library.upsert_sequences([{"label": "anonymous"}, {"id": ""}]) == []
        assert len(library) == 0

    def test_get_returns_copies(self):
        library = SequenceLibrary()
        library.upsert_sequences([{"id": "m", "steps": [{"id": "s"}]}])

        copy = library.get_sequences()[0]
        copy.steps.append(copy.steps[0])

        assert len(library.get_sequences()[0].steps) == 1

    def test_empty_id_list_means_all(self):
        library = SequenceLibrary()
        library.upsert_sequences([{"id": "a"}, {"id": "b"}])

        assert [s.id for s in library.get_sequences([])] == ["a", "b"]
        assert [s.id for s in library.get_sequences(["b", "zzz"])] == ["b"]


class TestEnginesSharingStorage:
    def test_new_engine_sees_stored_sequences(self, temp_db):
        first = ChronusEngine(storage=SqliteStorage(temp_db))
        first.upsert_sequences([{"id": "morning", "label": "Morning"}])

        second = ChronusEngine(storage=SqliteStorage(temp_db))
        assert [s.id for s in second.get_sequences()] == ["morning"]

        second.upsert_sequences([{"id": "evening", "label": "Evening"}])

        third = ChronusEngine(storage=SqliteStorage(temp_db))
        assert sorted(s.id for s in third.get_sequences()) == ["evening", "morning"]

    def test_library_loads_on_construction(self):
        stored = json.dumps([{"id": "m", "steps": [{"id": "s"}]}])
        library = SequenceLibrary(MemoryStorage({DEFAULT_STORAGE_KEY: stored}))

        assert "m" in library
        assert library.last_result.ok

    def test_unusable_database_leaves_an_empty_library(self, tmp_path):
        engine = ChronusEngine(storage=SqliteStorage(str(tmp_path / "missing" / "x.db")))

        assert engine.get_sequences() == []
        assert engine.sequences.last_result.error_kind is StorageErrorKind.READ

        assert engine.upsert_sequences([{"id": "m"}]) == ["m"]
        assert engine.sequences.last_result.error_kind is StorageErrorKind.WRITE
