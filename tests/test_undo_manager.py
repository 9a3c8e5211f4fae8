"""Tests for the bounded undo history."""

import json

import pytest

from refactor_engine.history import (
    MAX_UNDO_STACK_SIZE,
    HistoryError,
    SnapshotDecodeError,
    UndoManager,
    take_snapshot,
)
from refactor_engine.models import ProjectFile

from conftest import make_project


def versioned(version: int):
    return make_project(library={"lib.js": f"v{version}"})


class TestUndoManager:
    def test_default_capacity_is_ten(self):
        assert UndoManager().capacity == MAX_UNDO_STACK_SIZE == 10

    def test_eleventh_push_evicts_oldest(self):
        manager = UndoManager()
        for version in range(1, 12):
            manager.push_project(versioned(version))
        assert len(manager) == 10
        contents = [s.project.library_files[0].content for s in manager.snapshots()]
        assert contents == [f"v{v}" for v in range(2, 12)]

    def test_pop_is_lifo(self):
        manager = UndoManager()
        manager.push_project(versioned(1))
        manager.push_project(versioned(2))
        assert manager.pop().project.library_files[0].content == "v2"
        assert manager.pop().project.library_files[0].content == "v1"
        assert manager.pop() is None
        assert not manager.can_undo

    def test_snapshot_is_deep_copy(self):
        project = versioned(1)
        manager = UndoManager()
        manager.push_project(project)
        project.library_files.append(ProjectFile(name="new.js", content=""))
        assert len(manager.peek().project.library_files) == 1

    def test_peek_does_not_remove(self):
        manager = UndoManager()
        manager.push(take_snapshot(versioned(1)))
        assert manager.peek() is not None
        assert len(manager) == 1

    def test_clear(self):
        manager = UndoManager()
        manager.push_project(versioned(1))
        manager.clear()
        assert len(manager) == 0

    def test_invalid_capacity(self):
        with pytest.raises(HistoryError):
            UndoManager(capacity=0)


class TestSerialization:
    def test_json_round_trip(self, sample_project):
        manager = UndoManager()
        manager.push_project(sample_project)
        manager.push_project(versioned(2))

        restored = UndoManager.from_json(manager.to_json())

        assert len(restored) == 2
        assert restored.snapshots() == manager.snapshots()

    def test_from_list(self):
        manager = UndoManager()
        manager.push_project(versioned(1))
        restored = UndoManager.from_json(manager.to_list())
        assert restored.peek().project.library_files[0].content == "v1"

    def test_from_json_trims_to_capacity(self):
        manager = UndoManager()
        for version in range(1, 6):
            manager.push_project(versioned(version))
        restored = UndoManager.from_json(manager.to_json(), capacity=3)
        contents = [s.project.library_files[0].content for s in restored.snapshots()]
        assert contents == ["v3", "v4", "v5"]

    def test_camel_case_snapshots_accepted(self):
        payload = json.dumps(
            [{"project": {"libraryFiles": [{"name": "a.js", "content": "x", "changesCount": 2}]}}]
        )
        restored = UndoManager.from_json(payload)
        assert restored.peek().project.library_files[0].changes_count == 2

    def test_invalid_json_raises(self):
        with pytest.raises(SnapshotDecodeError):
            UndoManager.from_json("{not json")

    def test_invalid_shape_raises(self):
        with pytest.raises(SnapshotDecodeError):
            UndoManager.from_json([{"project": {"library_files": "nope"}}])

    def test_decode_error_is_history_error(self):
        assert issubclass(SnapshotDecodeError, HistoryError)
