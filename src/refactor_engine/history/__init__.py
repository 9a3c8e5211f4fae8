"""Undo history for committed batches."""

from refactor_engine.history.exceptions import HistoryError, SnapshotDecodeError
from refactor_engine.history.undo_manager import (
    MAX_UNDO_STACK_SIZE,
    UndoManager,
    take_snapshot,
)

__all__ = [
    "HistoryError",
    "MAX_UNDO_STACK_SIZE",
    "SnapshotDecodeError",
    "UndoManager",
    "take_snapshot",
]
