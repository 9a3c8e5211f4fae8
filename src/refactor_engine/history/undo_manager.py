"""Bounded LIFO stack of whole-project snapshots."""

import json

import structlog
from pydantic import TypeAdapter, ValidationError

from refactor_engine.history.exceptions import HistoryError, SnapshotDecodeError
from refactor_engine.models import ProjectState, UndoState

logger = structlog.get_logger(__name__)

MAX_UNDO_STACK_SIZE = 10

_SNAPSHOT_LIST = TypeAdapter(list[UndoState])


def take_snapshot(project: ProjectState) -> UndoState:
    """Deep, independent copy of ``project`` suitable for the undo stack."""
    return UndoState(project=project.model_copy(deep=True))


class UndoManager:
    """Owns the undo history for one session.

    The oldest snapshot is evicted when a push would exceed ``capacity``.
    There is no redo.
    """

    def __init__(self, capacity: int = MAX_UNDO_STACK_SIZE) -> None:
        if capacity < 1:
            raise HistoryError(f"Undo capacity must be at least 1, got {capacity}")
        self.capacity: int = capacity
        self._stack: list[UndoState] = []

    def __len__(self) -> int:
        return len(self._stack)

    @property
    def can_undo(self) -> bool:
        return bool(self._stack)

    def push(self, snapshot: UndoState) -> None:
        self._stack.append(snapshot.model_copy(deep=True))
        if len(self._stack) > self.capacity:
            self._stack.pop(0)
            logger.debug("Evicted oldest undo snapshot", capacity=self.capacity)
        logger.debug("Pushed undo snapshot", depth=len(self._stack))

    def push_project(self, project: ProjectState) -> None:
        self.push(take_snapshot(project))

    def pop(self) -> UndoState | None:
        """Remove and return the most recent snapshot, or None if empty."""
        if not self._stack:
            return None
        snapshot = self._stack.pop()
        logger.debug("Popped undo snapshot", depth=len(self._stack))
        return snapshot

    def peek(self) -> UndoState | None:
        if not self._stack:
            return None
        return self._stack[-1].model_copy(deep=True)

    def clear(self) -> None:
        self._stack.clear()

    def snapshots(self) -> list[UndoState]:
        """Copies of all snapshots, oldest first."""
        return [snapshot.model_copy(deep=True) for snapshot in self._stack]

    def to_json(self) -> str:
        """Serialize the stack, oldest first."""
        return _SNAPSHOT_LIST.dump_json(self._stack).decode("utf-8")

    def to_list(self) -> list[dict]:
        return _SNAPSHOT_LIST.dump_python(self._stack, mode="json")

    @classmethod
    def from_json(
        cls,
        payload: str | bytes | list,
        capacity: int = MAX_UNDO_STACK_SIZE,
    ) -> "UndoManager":
        """Rebuild a manager from ``to_json`` / ``to_list`` output.

        Raises:
            SnapshotDecodeError: If the payload is not a valid snapshot list.
        """
        try:
            if isinstance(payload, (str, bytes)):
                payload = json.loads(payload)
            snapshots = _SNAPSHOT_LIST.validate_python(payload)
        except (json.JSONDecodeError, ValidationError) as exc:
            raise SnapshotDecodeError(f"Invalid undo history: {exc}") from exc

        manager = cls(capacity=capacity)
        manager._stack = snapshots[-capacity:]
        return manager
