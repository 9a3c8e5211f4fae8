"""Exceptions for undo history operations."""


class HistoryError(Exception):
    """Base exception for undo history operations."""


class SnapshotDecodeError(HistoryError):
    """Raised when a persisted undo stack cannot be decoded."""
