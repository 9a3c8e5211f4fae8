"""Exceptions for orchestrator operations."""

from refactor_engine.models import FailedChange
from refactor_engine.patching.classifier import failed_file_names


class OrchestratorError(Exception):
    """Base exception for all orchestrator operations."""


class GraphBuildError(OrchestratorError):
    """Raised when graph construction fails."""


class MissingContextError(OrchestratorError):
    """Raised when a request references analysis data or a generator that is absent."""


class RefactorApplyError(OrchestratorError):
    """Raised when a batch ends without a commit.

    Carries the still-failing changes so callers can show exactly which
    files and snippets could not be reconciled.
    """

    def __init__(
        self,
        message: str,
        failed: list[FailedChange] | None = None,
        attempts: int = 0,
    ) -> None:
        super().__init__(message)
        self.failed: list[FailedChange] = list(failed or [])
        self.attempts: int = attempts

    @property
    def failed_files(self) -> list[str]:
        return failed_file_names(self.failed)


class CorrectionLoopExhaustedError(RefactorApplyError):
    """Raised when failures remain after the last correction attempt."""


class PatchConflictError(RefactorApplyError):
    """Raised when changes of one recommendation overlap each other."""


class CorrectionRequestError(RefactorApplyError):
    """Raised when the change generator fails during self-correction."""
