"""Data models for the refactor engine."""

from refactor_engine.models.change_models import (
    BatchInstruction,
    BatchRefactorResult,
    Change,
    ManualStep,
    ProjectFile,
    RefactorResult,
)
from refactor_engine.models.patch_models import (
    ApplyPass,
    FailedChange,
    FailureReason,
    FileApplyResult,
    Patch,
)
from refactor_engine.models.project_models import (
    Analysis,
    FileAnalysis,
    FixReference,
    ProjectState,
    Recommendation,
    SuggestedFix,
    UndoState,
)
from refactor_engine.models.result_models import (
    ApplyMode,
    ApplyReport,
    CorrectionOutcome,
    OutcomeStatus,
)

__all__ = [
    "Analysis",
    "ApplyMode",
    "ApplyPass",
    "ApplyReport",
    "BatchInstruction",
    "BatchRefactorResult",
    "Change",
    "CorrectionOutcome",
    "FailedChange",
    "FailureReason",
    "FileAnalysis",
    "FileApplyResult",
    "FixReference",
    "ManualStep",
    "OutcomeStatus",
    "Patch",
    "ProjectFile",
    "ProjectState",
    "Recommendation",
    "RefactorResult",
    "SuggestedFix",
    "UndoState",
]
