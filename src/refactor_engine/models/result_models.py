"""Outcome models for the self-correction loop and session calls."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from refactor_engine.models.change_models import Change, ManualStep, ProjectFile
from refactor_engine.models.patch_models import FailedChange


class ApplyMode(str, Enum):
    """How a set of changes is committed."""

    ATOMIC = "atomic"  # Main change and related changes land together or not at all
    PARTIAL = "partial"  # Whatever validates is committed, the rest is reported


class OutcomeStatus(str, Enum):
    COMMITTED = "committed"
    EXHAUSTED = "exhausted"
    CONFLICT = "conflict"
    GENERATOR_FAILED = "generator_failed"


class CorrectionOutcome(BaseModel):
    model_config = ConfigDict(frozen=False)

    status: OutcomeStatus
    files: list[ProjectFile]  # Counter-annotated files when COMMITTED, input files otherwise
    applied: list[Change] = Field(default_factory=list)
    failed: list[FailedChange] = Field(default_factory=list)
    touched_files: list[str] = Field(default_factory=list)
    changes: list[Change] = Field(default_factory=list)  # Final candidate list
    attempts: int = 0
    errors: list[str] = Field(default_factory=list)

    @property
    def committed(self) -> bool:
        return self.status == OutcomeStatus.COMMITTED


class ApplyReport(BaseModel):
    """Returned to the caller after a committed session call."""

    model_config = ConfigDict(frozen=False)

    applied: list[Change] = Field(default_factory=list)
    failed: list[FailedChange] = Field(default_factory=list)
    touched_files: list[str] = Field(default_factory=list)
    manual_steps: list[ManualStep] = Field(default_factory=list)
    attempts: int = 1
    warnings: list[str] = Field(default_factory=list)
