"""Models produced while resolving and applying changes."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from refactor_engine.models.change_models import Change, ProjectFile


class FailureReason(str, Enum):
    """Why a change could not be applied."""

    SNIPPET_NOT_FOUND = "snippet_not_found"
    FILE_NOT_FOUND = "file_not_found"
    OVERLAP_DISCARDED = "overlap_discarded"


class Patch(BaseModel):
    """A change located at a concrete span of a file's content."""

    model_config = ConfigDict(frozen=True)

    start: int = Field(ge=0)
    length: int = Field(ge=0)
    change: Change

    @property
    def end(self) -> int:
        return self.start + self.length

    @property
    def delta(self) -> int:
        """Length difference introduced by splicing this patch in."""
        return len(self.change.corrected_snippet) - self.length

    def overlaps(self, other: "Patch") -> bool:
        return self.start < other.end and other.start < self.end


class FailedChange(BaseModel):
    model_config = ConfigDict(frozen=True)

    change: Change
    reason: FailureReason


class FileApplyResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    new_content: str
    applied_count: int = 0


class ApplyPass(BaseModel):
    """Outcome of one resolve-and-apply pass over a whole file set."""

    model_config = ConfigDict(frozen=True)

    files: list[ProjectFile]  # Same order as the input files
    applied: list[Change] = Field(default_factory=list)
    failed: list[FailedChange] = Field(default_factory=list)
    touched_files: list[str] = Field(default_factory=list)

    @property
    def applied_count(self) -> int:
        return len(self.applied)
