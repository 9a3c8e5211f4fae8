"""Project state, analysis annotations and undo snapshots."""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from refactor_engine.models.change_models import ProjectFile


class SuggestedFix(BaseModel):
    model_config = ConfigDict(frozen=False, populate_by_name=True)

    title: str
    description: str
    corrected_snippet: str = Field(
        validation_alias=AliasChoices(
            "corrected_snippet", "correctedSnippet", "correctedCodeSnippet"
        ),
    )


class Recommendation(BaseModel):
    model_config = ConfigDict(frozen=False, populate_by_name=True)

    description: str
    original_snippet: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "original_snippet", "originalSnippet", "originalCodeSnippet"
        ),
    )
    suggestions: list[SuggestedFix] = Field(default_factory=list)
    applied_suggestion_index: int | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "applied_suggestion_index", "appliedSuggestionIndex"
        ),
    )


class FileAnalysis(BaseModel):
    model_config = ConfigDict(frozen=False, populate_by_name=True)

    file_name: str = Field(validation_alias=AliasChoices("file_name", "fileName"))
    recommendations: list[Recommendation] = Field(default_factory=list)


class Analysis(BaseModel):
    """Analysis annotation state kept alongside the files."""

    model_config = ConfigDict(frozen=False, populate_by_name=True)

    library_project: list[FileAnalysis] = Field(
        default_factory=list,
        validation_alias=AliasChoices("library_project", "libraryProject"),
    )
    frontend_project: list[FileAnalysis] = Field(
        default_factory=list,
        validation_alias=AliasChoices("frontend_project", "frontendProject"),
    )
    overall_summary: str = Field(
        default="",
        validation_alias=AliasChoices("overall_summary", "overallSummary"),
    )

    def find_file(self, file_name: str) -> FileAnalysis | None:
        for file_analysis in [*self.library_project, *self.frontend_project]:
            if file_analysis.file_name == file_name:
                return file_analysis
        return None


class FixReference(BaseModel):
    """Points at one suggestion of one recommendation in the analysis."""

    model_config = ConfigDict(frozen=True)

    file_name: str
    recommendation_index: int = Field(ge=0)
    suggestion_index: int = Field(ge=0)


class ProjectState(BaseModel):
    """Both project halves plus the analysis annotation state."""

    model_config = ConfigDict(frozen=False, populate_by_name=True)

    library_files: list[ProjectFile] = Field(
        default_factory=list,
        validation_alias=AliasChoices("library_files", "libraryFiles"),
    )
    frontend_files: list[ProjectFile] = Field(
        default_factory=list,
        validation_alias=AliasChoices("frontend_files", "frontendFiles"),
    )
    analysis: Analysis | None = Field(
        default=None,
        validation_alias=AliasChoices("analysis", "analysisResult"),
    )

    def all_files(self) -> list[ProjectFile]:
        """Library files first, then frontend files."""
        return [*self.library_files, *self.frontend_files]

    def with_files(self, files: list[ProjectFile]) -> "ProjectState":
        """Return a copy whose halves are replaced by ``files``.

        ``files`` must be in ``all_files()`` order.
        """
        split = len(self.library_files)
        if len(files) != split + len(self.frontend_files):
            raise ValueError(
                f"Expected {split + len(self.frontend_files)} files, got {len(files)}"
            )
        return ProjectState(
            library_files=list(files[:split]),
            frontend_files=list(files[split:]),
            analysis=self.analysis.model_copy(deep=True) if self.analysis else None,
        )


class UndoState(BaseModel):
    """Full snapshot of the project taken right before a commit."""

    model_config = ConfigDict(frozen=True)

    project: ProjectState
