"""Models for AI-suggested changes and the files they target."""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ProjectFile(BaseModel):
    """A single in-memory project file."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str  # Unique within one project half
    content: str
    changes_count: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("changes_count", "changesCount"),
    )


class Change(BaseModel):
    """Replace one exact snippet with another in a named file."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    file_name: str = Field(validation_alias=AliasChoices("file_name", "fileName"))
    original_snippet: str = Field(
        min_length=1,
        validation_alias=AliasChoices(
            "original_snippet", "originalSnippet", "originalCodeSnippet"
        ),
    )
    corrected_snippet: str = Field(
        validation_alias=AliasChoices(
            "corrected_snippet", "correctedSnippet", "correctedCodeSnippet"
        ),
    )
    description: str | None = None

    def same_edit(self, other: "Change") -> bool:
        """True when both changes describe the same replacement."""
        return (
            self.file_name == other.file_name
            and self.original_snippet == other.original_snippet
            and self.corrected_snippet == other.corrected_snippet
        )


class ManualStep(BaseModel):
    """A step the user has to perform by hand. Passed through untouched."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str
    description: str
    file_name: str | None = Field(
        default=None, validation_alias=AliasChoices("file_name", "fileName")
    )


class RefactorResult(BaseModel):
    """Generator output for a single recommendation."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    main_change: Change = Field(
        validation_alias=AliasChoices("main_change", "mainChange")
    )
    related_changes: list[Change] = Field(
        default_factory=list,
        validation_alias=AliasChoices("related_changes", "relatedChanges"),
    )
    manual_steps: list[ManualStep] = Field(
        default_factory=list,
        validation_alias=AliasChoices("manual_steps", "manualSteps"),
    )

    def all_changes(self) -> list[Change]:
        return [self.main_change, *self.related_changes]


class BatchRefactorResult(BaseModel):
    """Generator output for many recommendations at once."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    changes: list[Change] = Field(default_factory=list)
    manual_steps: list[ManualStep] = Field(
        default_factory=list,
        validation_alias=AliasChoices("manual_steps", "manualSteps"),
    )


class BatchInstruction(BaseModel):
    """One recommendation's instruction inside a batch request."""

    model_config = ConfigDict(frozen=True)

    file_name: str
    code: str  # The recommendation's original snippet
    instruction: str
