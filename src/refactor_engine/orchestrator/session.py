"""Project-state holder: applies fixes and batches, owns the undo history."""

import structlog

from refactor_engine.agents.change_generator import ChangeGenerator
from refactor_engine.history.undo_manager import UndoManager
from refactor_engine.models import (
    ApplyMode,
    ApplyReport,
    BatchInstruction,
    BatchRefactorResult,
    Change,
    CorrectionOutcome,
    FixReference,
    ManualStep,
    OutcomeStatus,
    ProjectFile,
    ProjectState,
    Recommendation,
    RefactorResult,
    SuggestedFix,
)
from refactor_engine.orchestrator.exceptions import (
    CorrectionLoopExhaustedError,
    CorrectionRequestError,
    MissingContextError,
    PatchConflictError,
)
from refactor_engine.orchestrator.loop import SelfCorrectionLoop
from refactor_engine.orchestrator.state import MAX_ATTEMPTS
from refactor_engine.patching import describe_failure, failed_file_names

logger = structlog.get_logger(__name__)

CHANGELOG_FILE_NAME = "changelog.md"
SPECIFIC_SUGGESTION_LABEL = "Specific suggestion"


def build_instruction(recommendation: Recommendation, suggestion: SuggestedFix) -> str:
    return (
        f"{recommendation.description}\n\n"
        f"{SPECIFIC_SUGGESTION_LABEL}: {suggestion.title} - {suggestion.description}"
    )


class RefactorSession:
    """Holds one project's files, analysis and undo history.

    Callers must serialize apply calls; a session assumes a single writer.
    """

    def __init__(
        self,
        project: ProjectState | None = None,
        generator: ChangeGenerator | None = None,
        undo_manager: UndoManager | None = None,
        max_attempts: int = MAX_ATTEMPTS,
    ) -> None:
        self._project: ProjectState = (
            project.model_copy(deep=True) if project is not None else ProjectState()
        )
        self.generator = generator
        self.undo_manager: UndoManager = (
            undo_manager if undo_manager is not None else UndoManager()
        )
        self.loop = SelfCorrectionLoop(generator=generator, max_attempts=max_attempts)

    @property
    def project(self) -> ProjectState:
        return self._project.model_copy(deep=True)

    @property
    def can_undo(self) -> bool:
        return self.undo_manager.can_undo

    def load_project(self, project: ProjectState) -> None:
        """Replace the project wholesale; history of the old one is dropped."""
        self._project = project.model_copy(deep=True)
        self.undo_manager.clear()

    def undo(self) -> bool:
        """Restore the most recent snapshot. Returns False if there is none."""
        snapshot = self.undo_manager.pop()
        if snapshot is None:
            return False
        self._project = snapshot.project.model_copy(deep=True)
        logger.info("Undo applied", remaining=len(self.undo_manager))
        return True

    # -- requests -----------------------------------------------------------

    def resolve_fix(self, fix: FixReference) -> tuple[Recommendation, SuggestedFix]:
        """Look up the recommendation and suggestion a reference points at.

        Raises:
            MissingContextError: If there is no analysis or the reference is stale.
        """
        analysis = self._project.analysis
        if analysis is None:
            raise MissingContextError("No analysis available for this project")
        file_analysis = analysis.find_file(fix.file_name)
        if file_analysis is None:
            raise MissingContextError(f"No analysis found for file '{fix.file_name}'")
        if fix.recommendation_index >= len(file_analysis.recommendations):
            raise MissingContextError(
                f"Recommendation {fix.recommendation_index} not found for '{fix.file_name}'"
            )
        recommendation = file_analysis.recommendations[fix.recommendation_index]
        if fix.suggestion_index >= len(recommendation.suggestions):
            raise MissingContextError(
                f"Suggestion {fix.suggestion_index} not found for recommendation "
                f"{fix.recommendation_index} in '{fix.file_name}'"
            )
        return recommendation, recommendation.suggestions[fix.suggestion_index]

    def _require_generator(self) -> ChangeGenerator:
        if self.generator is None:
            raise MissingContextError("No change generator configured")
        return self.generator

    async def request_fix(self, fix: FixReference) -> tuple[RefactorResult, str]:
        """Ask the generator for the changes implementing one suggestion.

        Returns:
            Tuple of (generated result, instruction used).
        """
        generator = self._require_generator()
        recommendation, suggestion = self.resolve_fix(fix)
        if not recommendation.original_snippet:
            raise MissingContextError(
                f"Recommendation {fix.recommendation_index} in '{fix.file_name}' "
                "has no original snippet"
            )
        instruction = build_instruction(recommendation, suggestion)
        result = await generator.generate_refactor(
            instruction=instruction,
            code=recommendation.original_snippet,
            file_name=fix.file_name,
            project=self.project,
        )
        return result, instruction

    async def request_batch(
        self,
        fixes: list[FixReference],
    ) -> tuple[BatchRefactorResult, str]:
        """Ask the generator for one consolidated change list for many fixes."""
        generator = self._require_generator()
        if not fixes:
            raise MissingContextError("No fixes selected")
        instructions: list[BatchInstruction] = []
        for fix in fixes:
            recommendation, suggestion = self.resolve_fix(fix)
            instructions.append(
                BatchInstruction(
                    file_name=fix.file_name,
                    code=recommendation.original_snippet or "",
                    instruction=build_instruction(recommendation, suggestion),
                )
            )
        result = await generator.generate_batch(instructions, self.project)
        combined = "\n\n".join(
            f"[{item.file_name}] {item.instruction}" for item in instructions
        )
        return result, combined

    # -- apply --------------------------------------------------------------

    async def apply_fix(
        self,
        result: RefactorResult,
        instruction: str = "",
        fix: FixReference | None = None,
        anchor_snippet: str | None = None,
    ) -> ApplyReport:
        """Apply one recommendation's main and related changes atomically.

        Args:
            result: The generator's plan for the recommendation.
            instruction: Instruction forwarded to the generator on correction.
            fix: Analysis entry to mark as applied on success.
            anchor_snippet: Snippet that replaces the main change's
                ``original_snippet`` on the first attempt. Defaults to the
                referenced recommendation's own snippet.

        Raises:
            CorrectionLoopExhaustedError: Snippets still fail after the last attempt.
            PatchConflictError: Changes of the recommendation overlap.
            CorrectionRequestError: The generator failed while correcting.
        """
        if anchor_snippet is None and fix is not None:
            recommendation, _ = self.resolve_fix(fix)
            anchor_snippet = recommendation.original_snippet

        changes = result.all_changes()
        if anchor_snippet:
            changes[0] = changes[0].model_copy(update={"original_snippet": anchor_snippet})

        outcome = await self.loop.run(
            self._project, changes, instruction=instruction, mode=ApplyMode.ATOMIC
        )
        self._raise_for_outcome(outcome)
        return await self._commit(
            outcome,
            manual_steps=result.manual_steps,
            fixes=[fix] if fix is not None else [],
            fallback_entry=result.main_change.description or instruction,
        )

    async def apply_change(self, change: Change, instruction: str = "") -> ApplyReport:
        """Apply a single change atomically."""
        return await self.apply_fix(RefactorResult(main_change=change), instruction)

    async def apply_batch(
        self,
        result: BatchRefactorResult,
        instruction: str = "",
        fixes: list[FixReference] | tuple[FixReference, ...] = (),
    ) -> ApplyReport:
        """Apply a consolidated batch, committing whatever validates.

        Failures that survive self-correction are returned in the report.

        Raises:
            CorrectionLoopExhaustedError: Not a single change could be applied.
            CorrectionRequestError: The generator failed while correcting.
        """
        if not result.changes:
            return ApplyReport(manual_steps=list(result.manual_steps), attempts=0)

        outcome = await self.loop.run(
            self._project, result.changes, instruction=instruction, mode=ApplyMode.PARTIAL
        )
        self._raise_for_outcome(outcome)
        return await self._commit(
            outcome,
            manual_steps=result.manual_steps,
            fixes=list(fixes),
            fallback_entry=instruction,
        )

    def _raise_for_outcome(self, outcome: CorrectionOutcome) -> None:
        if outcome.status == OutcomeStatus.COMMITTED:
            return

        details = "".join(f"\n- {describe_failure(f)}" for f in outcome.failed)
        if outcome.status == OutcomeStatus.CONFLICT:
            raise PatchConflictError(
                f"Changes overlap each other; nothing was applied.{details}",
                failed=outcome.failed,
                attempts=outcome.attempts,
            )
        if outcome.status == OutcomeStatus.GENERATOR_FAILED:
            reason = outcome.errors[-1] if outcome.errors else "unknown error"
            raise CorrectionRequestError(
                f"Self-correction failed: {reason}",
                failed=outcome.failed,
                attempts=outcome.attempts,
            )
        raise CorrectionLoopExhaustedError(
            f"Could not apply changes after {outcome.attempts} attempt(s). "
            f"Failing files: {', '.join(failed_file_names(outcome.failed))}{details}",
            failed=outcome.failed,
            attempts=outcome.attempts,
        )

    async def _commit(
        self,
        outcome: CorrectionOutcome,
        manual_steps: list[ManualStep],
        fixes: list[FixReference],
        fallback_entry: str,
    ) -> ApplyReport:
        new_project = self._project.with_files(outcome.files)
        touched = list(outcome.touched_files)

        if new_project.analysis is not None:
            for fix in fixes:
                file_analysis = new_project.analysis.find_file(fix.file_name)
                if file_analysis is None:
                    continue
                if fix.recommendation_index < len(file_analysis.recommendations):
                    file_analysis.recommendations[
                        fix.recommendation_index
                    ].applied_suggestion_index = fix.suggestion_index

        warnings: list[str] = []
        if self.generator is not None:
            entries = self._changelog_entries(fixes, fallback_entry)
            new_project, changelog_name, warnings = await self._update_changelog(
                new_project, entries, touched
            )
            if changelog_name is not None and changelog_name not in touched:
                touched.append(changelog_name)

        self.undo_manager.push_project(self._project)
        self._project = new_project

        return ApplyReport(
            applied=list(outcome.applied),
            failed=list(outcome.failed),
            touched_files=touched,
            manual_steps=list(manual_steps),
            attempts=outcome.attempts,
            warnings=warnings,
        )

    def _changelog_entries(self, fixes: list[FixReference], fallback_entry: str) -> list[str]:
        entries: list[str] = []
        for fix in fixes:
            try:
                _, suggestion = self.resolve_fix(fix)
            except MissingContextError:
                continue
            entries.append(f"{fix.file_name}: {suggestion.title}")
        if not entries and fallback_entry.strip():
            entries.append(fallback_entry.strip().splitlines()[0])
        return entries

    async def _update_changelog(
        self,
        project: ProjectState,
        entries: list[str],
        touched: list[str],
    ) -> tuple[ProjectState, str | None, list[str]]:
        """Append one changelog entry per fix to a changelog.md, if present.

        Failures become warnings; the commit goes ahead regardless.

        Returns:
            Tuple of (project, changelog name if its content changed, warnings).
        """
        files = project.all_files()
        position = next(
            (
                index
                for index, project_file in enumerate(files)
                if project_file.name.lower() == CHANGELOG_FILE_NAME
            ),
            None,
        )
        if position is None or not entries:
            return project, None, []

        changelog: ProjectFile = files[position]
        content = changelog.content
        warnings: list[str] = []
        for entry in entries:
            try:
                content = await self.generator.update_changelog(content, entry)
            except Exception as exc:
                logger.warning("Changelog update failed", entry=entry, error=str(exc))
                warnings.append(f"Changelog update failed for '{entry}': {exc}")

        if content == changelog.content:
            return project, None, warnings

        update: dict = {"content": content}
        if changelog.name not in touched:
            update["changes_count"] = changelog.changes_count + 1
        files[position] = changelog.model_copy(update=update)
        return project.with_files(files), changelog.name, warnings
