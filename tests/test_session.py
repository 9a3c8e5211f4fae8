"""Tests for RefactorSession: commit, rollback, undo and changelog handling."""

import pytest

from refactor_engine.models import (
    BatchInstruction,
    BatchRefactorResult,
    FixReference,
    ManualStep,
    ProjectFile,
    RefactorResult,
)
from refactor_engine.orchestrator.exceptions import (
    CorrectionLoopExhaustedError,
    CorrectionRequestError,
    MissingContextError,
    PatchConflictError,
    RefactorApplyError,
)
from refactor_engine.orchestrator.session import RefactorSession, build_instruction

from conftest import make_change, make_generator, make_project

FIX = FixReference(file_name="utils.js", recommendation_index=0, suggestion_index=0)


def rename_result(main_snippet: str = "export function add(a, b) {") -> RefactorResult:
    return RefactorResult(
        main_change=make_change("utils.js", main_snippet, "export function sum(a, b) {"),
        related_changes=[
            make_change("app.js", "import { add }", "import { sum }"),
            make_change("app.js", "add(1, 2)", "sum(1, 2)"),
        ],
        manual_steps=[ManualStep(title="Update docs", description="Mention sum.")],
    )


# ---------------------------------------------------------------------------
# apply_fix
# ---------------------------------------------------------------------------

class TestApplyFix:
    @pytest.mark.asyncio
    async def test_commit_updates_files_counts_and_history(self, sample_project):
        session = RefactorSession(sample_project)

        report = await session.apply_fix(rename_result(), fix=FIX)

        project = session.project
        assert "export function sum(a, b)" in project.library_files[0].content
        assert project.frontend_files[0].content.startswith("import { sum }")
        assert [f.changes_count for f in project.all_files()] == [1, 1]
        assert report.touched_files == ["utils.js", "app.js"]
        assert len(report.applied) == 3
        assert report.manual_steps[0].title == "Update docs"
        assert session.can_undo

    @pytest.mark.asyncio
    async def test_marks_applied_suggestion(self, sample_project):
        session = RefactorSession(sample_project)
        await session.apply_fix(rename_result(), fix=FIX)
        recommendation = session.project.analysis.library_project[0].recommendations[0]
        assert recommendation.applied_suggestion_index == 0

    @pytest.mark.asyncio
    async def test_anchor_snippet_replaces_bad_main_snippet(self, sample_project):
        session = RefactorSession(sample_project)
        result = rename_result(main_snippet="export function add(a,b) {")

        report = await session.apply_fix(result, fix=FIX)

        assert report.attempts == 1
        assert "sum(a, b)" in session.project.library_files[0].content

    @pytest.mark.asyncio
    async def test_failure_rolls_back_everything(self, sample_project):
        session = RefactorSession(sample_project)
        result = RefactorResult(
            main_change=make_change("utils.js", "export function add(a, b) {", "x"),
            related_changes=[make_change("app.js", "not in file", "y")],
        )

        with pytest.raises(CorrectionLoopExhaustedError) as exc_info:
            await session.apply_fix(result)

        assert exc_info.value.failed_files == ["app.js"]
        assert exc_info.value.attempts == 1
        assert session.project == sample_project
        assert not session.can_undo

    @pytest.mark.asyncio
    async def test_overlap_raises_conflict(self, sample_project):
        session = RefactorSession(sample_project)
        result = RefactorResult(
            main_change=make_change("utils.js", "function add(a", "function sum(a"),
            related_changes=[make_change("utils.js", "add(a, b)", "plus(a, b)")],
        )
        with pytest.raises(PatchConflictError):
            await session.apply_fix(result)
        assert session.project == sample_project

    @pytest.mark.asyncio
    async def test_self_correction_then_commit(self, sample_project):
        fixed = make_change("app.js", "add(1, 2)", "sum(1, 2)")
        generator = make_generator([RefactorResult(main_change=fixed)])
        session = RefactorSession(sample_project, generator=generator)
        result = RefactorResult(main_change=make_change("app.js", "add(1,2)", "sum(1, 2)"))

        report = await session.apply_fix(result, instruction="rename add")

        assert report.attempts == 2
        assert "sum(1, 2)" in session.project.frontend_files[0].content

    @pytest.mark.asyncio
    async def test_generator_failure_raises(self, sample_project):
        generator = make_generator(correct_error=RuntimeError("quota"))
        session = RefactorSession(sample_project, generator=generator)
        result = RefactorResult(main_change=make_change("app.js", "nope", "x"))

        with pytest.raises(CorrectionRequestError, match="quota"):
            await session.apply_fix(result)

    @pytest.mark.asyncio
    async def test_apply_change(self, sample_project):
        session = RefactorSession(sample_project)
        await session.apply_change(make_change("app.js", "console.log", "console.info"))
        assert "console.info" in session.project.frontend_files[0].content


# ---------------------------------------------------------------------------
# apply_batch
# ---------------------------------------------------------------------------

class TestApplyBatch:
    @pytest.mark.asyncio
    async def test_partial_commit_reports_failures(self, sample_project):
        session = RefactorSession(sample_project)
        batch = BatchRefactorResult(
            changes=[
                make_change("app.js", "console.log", "console.info"),
                make_change("utils.js", "missing", "x"),
            ]
        )

        report = await session.apply_batch(batch)

        assert len(report.applied) == 1
        assert len(report.failed) == 1
        assert report.touched_files == ["app.js"]
        assert session.project.frontend_files[0].changes_count == 1
        assert session.project.library_files[0].changes_count == 0

    @pytest.mark.asyncio
    async def test_nothing_applied_raises(self, sample_project):
        session = RefactorSession(sample_project)
        batch = BatchRefactorResult(changes=[make_change("utils.js", "missing", "x")])
        with pytest.raises(RefactorApplyError):
            await session.apply_batch(batch)
        assert not session.can_undo

    @pytest.mark.asyncio
    async def test_empty_batch_is_a_no_op(self, sample_project):
        session = RefactorSession(sample_project)
        steps = [ManualStep(title="Restart", description="Restart the dev server.")]

        report = await session.apply_batch(BatchRefactorResult(manual_steps=steps))

        assert report.attempts == 0
        assert report.manual_steps == steps
        assert not session.can_undo

    @pytest.mark.asyncio
    async def test_batch_marks_every_fix(self, sample_project):
        session = RefactorSession(sample_project)
        batch = BatchRefactorResult(
            changes=[make_change("utils.js", "function add(", "function sum(")]
        )
        await session.apply_batch(batch, fixes=[FIX])
        recommendation = session.project.analysis.find_file("utils.js").recommendations[0]
        assert recommendation.applied_suggestion_index == 0


# ---------------------------------------------------------------------------
# Undo
# ---------------------------------------------------------------------------

class TestUndo:
    @pytest.mark.asyncio
    async def test_undo_restores_previous_state(self, sample_project):
        session = RefactorSession(sample_project)
        await session.apply_fix(rename_result(), fix=FIX)

        assert session.undo() is True
        assert session.project == sample_project
        assert session.undo() is False

    @pytest.mark.asyncio
    async def test_undo_steps_back_one_batch_at_a_time(self, sample_project):
        session = RefactorSession(sample_project)
        await session.apply_change(make_change("app.js", "console.log", "console.info"))
        await session.apply_change(make_change("app.js", "console.info", "console.warn"))

        session.undo()

        assert "console.info" in session.project.frontend_files[0].content
        assert session.project.frontend_files[0].changes_count == 1

    def test_load_project_clears_history(self, sample_project):
        session = RefactorSession()
        session.undo_manager.push_project(sample_project)
        session.load_project(sample_project)
        assert not session.can_undo

    def test_project_property_is_a_copy(self, sample_project):
        session = RefactorSession(sample_project)
        session.project.library_files.clear()
        assert len(session.project.library_files) == 1


# ---------------------------------------------------------------------------
# Changelog
# ---------------------------------------------------------------------------

@pytest.fixture
def project_with_changelog(sample_project):
    return sample_project.model_copy(
        update={
            "library_files": [
                *sample_project.library_files,
                ProjectFile(name="CHANGELOG.md", content="## [Unreleased]\n"),
            ]
        },
        deep=True,
    )


class TestChangelog:
    @pytest.mark.asyncio
    async def test_changelog_updated_per_fix(self, project_with_changelog):
        generator = make_generator()
        session = RefactorSession(project_with_changelog, generator=generator)

        report = await session.apply_fix(rename_result(), fix=FIX)

        changelog = session.project.library_files[1]
        assert changelog.content == "## [Unreleased]\n- utils.js: Rename function\n"
        assert changelog.changes_count == 1
        assert "CHANGELOG.md" in report.touched_files
        generator.update_changelog.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_changelog_failure_becomes_warning(self, project_with_changelog):
        generator = make_generator()
        generator.update_changelog.side_effect = RuntimeError("offline")
        session = RefactorSession(project_with_changelog, generator=generator)

        report = await session.apply_fix(rename_result(), fix=FIX)

        assert len(report.warnings) == 1
        assert "offline" in report.warnings[0]
        assert session.project.library_files[1].content == "## [Unreleased]\n"
        assert "export function sum" in session.project.library_files[0].content

    @pytest.mark.asyncio
    async def test_no_generator_skips_changelog(self, project_with_changelog):
        session = RefactorSession(project_with_changelog)
        report = await session.apply_fix(rename_result(), fix=FIX)
        assert "CHANGELOG.md" not in report.touched_files


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

def test_build_instruction(sample_analysis):
    recommendation = sample_analysis.library_project[0].recommendations[0]
    instruction = build_instruction(recommendation, recommendation.suggestions[0])
    assert instruction == (
        "Rename add to sum for clarity.\n\n"
        "Specific suggestion: Rename function - Use the name sum."
    )


class TestRequests:
    @pytest.mark.asyncio
    async def test_request_fix_requires_generator(self, sample_project):
        with pytest.raises(MissingContextError):
            await RefactorSession(sample_project).request_fix(FIX)

    @pytest.mark.asyncio
    async def test_request_fix_forwards_snippet(self, sample_project):
        generator = make_generator()
        generator.generate_refactor.return_value = rename_result()
        session = RefactorSession(sample_project, generator=generator)

        result, instruction = await session.request_fix(FIX)

        kwargs = generator.generate_refactor.call_args.kwargs
        assert kwargs["code"] == "export function add(a, b) {"
        assert kwargs["file_name"] == "utils.js"
        assert instruction.startswith("Rename add to sum")
        assert result == rename_result()

    @pytest.mark.asyncio
    async def test_request_batch(self, sample_project):
        generator = make_generator()
        generator.generate_batch.return_value = BatchRefactorResult()
        session = RefactorSession(sample_project, generator=generator)

        _, combined = await session.request_batch([FIX])

        instructions = generator.generate_batch.call_args.args[0]
        assert instructions == [
            BatchInstruction(
                file_name="utils.js",
                code="export function add(a, b) {",
                instruction=combined.split("] ", 1)[1],
            )
        ]

    def test_stale_reference(self, sample_project):
        session = RefactorSession(sample_project)
        with pytest.raises(MissingContextError):
            session.resolve_fix(FixReference(file_name="utils.js", recommendation_index=4, suggestion_index=0))
        with pytest.raises(MissingContextError):
            session.resolve_fix(FixReference(file_name="ghost.js", recommendation_index=0, suggestion_index=0))

    def test_no_analysis(self):
        session = RefactorSession(make_project(library={"a.js": ""}))
        with pytest.raises(MissingContextError):
            session.resolve_fix(FIX)
