from unittest.mock import AsyncMock, MagicMock

import pytest

from refactor_engine.models import (
    Analysis,
    Change,
    FileAnalysis,
    ProjectFile,
    ProjectState,
    Recommendation,
    RefactorResult,
    SuggestedFix,
)


def make_change(
    file_name: str,
    original: str,
    corrected: str,
    description: str | None = None,
) -> Change:
    return Change(
        file_name=file_name,
        original_snippet=original,
        corrected_snippet=corrected,
        description=description,
    )


def make_project(
    library: dict[str, str] | None = None,
    frontend: dict[str, str] | None = None,
    analysis: Analysis | None = None,
) -> ProjectState:
    return ProjectState(
        library_files=[
            ProjectFile(name=name, content=content)
            for name, content in (library or {}).items()
        ],
        frontend_files=[
            ProjectFile(name=name, content=content)
            for name, content in (frontend or {}).items()
        ],
        analysis=analysis,
    )


def make_generator(
    corrections: list[RefactorResult] | None = None,
    correct_error: Exception | None = None,
) -> MagicMock:
    """Scripted change generator; ``correct`` returns ``corrections`` in order."""
    generator = MagicMock()
    if correct_error is not None:
        generator.correct = AsyncMock(side_effect=correct_error)
    else:
        generator.correct = AsyncMock(side_effect=list(corrections or []))
    generator.update_changelog = AsyncMock(
        side_effect=lambda current, entry: f"{current}- {entry}\n"
    )
    generator.generate_refactor = AsyncMock()
    generator.generate_batch = AsyncMock()
    return generator


@pytest.fixture
def utils_source():
    return "export function add(a, b) {\n  return a + b;\n}\n"


@pytest.fixture
def app_source():
    return "import { add } from './utils';\n\nconsole.log(add(1, 2));\n"


@pytest.fixture
def sample_analysis():
    return Analysis(
        library_project=[
            FileAnalysis(
                file_name="utils.js",
                recommendations=[
                    Recommendation(
                        description="Rename add to sum for clarity.",
                        original_snippet="export function add(a, b) {",
                        suggestions=[
                            SuggestedFix(
                                title="Rename function",
                                description="Use the name sum.",
                                corrected_snippet="export function sum(a, b) {",
                            )
                        ],
                    )
                ],
            )
        ],
        overall_summary="Small helper library.",
    )


@pytest.fixture
def sample_project(utils_source, app_source, sample_analysis):
    return make_project(
        library={"utils.js": utils_source},
        frontend={"app.js": app_source},
        analysis=sample_analysis,
    )
