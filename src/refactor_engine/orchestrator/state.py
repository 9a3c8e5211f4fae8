"""State definition for the self-correction graph."""

import operator
from typing import Annotated, TypedDict

from refactor_engine.models import (
    ApplyMode,
    ApplyPass,
    Change,
    OutcomeStatus,
    ProjectFile,
    ProjectState,
)

MAX_ATTEMPTS = 3
MAX_ATTEMPTS_LIMIT = 10


class CorrectionState(TypedDict):
    """State for one self-correction run.

    ``errors`` accumulates across nodes; all other fields are overwritten.
    """

    # Input
    project: ProjectState  # Real, current project; never modified by the graph
    instruction: str
    mode: ApplyMode
    max_attempts: int

    # Attempt tracking
    attempt: int
    changes: list[Change]
    last_pass: ApplyPass | None

    # Outcome
    status: OutcomeStatus | None
    result_files: list[ProjectFile] | None

    errors: Annotated[list[str], operator.add]


def clamp_attempts(max_attempts: int) -> int:
    return max(1, min(max_attempts, MAX_ATTEMPTS_LIMIT))


def make_initial_state(
    project: ProjectState,
    changes: list[Change],
    instruction: str = "",
    mode: ApplyMode = ApplyMode.ATOMIC,
    max_attempts: int = MAX_ATTEMPTS,
) -> CorrectionState:
    """Create the initial state for a self-correction run.

    Args:
        project: Current project state the changes are applied against.
        changes: Candidate changes for the first attempt.
        instruction: The high-level instruction the changes came from.
        mode: Atomic (single recommendation) or partial (batch).
        max_attempts: Attempt budget, clamped to 1..MAX_ATTEMPTS_LIMIT.

    Returns:
        CorrectionState with all fields initialised.
    """
    return {
        "project": project,
        "instruction": instruction,
        "mode": mode,
        "max_attempts": clamp_attempts(max_attempts),
        "attempt": 1,
        "changes": list(changes),
        "last_pass": None,
        "status": None,
        "result_files": None,
        "errors": [],
    }
