"""Bounded apply / correct / reapply loop over a project."""

from refactor_engine.agents.change_generator import ChangeGenerator
from refactor_engine.models import (
    ApplyMode,
    Change,
    CorrectionOutcome,
    OutcomeStatus,
    ProjectState,
)
from refactor_engine.orchestrator.graph import build_correction_graph
from refactor_engine.orchestrator.state import MAX_ATTEMPTS, clamp_attempts, make_initial_state


class SelfCorrectionLoop:
    """Runs the correction graph and packages its final state.

    The loop never touches the caller's project or undo history; committing
    a COMMITTED outcome is up to the caller.
    """

    def __init__(
        self,
        generator: ChangeGenerator | None = None,
        max_attempts: int = MAX_ATTEMPTS,
    ) -> None:
        self.generator = generator
        self.max_attempts: int = clamp_attempts(max_attempts)
        self._graph = build_correction_graph(generator)

    async def run(
        self,
        project: ProjectState,
        changes: list[Change],
        instruction: str = "",
        mode: ApplyMode = ApplyMode.ATOMIC,
    ) -> CorrectionOutcome:
        """Apply ``changes`` to ``project`` with self-correction.

        Args:
            project: Current project state (ground truth for every attempt).
            changes: Candidate changes for the first attempt.
            instruction: Instruction forwarded to the generator on correction.
            mode: ATOMIC for one recommendation, PARTIAL for batches.

        Returns:
            CorrectionOutcome. ``files`` holds the new, counter-annotated
            files in ``project.all_files()`` order when committed, and the
            unchanged input files otherwise.
        """
        state = make_initial_state(
            project=project,
            changes=changes,
            instruction=instruction,
            mode=mode,
            max_attempts=self.max_attempts,
        )
        final = await self._graph.ainvoke(
            state,
            config={"recursion_limit": 4 * self.max_attempts + 5},
        )

        status = final["status"] or OutcomeStatus.EXHAUSTED
        applied_pass = final["last_pass"]
        committed = status == OutcomeStatus.COMMITTED

        return CorrectionOutcome(
            status=status,
            files=final["result_files"] if committed else project.all_files(),
            applied=list(applied_pass.applied) if committed and applied_pass else [],
            failed=list(applied_pass.failed) if applied_pass else [],
            touched_files=list(applied_pass.touched_files) if committed and applied_pass else [],
            changes=list(final["changes"]),
            attempts=final["attempt"],
            errors=list(final["errors"]),
        )
