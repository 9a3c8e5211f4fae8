"""LangGraph self-correction graph.

Applies a candidate change list to the real project files and, while
snippets fail to match, asks the change generator to repair them using the
current file content as ground truth.
"""

from typing import Awaitable, Callable

import structlog
from langgraph.graph import END, START, StateGraph

from refactor_engine.agents.change_generator import ChangeGenerator
from refactor_engine.models import ApplyMode, Change, FailedChange, OutcomeStatus
from refactor_engine.orchestrator.exceptions import GraphBuildError
from refactor_engine.orchestrator.state import CorrectionState
from refactor_engine.patching import (
    annotate_change_counts,
    apply_changes,
    describe_failure,
    failed_file_names,
    partition_failures,
)

logger = structlog.get_logger(__name__)

ABORT_PREFIX = "ABORT:"


def merge_corrections(
    candidates: list[Change],
    failed: list[FailedChange],
    corrected: list[Change],
) -> list[Change]:
    """Replace the failed entries of ``candidates`` with corrected changes.

    Corrected changes identical to a kept candidate are dropped, so a
    generator that re-sends the whole plan does not collide with itself.
    """
    remaining = list(candidates)
    for failure in failed:
        for index, change in enumerate(remaining):
            if change == failure.change:
                del remaining[index]
                break

    merged = list(remaining)
    for change in corrected:
        if any(change.same_edit(existing) for existing in merged):
            continue
        merged.append(change)
    return merged


def apply_node(state: CorrectionState) -> dict:
    """Run resolver and applicator against the real, current files."""
    logger.info(
        "Applying changes",
        attempt=state["attempt"],
        max_attempts=state["max_attempts"],
        changes=len(state["changes"]),
    )
    applied_pass = apply_changes(state["project"].all_files(), state["changes"])
    return {"last_pass": applied_pass}


def make_decide_fn(can_correct: bool) -> Callable[[CorrectionState], str]:
    """Factory: returns the router for the post-apply conditional edge.

    Decision logic:
    1. atomic mode with an overlap discard -> "conflict"
    2. no retryable failures -> "commit"
    3. attempts left and a generator available -> "correct"
    4. partial mode with something applied -> "commit"
    5. else -> "exhausted"
    """

    def decide_fn(state: CorrectionState) -> str:
        applied_pass = state["last_pass"]
        if applied_pass is None:
            return "exhausted"

        retryable, final = partition_failures(applied_pass.failed)
        if state["mode"] == ApplyMode.ATOMIC and final:
            return "conflict"
        if not retryable:
            return "commit"
        if can_correct and state["attempt"] < state["max_attempts"]:
            return "correct"
        if state["mode"] == ApplyMode.PARTIAL and applied_pass.applied:
            return "commit"
        return "exhausted"

    return decide_fn


def make_correct_node(
    generator: ChangeGenerator,
) -> Callable[[CorrectionState], Awaitable[dict]]:
    """Factory: returns a node closure that asks the generator to repair failures.

    Only retryable failures are sent. On generator error the run ends with
    GENERATOR_FAILED.
    """

    async def correct_node(state: CorrectionState) -> dict:
        retryable, _ = partition_failures(state["last_pass"].failed)
        logger.info(
            "Self-correction requested",
            attempt=state["attempt"] + 1,
            failed_files=failed_file_names(retryable),
        )
        try:
            corrected = await generator.correct(
                failed_changes=retryable,
                instruction=state["instruction"],
                project=state["project"],
                previous=state["changes"],
            )
        except Exception as exc:
            logger.error("Self-correction request failed", error=str(exc))
            return {
                "status": OutcomeStatus.GENERATOR_FAILED,
                "errors": [f"correct_node error: {exc}"],
            }

        merged = merge_corrections(state["changes"], retryable, corrected.all_changes())
        return {
            "changes": merged,
            "attempt": state["attempt"] + 1,
            "errors": [
                f"attempt {state['attempt']}: {describe_failure(failure)}"
                for failure in retryable
            ],
        }

    return correct_node


def route_after_correct(state: CorrectionState) -> str:
    if state["status"] == OutcomeStatus.GENERATOR_FAILED:
        return "end"
    return "apply"


def commit_node(state: CorrectionState) -> dict:
    """Adopt the pass result and bump counters on touched files."""
    applied_pass = state["last_pass"]
    files = annotate_change_counts(applied_pass.files, applied_pass.touched_files)
    logger.info(
        "Changes committed",
        attempt=state["attempt"],
        applied=applied_pass.applied_count,
        touched_files=applied_pass.touched_files,
        remaining_failures=len(applied_pass.failed),
    )
    return {"status": OutcomeStatus.COMMITTED, "result_files": files}


def exhausted_node(state: CorrectionState) -> dict:
    failed = state["last_pass"].failed if state["last_pass"] else []
    summary = (
        f"{ABORT_PREFIX} correction loop exhausted after "
        f"{state['attempt']}/{state['max_attempts']} attempts. "
        f"Failing files: {', '.join(failed_file_names(failed)) or 'none'}."
    )
    logger.warning("Correction loop exhausted", attempts=state["attempt"])
    return {"status": OutcomeStatus.EXHAUSTED, "errors": [summary]}


def conflict_node(state: CorrectionState) -> dict:
    _, final = partition_failures(state["last_pass"].failed)
    summary = (
        f"{ABORT_PREFIX} overlapping changes in "
        f"{', '.join(failed_file_names(final))}; nothing was applied."
    )
    logger.warning("Overlapping changes in atomic apply", attempt=state["attempt"])
    return {"status": OutcomeStatus.CONFLICT, "errors": [summary]}


def build_correction_graph(generator: ChangeGenerator | None = None):
    """Build and compile the self-correction StateGraph.

    Edge topology:
      START -> apply_node
      apply_node -> conditional(decide_fn) -> {commit_node, correct_node,
                                                exhausted_node, conflict_node}
      correct_node -> conditional(route_after_correct) -> {apply_node, END}
      commit_node, exhausted_node, conflict_node -> END

    Without a generator the correct branch is never taken, so exactly one
    attempt runs.

    Returns:
        CompiledStateGraph ready to ainvoke.

    Raises:
        GraphBuildError: If graph construction fails.
    """
    try:
        graph = StateGraph(CorrectionState)

        graph.add_node("apply_node", apply_node)
        graph.add_node("commit_node", commit_node)
        graph.add_node("exhausted_node", exhausted_node)
        graph.add_node("conflict_node", conflict_node)

        routes = {
            "commit": "commit_node",
            "exhausted": "exhausted_node",
            "conflict": "conflict_node",
        }
        if generator is not None:
            graph.add_node("correct_node", make_correct_node(generator))
            routes["correct"] = "correct_node"
            graph.add_conditional_edges(
                "correct_node",
                route_after_correct,
                {"apply": "apply_node", "end": END},
            )

        graph.add_edge(START, "apply_node")
        graph.add_conditional_edges(
            "apply_node",
            make_decide_fn(can_correct=generator is not None),
            routes,
        )
        graph.add_edge("commit_node", END)
        graph.add_edge("exhausted_node", END)
        graph.add_edge("conflict_node", END)

        return graph.compile()

    except Exception as exc:
        raise GraphBuildError(f"Failed to build correction graph: {exc}") from exc
