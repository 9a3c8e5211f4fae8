"""Self-correction orchestration and the project session."""

from refactor_engine.orchestrator.exceptions import (
    CorrectionLoopExhaustedError,
    CorrectionRequestError,
    GraphBuildError,
    MissingContextError,
    OrchestratorError,
    PatchConflictError,
    RefactorApplyError,
)
from refactor_engine.orchestrator.graph import build_correction_graph
from refactor_engine.orchestrator.loop import SelfCorrectionLoop
from refactor_engine.orchestrator.session import RefactorSession
from refactor_engine.orchestrator.state import (
    MAX_ATTEMPTS,
    CorrectionState,
    make_initial_state,
)

__all__ = [
    "MAX_ATTEMPTS",
    "CorrectionLoopExhaustedError",
    "CorrectionRequestError",
    "CorrectionState",
    "GraphBuildError",
    "MissingContextError",
    "OrchestratorError",
    "PatchConflictError",
    "RefactorApplyError",
    "RefactorSession",
    "SelfCorrectionLoop",
    "build_correction_graph",
    "make_initial_state",
]
