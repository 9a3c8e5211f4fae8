"""Change generator agents for the refactor engine."""

from refactor_engine.agents.change_generator import ChangeGenerator, LLMChangeGenerator
from refactor_engine.agents.exceptions import (
    AgentError,
    GeneratorError,
    ProviderConfigError,
    ResponseParseError,
)

__all__ = [
    "AgentError",
    "ChangeGenerator",
    "GeneratorError",
    "LLMChangeGenerator",
    "ProviderConfigError",
    "ResponseParseError",
]
