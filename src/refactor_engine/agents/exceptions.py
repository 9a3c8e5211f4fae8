"""Exceptions for change generator operations."""


class AgentError(Exception):
    """Base exception for all agent operations."""


class ProviderConfigError(AgentError):
    """Raised when no usable LLM provider is configured."""


class GeneratorError(AgentError):
    """Raised when the change generator cannot produce a result."""


class ResponseParseError(GeneratorError):
    """Raised when an LLM payload does not match the expected schema."""
