"""Exceptions for patch resolution and application."""


class PatchingError(Exception):
    """Base exception for all patching operations."""


class PatchApplicationError(PatchingError):
    """Raised when a patch list violates the applicator's preconditions."""
