"""Label unapplied changes and decide which ones may be retried."""

from refactor_engine.models import Change, FailedChange, FailureReason

RETRYABLE_REASONS = frozenset(
    {FailureReason.SNIPPET_NOT_FOUND, FailureReason.FILE_NOT_FOUND}
)


def classify_failure(change: Change, reason: FailureReason) -> FailedChange:
    return FailedChange(change=change, reason=reason)


def is_retryable(failure: FailedChange) -> bool:
    """Whether the generator should be asked to repair this change.

    Overlap discards are a resolver decision, not a bad snippet, so they
    are never sent back for correction.
    """
    return failure.reason in RETRYABLE_REASONS


def partition_failures(
    failures: list[FailedChange],
) -> tuple[list[FailedChange], list[FailedChange]]:
    """Split failures into (retryable, not retryable), preserving order."""
    retryable = [f for f in failures if is_retryable(f)]
    final = [f for f in failures if not is_retryable(f)]
    return retryable, final


def describe_failure(failure: FailedChange) -> str:
    """One diagnostic line for a failure."""
    file_name = failure.change.file_name
    if failure.reason == FailureReason.FILE_NOT_FOUND:
        return f"File '{file_name}' is not part of the project"
    if failure.reason == FailureReason.OVERLAP_DISCARDED:
        return f"In file '{file_name}': change overlaps another change and was discarded"
    return f"In file '{file_name}': original snippet was not found"


def failed_file_names(failures: list[FailedChange]) -> list[str]:
    """Distinct file names of failed changes, in first-failure order."""
    names: list[str] = []
    for failure in failures:
        if failure.change.file_name not in names:
            names.append(failure.change.file_name)
    return names
