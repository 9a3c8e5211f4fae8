"""Group changes by file, locate them and drop overlapping patches."""

from bisect import bisect_left

import structlog

from refactor_engine.logger import snippet_preview
from refactor_engine.models import Change, FailedChange, FailureReason, Patch, ProjectFile
from refactor_engine.patching.classifier import classify_failure
from refactor_engine.patching.locator import locate_snippet

logger = structlog.get_logger(__name__)


def group_changes_by_file(changes: list[Change]) -> dict[str, list[Change]]:
    """Partition changes by target file, keeping first-appearance order."""
    grouped: dict[str, list[Change]] = {}
    for change in changes:
        grouped.setdefault(change.file_name, []).append(change)
    return grouped


def select_non_overlapping(patches: list[Patch]) -> tuple[list[Patch], list[Patch]]:
    """Split located patches into accepted and discarded.

    Patches are considered in scan order; a patch whose span collides with
    one accepted earlier is discarded. Nothing is merged or reordered by
    priority.

    Args:
        patches: Located patches in the order they were found.

    Returns:
        Tuple of (accepted sorted by start ascending, discarded in scan order).
    """
    accepted: list[Patch] = []
    starts: list[int] = []
    discarded: list[Patch] = []

    for patch in patches:
        position = bisect_left(starts, patch.start)
        neighbours = accepted[max(0, position - 1):position + 1]
        if any(patch.overlaps(other) for other in neighbours):
            discarded.append(patch)
            continue
        accepted.insert(position, patch)
        starts.insert(position, patch.start)

    return accepted, discarded


def resolve_file_patches(
    file_name: str,
    content: str,
    changes: list[Change],
) -> tuple[list[Patch], list[FailedChange]]:
    """Locate every change in one file and return an application-safe list.

    Args:
        file_name: Name of the target file (for diagnostics).
        content: The file's content before this pass.
        changes: Changes targeting this file, in scan order.

    Returns:
        Tuple of (patches sorted by start descending, failures).
    """
    located: list[Patch] = []
    failures: list[FailedChange] = []

    for change in changes:
        patch = locate_snippet(content, change)
        if patch is None:
            logger.warning(
                "Original snippet not found",
                file_name=file_name,
                snippet=snippet_preview(change.original_snippet),
            )
            failures.append(
                classify_failure(change, FailureReason.SNIPPET_NOT_FOUND)
            )
            continue
        located.append(patch)

    accepted, discarded = select_non_overlapping(located)
    for patch in discarded:
        logger.warning(
            "Overlapping patch discarded",
            file_name=file_name,
            start=patch.start,
            length=patch.length,
        )
        failures.append(
            classify_failure(patch.change, FailureReason.OVERLAP_DISCARDED)
        )

    accepted.sort(key=lambda p: p.start, reverse=True)
    return accepted, failures


def resolve_patches(
    files: list[ProjectFile],
    changes: list[Change],
) -> tuple[dict[str, list[Patch]], list[FailedChange]]:
    """Resolve a flat change list against a file set.

    Changes aimed at a file that is not in ``files`` fail with
    FILE_NOT_FOUND. When two files share a name the first one wins.

    Returns:
        Tuple of ({file_name: patches sorted descending}, failures).
    """
    by_name: dict[str, ProjectFile] = {}
    for project_file in files:
        by_name.setdefault(project_file.name, project_file)

    resolved: dict[str, list[Patch]] = {}
    failures: list[FailedChange] = []

    for file_name, file_changes in group_changes_by_file(changes).items():
        target = by_name.get(file_name)
        if target is None:
            logger.warning("Target file not found", file_name=file_name)
            failures.extend(
                classify_failure(change, FailureReason.FILE_NOT_FOUND)
                for change in file_changes
            )
            continue

        patches, file_failures = resolve_file_patches(
            file_name, target.content, file_changes
        )
        resolved[file_name] = patches
        failures.extend(file_failures)

    return resolved, failures
