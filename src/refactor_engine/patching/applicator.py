"""Splice resolved patches into file content."""

import structlog

from refactor_engine.models import (
    ApplyPass,
    Change,
    FileApplyResult,
    Patch,
    ProjectFile,
)
from refactor_engine.patching.exceptions import PatchApplicationError
from refactor_engine.patching.resolver import resolve_patches

logger = structlog.get_logger(__name__)


def _check_patch_order(content: str, patches: list[Patch]) -> None:
    previous_start: int | None = None
    for patch in patches:
        if patch.end > len(content):
            raise PatchApplicationError(
                f"Patch span [{patch.start}, {patch.end}) exceeds content length {len(content)}"
            )
        if previous_start is not None and patch.end > previous_start:
            raise PatchApplicationError(
                "Patches must be non-overlapping and sorted by start descending"
            )
        previous_start = patch.start


def apply_patches(content: str, patches: list[Patch]) -> FileApplyResult:
    """Replace each patch span with its corrected snippet.

    Rightmost spans are replaced first so leftward indices stay valid.

    Args:
        content: Content the patches were resolved against.
        patches: Non-overlapping patches sorted by start descending.

    Returns:
        FileApplyResult with the new content and number of patches spliced.

    Raises:
        PatchApplicationError: If the list is unsorted, overlapping or out
            of range. Lists produced by the resolver never trigger this.
    """
    _check_patch_order(content, patches)

    new_content = content
    for patch in patches:
        new_content = (
            new_content[:patch.start]
            + patch.change.corrected_snippet
            + new_content[patch.end:]
        )
    return FileApplyResult(new_content=new_content, applied_count=len(patches))


def apply_changes(files: list[ProjectFile], changes: list[Change]) -> ApplyPass:
    """Resolve and apply a flat change list to a whole file set.

    The input files are left untouched; the returned pass carries new file
    objects in the same order. Change counters are not updated here.

    Args:
        files: Current project files.
        changes: Changes possibly spanning many files.

    Returns:
        ApplyPass with new files, applied changes, failures and the names
        of files that received at least one patch.
    """
    resolved, failures = resolve_patches(files, changes)

    new_files: list[ProjectFile] = []
    applied: list[Change] = []
    touched: list[str] = []
    done: set[str] = set()

    for project_file in files:
        patches = resolved.get(project_file.name)
        if not patches or project_file.name in done:
            new_files.append(project_file)
            continue

        result = apply_patches(project_file.content, patches)
        new_files.append(project_file.model_copy(update={"content": result.new_content}))
        done.add(project_file.name)
        touched.append(project_file.name)
        # Report in ascending position order
        applied.extend(patch.change for patch in reversed(patches))

    logger.debug(
        "Apply pass finished",
        applied=len(applied),
        failed=len(failures),
        touched_files=touched,
    )
    return ApplyPass(files=new_files, applied=applied, failed=failures, touched_files=touched)
