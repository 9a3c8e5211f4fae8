"""Locate, resolve and apply snippet patches."""

from refactor_engine.patching.applicator import apply_changes, apply_patches
from refactor_engine.patching.classifier import (
    describe_failure,
    failed_file_names,
    is_retryable,
    partition_failures,
)
from refactor_engine.patching.counter import annotate_change_counts
from refactor_engine.patching.exceptions import PatchApplicationError, PatchingError
from refactor_engine.patching.locator import locate_snippet
from refactor_engine.patching.resolver import (
    group_changes_by_file,
    resolve_file_patches,
    resolve_patches,
    select_non_overlapping,
)

__all__ = [
    "PatchApplicationError",
    "PatchingError",
    "annotate_change_counts",
    "apply_changes",
    "apply_patches",
    "describe_failure",
    "failed_file_names",
    "group_changes_by_file",
    "is_retryable",
    "locate_snippet",
    "partition_failures",
    "resolve_file_patches",
    "resolve_patches",
    "select_non_overlapping",
]
