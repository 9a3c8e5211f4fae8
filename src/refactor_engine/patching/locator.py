"""Exact snippet lookup inside file content."""

from refactor_engine.models import Change, Patch


def _current_spans(applied: list[Patch]) -> list[tuple[int, int, int]]:
    """Map applied patches to (current_start, current_end, delta) spans.

    ``applied`` holds pre-patch coordinates; the spans describe where each
    replacement text sits in the already-patched content.
    """
    spans: list[tuple[int, int, int]] = []
    shift = 0
    for patch in sorted(applied, key=lambda p: p.start):
        current_start = patch.start + shift
        current_end = current_start + len(patch.change.corrected_snippet)
        spans.append((current_start, current_end, patch.delta))
        shift += patch.delta
    return spans


def locate_snippet(
    content: str,
    change: Change,
    applied: list[Patch] | tuple[Patch, ...] = (),
) -> Patch | None:
    """Find ``change.original_snippet`` in ``content``.

    Args:
        content: Current file content. Every patch in ``applied`` has
            already been spliced into it.
        change: The change to locate. Matching is exact, no normalisation.
        applied: Patches committed earlier in this pass, with start and
            length in pre-patch coordinates.

    Returns:
        A Patch in pre-patch coordinates, or None if the snippet does not
        occur outside of already replaced text.
    """
    snippet = change.original_snippet
    spans = _current_spans(list(applied))

    search_from = 0
    while True:
        index = content.find(snippet, search_from)
        if index == -1:
            return None
        match_end = index + len(snippet)

        offset = 0
        blocked_until = -1
        for span_start, span_end, delta in spans:
            if span_end <= index:
                offset += delta
            elif span_start < match_end and index < span_end:
                blocked_until = span_end
                break
            else:
                break

        if blocked_until == -1:
            return Patch(start=max(0, index - offset), length=len(snippet), change=change)
        # Match touches replacement text; resume after it
        search_from = max(blocked_until, index + 1)
