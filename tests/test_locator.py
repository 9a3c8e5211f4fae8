"""Tests for snippet lookup."""

from refactor_engine.models import Patch
from refactor_engine.patching.locator import locate_snippet

from conftest import make_change


class TestLocateSnippet:
    def test_exact_match_returns_span(self):
        change = make_change("a.txt", "world", "there")
        patch = locate_snippet("hello world", change)
        assert patch == Patch(start=6, length=5, change=change)

    def test_missing_snippet_returns_none(self):
        assert locate_snippet("hello world", make_change("a.txt", "moon", "x")) is None

    def test_whitespace_difference_is_not_a_match(self):
        change = make_change("a.txt", "return  a + b;", "return a - b;")
        assert locate_snippet("return a + b;", change) is None

    def test_first_occurrence_wins(self):
        patch = locate_snippet("foo bar foo", make_change("a.txt", "foo", "baz"))
        assert patch.start == 0

    def test_case_sensitive(self):
        assert locate_snippet("Hello", make_change("a.txt", "hello", "x")) is None

    def test_snippet_spanning_whole_file(self):
        patch = locate_snippet("abc", make_change("a.txt", "abc", ""))
        assert (patch.start, patch.length) == (0, 3)


class TestLocateAfterAppliedPatches:
    def test_returns_pre_patch_coordinates(self):
        first = make_change("a.txt", "foo", "quux")
        applied = [Patch(start=0, length=3, change=first)]
        # "foo bar foo" after the first replacement
        patch = locate_snippet("quux bar foo", make_change("a.txt", "foo", "x"), applied)
        assert patch.start == 8

    def test_match_inside_replacement_text_is_skipped(self):
        first = make_change("a.txt", "ab", "xab")
        applied = [Patch(start=0, length=2, change=first)]
        assert locate_snippet("xab cd", make_change("a.txt", "ab", "y"), applied) is None

    def test_skips_to_next_occurrence_after_replacement(self):
        first = make_change("a.txt", "ab", "xab")
        applied = [Patch(start=0, length=2, change=first)]
        # original content "ab ab"
        patch = locate_snippet("xab ab", make_change("a.txt", "ab", "y"), applied)
        assert patch.start == 3
