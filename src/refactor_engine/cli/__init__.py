"""Command line interface for the refactor engine."""
