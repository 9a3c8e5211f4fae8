"""Self-correcting snippet patch engine for AI-suggested code edits."""

__version__ = "0.1.0"
