"""structlog configuration shared by the engine and the CLI."""

import logging
import sys

import structlog

_configured = False


def configure_logging(level: int = logging.WARNING) -> None:
    """Route structlog through stdlib logging on stderr.

    Safe to call more than once; later calls only change the level.
    """
    global _configured
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    if _configured:
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)

    structlog.configure(
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", utc=False),
            structlog.dev.ConsoleRenderer(),
        ],
    )
    _configured = True


def snippet_preview(snippet: str, limit: int = 60) -> str:
    """Single-line, truncated rendering of a snippet for log events."""
    flat = snippet.replace("\n", "\\n")
    if len(flat) > limit:
        return flat[:limit] + "..."
    return flat
