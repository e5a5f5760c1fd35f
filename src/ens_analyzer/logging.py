"""structlog configuration and per-repository logging context.

Provides batch ID generation, a repository-scoped logging context
manager, and structured log configuration for console and JSON output
with optional file logging.
"""

from __future__ import annotations

import logging
import sys
import uuid
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

# ---------------------------------------------------------------------------
# Batch ID
# ---------------------------------------------------------------------------


def generate_batch_id() -> str:
    """Generate a unique identifier for one batch run."""
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# structlog configuration
# ---------------------------------------------------------------------------


_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

_PROCESSORS: tuple[structlog.types.Processor, ...] = (
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso"),
)


def _build_handlers(
    numeric_level: int, log_file: str | Path | None
) -> list[logging.Handler]:
    """stderr always, plus a UTF-8 file handler when ``log_file`` is set."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(str(log_file), encoding="utf-8"))
    for handler in handlers:
        handler.setLevel(numeric_level)
    return handlers


def configure_logging(
    level: str = "INFO",
    fmt: str = "console",
    log_file: str | Path | None = None,
    batch_id: str | None = None,
) -> None:
    """Route structlog events through the stdlib root logger.

    Logs go to stderr (and ``log_file`` when given) so that ``--json``
    output on stdout stays machine-readable. Calling this again replaces
    the previous handlers.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL),
            case-insensitive.
        fmt: ``"console"`` for human-readable lines or ``"json"`` for one
            JSON object per line.
        log_file: Optional file that receives the same entries as stderr.
        batch_id: Bound to every entry of the run when given.

    Raises:
        ValueError: If ``level`` is not a recognized log level.
    """
    level_upper = level.upper()
    if level_upper not in _VALID_LEVELS:
        msg = f"Invalid log level: {level!r}. Must be one of {sorted(_VALID_LEVELS)}"
        raise ValueError(msg)
    numeric_level = getattr(logging, level_upper)

    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer()
        if fmt == "json"
        else structlog.dev.ConsoleRenderer()
    )
    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )

    root_logger = logging.getLogger()
    for old in root_logger.handlers:
        if isinstance(old, logging.FileHandler):
            old.close()
    root_logger.handlers.clear()
    root_logger.setLevel(numeric_level)
    for handler in _build_handlers(numeric_level, log_file):
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    structlog.configure(
        processors=[*_PROCESSORS, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    if batch_id:
        structlog.contextvars.bind_contextvars(batch_id=batch_id)


# ---------------------------------------------------------------------------
# Repository logging context manager
# ---------------------------------------------------------------------------


@contextmanager
def repository_logging_context(
    repository_id: str,
    **extra: Any,
) -> Iterator[structlog.stdlib.BoundLogger]:
    """Bind a repository identifier to every log entry inside the block.

    Logs ``repository_start`` on entry and ``repository_end`` on exit;
    an exception escaping the block is logged as ``repository_error``
    and re-raised.

    Args:
        repository_id: ``owner/name`` of the repository being analyzed.
        **extra: Additional key-value pairs to bind.

    Yields:
        A logger bound with the repository context.

    Example::

        with repository_logging_context("ensdomains/ensjs") as log:
            log.info("scan_complete", files=12)
    """
    log: structlog.stdlib.BoundLogger = structlog.get_logger("ens_analyzer.repository")
    log = log.bind(repository=repository_id, **extra)
    log.info("repository_start")

    try:
        yield log
    except Exception:
        log.exception("repository_error")
        raise
    finally:
        log.info("repository_end")
