"""Structured logging for provisioning runs.

structlog is configured on top of the stdlib logging module so that the
console and the optional log file share one pipeline. Every event carries
an ISO timestamp and its level; step context (role, section, step) is
attached with ProvisionLog.bind().

Usage:
    from stagehand.core.logging import ProvisionLog, configure_logging

    configure_logging(level="INFO", path=Path("stagehand.log"))
    log = ProvisionLog.for_role("MGR")
    log.section_started(1)
    log.bind(step="Configure").success("Step completed")
    log.section_finished(1)
"""

import logging
import sys
from pathlib import Path
from typing import Any

import structlog

_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def configure_logging(
    level: str = "INFO",
    path: Path | None = None,
    *,
    json_output: bool = False,
) -> Path | None:
    """Configure structlog and the stdlib root logger.

    Safe to call more than once; existing stagehand handlers are replaced.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        path: Optional log file; parent directories are created
        json_output: Render events as JSON lines instead of console text

    Returns:
        The log file path in use, or None when logging to console only
    """
    level = level.upper()
    if level not in _LEVELS:
        raise ValueError(f"Unknown log level '{level}'. Valid: {sorted(_LEVELS)}")

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    renderer: Any
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_stagehand", False):
            root.removeHandler(handler)
            handler.close()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if path is not None:
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler._stagehand = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.setLevel(level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    return path


def get_logger(name: str | None = None, **initial_values: Any) -> Any:
    """Get a structlog logger, optionally bound to initial context."""
    return structlog.get_logger(name, **initial_values)


class ProvisionLog:
    """Logging collaborator handed to every step through the ExecutionContext.

    Wraps a structlog bound logger with the levels provisioning steps use
    (debug, info, success, warning, error, critical) and section start/stop
    markers. Instances are immutable; bind() returns a new ProvisionLog.
    """

    def __init__(self, logger: Any | None = None) -> None:
        self._logger = logger if logger is not None else get_logger("stagehand")

    @classmethod
    def for_role(cls, role: str) -> "ProvisionLog":
        return cls(get_logger("stagehand", role=role))

    def bind(self, **context: Any) -> "ProvisionLog":
        return ProvisionLog(self._logger.bind(**context))

    def debug(self, event: str, **kw: Any) -> None:
        self._logger.debug(event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._logger.info(event, **kw)

    def success(self, event: str, **kw: Any) -> None:
        # No SUCCESS level in stdlib logging; rendered as INFO with an outcome tag
        self._logger.info(event, outcome="success", **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._logger.warning(event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self._logger.error(event, **kw)

    def critical(self, event: str, **kw: Any) -> None:
        self._logger.critical(event, **kw)

    def exception(self, event: str, **kw: Any) -> None:
        """Log at ERROR with the active exception's traceback."""
        self._logger.error(event, exc_info=True, **kw)

    def section_started(self, section: int) -> None:
        self._logger.info("Section started", section=section, marker="section_start")

    def section_finished(self, section: int, outcome: str = "completed") -> None:
        """Emit the stop marker; outcome is completed, halted or failed."""
        self._logger.info(
            "Section finished",
            section=section,
            marker="section_stop",
            section_outcome=outcome,
        )
