"""structlog setup for harbor commands and the pytest plugin.

Every event carries the run ID of the harness invocation, so the log lines of
one sandbox lifecycle can be pulled out of a shared CI log. Console output is
held back while a spinner owns the terminal; file outputs always receive
everything at their own level.

The first file output becomes the run's log file. Cleanup failures point the
operator at it because the reason an orphan was left behind is logged there.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import structlog

if TYPE_CHECKING:
    from testharbor.config.models import LoggingConfig, LogOutputConfig

_run_id: ContextVar[str | None] = ContextVar("run_id", default=None)

_log_file_path: Path | None = None

# Third-party loggers that are noisy at INFO during readiness polling.
_QUIET_LOGGERS = ("httpx", "httpcore")

_STREAMS = ("stderr", "stdout")


def get_run_id() -> str | None:
    return _run_id.get()


def set_run_id(run_id: str | None = None) -> str:
    """Set or generate the run correlation ID."""
    rid = run_id or uuid4().hex[:12]
    _run_id.set(rid)
    return rid


def clear_run_id() -> None:
    _run_id.set(None)


def get_log_file_path() -> Path | None:
    """File output of the current configuration, if there is one."""
    return _log_file_path


def log_file_hint() -> str:
    """Suffix for operator messages naming where the full details were logged."""
    return f" (details in {_log_file_path})" if _log_file_path is not None else ""


def _inject_run_id(
    _logger: structlog.types.WrappedLogger,
    _method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    if rid := get_run_id():
        event_dict.setdefault("run_id", rid)
    return event_dict


def _level(name: str | None, fallback: int = logging.INFO) -> int:
    if not name:
        return fallback
    value = logging.getLevelName(name.upper())
    return value if isinstance(value, int) else fallback


class ConsoleSuppressingFilter(logging.Filter):
    """Drops console records while a Rich live display is active."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: ARG002
        from testharbor.core.progress import is_console_suppressed

        return not is_console_suppressed()


def configure_logging(
    *,
    config: LoggingConfig | None = None,
    json_format: bool = False,
    level: str = "INFO",
    verbose: bool = False,
) -> None:
    """(Re)configure structlog and the root logger.

    Args:
        config: The ``logging`` config section. Without it a single stderr
            output at ``level`` is used.
        json_format: JSON rendering for the stderr output when no config is given.
        level: Root level when no config is given.
        verbose: Force DEBUG on the root and on every console output
            (the ``-v`` flag). File outputs keep their configured level.
    """
    from testharbor.config.models import LoggingConfig, LogOutputConfig

    if config is None:
        config = LoggingConfig(
            level=level,
            outputs=[LogOutputConfig(format="json" if json_format else "console")],
        )

    root_level = logging.DEBUG if verbose else _level(config.level)
    shared: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", key="timestamp"),
        _inject_run_id,  # type: ignore[list-item]
    ]

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    for old in root.handlers[:]:
        root.removeHandler(old)
        if isinstance(old, logging.FileHandler):
            old.close()
    root.setLevel(root_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    global _log_file_path
    _log_file_path = None
    for output in config.outputs:
        handler = _handler_for(output, shared)
        is_console = output.destination in _STREAMS
        if is_console and verbose:
            handler.setLevel(logging.DEBUG)
        else:
            handler.setLevel(_level(output.level, root_level))
        if not is_console and _log_file_path is None:
            _log_file_path = Path(output.destination)
        root.addHandler(handler)


def _handler_for(output: LogOutputConfig, shared: list[structlog.types.Processor]) -> logging.Handler:
    handler: logging.Handler
    stream = getattr(sys, output.destination) if output.destination in _STREAMS else None
    if stream is not None:
        handler = logging.StreamHandler(stream)
        handler.addFilter(ConsoleSuppressingFilter())
    else:
        path = Path(output.destination)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, mode="a", encoding="utf-8")

    renderer: structlog.types.Processor
    if output.format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=stream is not None and stream.isatty(),
            pad_event_to=0,
            pad_level=False,
        )
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=shared))
    return handler


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger=name)
    return logger  # type: ignore[no-any-return]
