"""Structured logging setup.

Modules log through ``logging.getLogger(__name__)``. Those stdlib records
are rendered by structlog's ProcessorFormatter, so context bound with
``structlog.contextvars`` (the pipeline binds ``tour_operator_id``) shows up
on every line of a run.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Any

import structlog

LOG_FILE = Path("logs/tourpricing.log")

# Chatty libraries kept at WARNING unless LOG_LEVEL is DEBUG
_QUIET_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncio", "multipart")


def configure_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """Configure structlog and route stdlib logging through it.

    Args:
        level: Root log level (default: LOG_LEVEL env var, then INFO)
        json_logs: JSON lines instead of console output (default: JSON_LOGS env var)
    """
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    if json_logs is None:
        json_logs = os.getenv("JSON_LOGS", "false").lower() == "true"

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.ExtraAdder(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_logs:
        # Production: JSON logs
        renderer: Any = structlog.processors.JSONRenderer()
        shared_processors.append(structlog.processors.format_exc_info)
    else:
        # Development: Pretty console logs
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if LOG_FILE.parent.exists():
        handlers.append(logging.FileHandler(LOG_FILE))

    # Reconfiguring replaces only the handlers added here
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_tourpricing", False):
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        handler.setFormatter(formatter)
        handler._tourpricing = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.setLevel(level)

    quiet_level = logging.DEBUG if level == "DEBUG" else logging.WARNING
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)
