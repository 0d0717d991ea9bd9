from __future__ import annotations

import logging
import sys
from enum import Enum
from typing import Any

import orjson
import structlog


def _default(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    return str(obj)


def _json_serializer(obj: Any, default: Any = None) -> str:
    """
    orjson-backed serializer for structured logs.

    Enums (RunStatus) render as their value, anything else unknown as str().
    """
    return orjson.dumps(obj, default=_default).decode("utf-8")


def configure_logging(*, level: str = "INFO", json_logs: bool = True) -> None:
    """
    Configure structured logging for the whole process.

    Call once at startup (app factory / CLI entrypoint).
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    processors: list[Any] = [
        # run / component / generation_id bound via bind_context
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_logs:
        processors.extend(
            [
                structlog.processors.dict_tracebacks,
                structlog.processors.JSONRenderer(serializer=_json_serializer),
            ]
        )
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=True,
    )

    # uvicorn / fastapi stdlib loggers share stdout
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def bind_context(**values: Any) -> None:
    """
    Bind values to all future log entries of this context.

    Example:
        bind_context(run=3, component="engine")
    """
    structlog.contextvars.bind_contextvars(**values)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
