"""Structured logging using structlog.

Engine, trainer and monitor all log through `get_logger(__name__)` with
keyword-style events. `setup_logging` renders them as JSON lines (the
default) or as a colored console stream for interactive runs.
"""

import logging
import sys
from enum import Enum
from typing import Any

import numpy as np
import structlog
from structlog.types import Processor

from trafficlens.common.config import LoggingSettings, get_settings

# Libraries that log at INFO during training or model I/O
NOISY_LOGGERS = ("torch", "sklearn", "joblib")


def add_service_context(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Stamp every entry with the application name, version and environment."""
    settings = get_settings()
    event_dict.setdefault("service", settings.app_name)
    event_dict["version"] = settings.app_version
    event_dict["environment"] = settings.environment
    return event_dict


def coerce_values(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Turn numpy scalars, arrays and enums into plain JSON-ready values."""
    for key, value in event_dict.items():
        event_dict[key] = _plain(value)
    return event_dict


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, dict):
        return {_plain(k): _plain(v) for k, v in value.items()}
    return value


def _processors(settings: LoggingSettings) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
    ]

    if settings.include_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso", utc=True))

    if settings.include_caller:
        processors.append(structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.MODULE,
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            ]
        ))

    processors += [add_service_context, coerce_values]

    if settings.format == "json":
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    return processors


def setup_logging(
    settings: LoggingSettings | None = None,
    service_name: str | None = None,
) -> None:
    """Configure structured logging for scripts and embedding applications.

    Args:
        settings: Logging settings. Uses global settings if not provided.
        service_name: Optional component name bound to every log entry.
    """
    if settings is None:
        settings = get_settings().logging

    structlog.configure(
        processors=_processors(settings),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.level),
    )

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    if service_name:
        bind_context(component=service_name)


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.stdlib.BoundLogger:
    """Get a logger, optionally with context bound up front.

    Example:
        logger = get_logger(__name__, model_version="synthetic-20240101-120000")
        logger.info("Classified flow", category="web")
    """
    logger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger


def bind_context(**context: Any) -> None:
    """Bind key-value pairs to every entry logged from the current context."""
    structlog.contextvars.bind_contextvars(**context)
