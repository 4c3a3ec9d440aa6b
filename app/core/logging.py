"""Structured logging for ReelRelay using structlog.

Production workers emit one JSON object per line; development and test
runs get colored console output. Page tokens never reach the output:
token fields are masked and ``access_token`` query parameters are
stripped from any logged URL.
"""

import logging
import re
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from app.core.config import Config, get_config

SECRET_FIELDS = frozenset(
    {"access_token", "token", "page_token", "client_secret", "app_secret", "fb_exchange_token"}
)
_TOKEN_IN_URL = re.compile(r"((?:access_token|fb_exchange_token|client_secret)=)[^&\s]+")

# Libraries that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "celery.app.trace", "yt_dlp")


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Stamp each event with the application name and environment."""
    config = get_config()
    event_dict.setdefault("app", config.app_name)
    event_dict.setdefault("env", config.app_env)
    return event_dict


def redact_secrets(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask token fields and token query parameters.

    Args:
        logger: Logger instance
        method_name: Name of the logging method
        event_dict: Event dictionary

    Returns:
        Event dictionary without credential values
    """
    for key, value in event_dict.items():
        if key in SECRET_FIELDS:
            event_dict[key] = "***"
        elif isinstance(value, str) and "=" in value:
            event_dict[key] = _TOKEN_IN_URL.sub(r"\1***", value)
    return event_dict


def build_processors(config: Config) -> list[Processor]:
    """Assemble the processor chain for an environment."""
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_app_context,
        redact_secrets,
    ]
    if config.is_production:
        return [
            *processors,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]

    if config.is_development:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.MODULE,
                    structlog.processors.CallsiteParameter.LINENO,
                ]
            )
        )
    return [
        *processors,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()),
    ]


def setup_logging() -> None:
    """Configure structlog and the standard library root logger.

    Example:
        >>> setup_logging()
        >>> get_logger(__name__).info("Worker started", queue="upload")
    """
    config = get_config()
    level = logging.DEBUG if config.debug else getattr(logging, config.log_level)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=build_processors(config),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@contextmanager
def bound_context(**values: Any) -> Iterator[None]:
    """Attach fields to every event logged inside the block.

    Example:
        >>> with bound_context(page_id="123", publish_id="a1b2"):
        ...     get_logger(__name__).info("Fetching")  # carries page_id and publish_id
    """
    tokens = structlog.contextvars.bind_contextvars(**values)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger, conventionally ``get_logger(__name__)``."""
    return structlog.get_logger(name)


__all__ = [
    "SECRET_FIELDS",
    "bound_context",
    "build_processors",
    "get_logger",
    "redact_secrets",
    "setup_logging",
]
