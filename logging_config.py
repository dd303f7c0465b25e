"""Structured logging shared by the API process and the Celery worker."""
import logging
import sys
from typing import Any, Optional

import structlog
from config import get_settings

SERVICE_NAME = "load_workflow"

# Noisy third-party loggers and the level they are capped at
LIBRARY_LOG_LEVELS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "httpx": logging.WARNING,
    "celery": logging.INFO,
}


def _add_service(logger: Any, method_name: str, event_dict: dict) -> dict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def setup_logging(log_level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    """
    Configure structlog on top of the standard library logger.

    Production renders one JSON object per line; every other environment
    gets the colored console renderer. Context bound with ``bind_context``
    (request id, load id, action) is merged into every entry.

    Args:
        log_level: Override for ``settings.log_level``
        json_output: Override for the production/console choice
    """
    settings = get_settings()
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    if json_output is None:
        json_output = settings.is_production

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name, library_level in LIBRARY_LOG_LEVELS.items():
        logging.getLogger(name).setLevel(library_level)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _add_service,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors += [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Logger for a module, typically ``get_logger(__name__)``."""
    return structlog.get_logger(name)


def bind_context(**context: Any) -> None:
    """Attach key/values to every log entry until unbound or cleared."""
    structlog.contextvars.bind_contextvars(**context)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Drop all bound context; called at the end of each request."""
    structlog.contextvars.clear_contextvars()
