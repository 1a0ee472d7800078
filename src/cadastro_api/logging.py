"""
Structured logging for the cadastro API.

Every event carries ``service``. Inside a request it also carries
``request_id``, ``method`` and ``path``, bound by the HTTP middleware in
``main`` through ``structlog.contextvars``.
"""

import logging
import sys
from typing import Any, List, MutableMapping, cast

import structlog

from src.cadastro_api.config import Settings

SERVICE_NAME = "cadastro-api"

_QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "passlib")


def add_service_name(_logger: Any, _method: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def setup_logging(settings: Settings) -> None:
    """Route structlog through stdlib logging; console output in development, JSON elsewhere."""
    level = getattr(logging, settings.log_level, logging.INFO)

    processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        add_service_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.is_development:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.extend([structlog.processors.format_exc_info, structlog.processors.JSONRenderer(ensure_ascii=False)])

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    # passlib warns about the bcrypt version check on bcrypt 4.x.
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.ERROR if name == "passlib" else logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))
