"""
Structured logging for packstore services and workers.
"""

import logging
import sys
from typing import Optional

import structlog

from packstore.platform.config import Settings, settings as default_settings

# Libraries whose INFO chatter drowns out entry lifecycle logs
_NOISY_LOGGERS = ("sqlalchemy.engine", "nats")


def _renderer(config: Settings) -> structlog.types.Processor:
    fmt = config.LOG_FORMAT
    if fmt == "auto":
        fmt = "json" if config.APP_ENV == "production" else "console"
    if fmt == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def configure_logging(config: Optional[Settings] = None) -> None:
    """Configure structlog and the stdlib root logger once at process start."""
    config = config or default_settings
    log_level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _renderer(config),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    structlog.contextvars.bind_contextvars(app=config.APP_NAME, env=config.APP_ENV)


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
