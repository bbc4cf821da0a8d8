"""structlog setup shared by the CLI and the catalog service."""

import logging
import sys
from typing import Any

import structlog

from bookrecon.config import get_config

# Libraries that log every request/statement at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "aiosqlite")


def configure_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """Route structlog and stdlib logging through one renderer.

    ``level`` and ``json_logs`` override LOG_LEVEL / JSON_LOGS when given.
    """
    config = get_config()
    level = (level or config.log_level).upper()
    if json_logs is None:
        json_logs = config.json_logs

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    processors.append(
        structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
        level=level,
        force=True,
    )
    if level != "DEBUG":
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
