"""
structlog setup for the QA workflow service.

Workflow modules log snake_case events (file_record_created,
assignment_reassigned, review_submitted) with keyword context. Request
handlers bind the acting user once and every event of that request
carries it.
"""

import logging
import sys

import structlog

from qaflow.config import settings

# Third-party loggers held at WARNING unless DB_ECHO asks for SQL
_QUIET_LOGGERS = ("uvicorn.access", "botocore", "boto3", "s3transfer", "aiosqlite", "multipart")


def setup_logging() -> None:
    """Route stdlib and structlog output through one handler on stdout."""
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer = structlog.dev.ConsoleRenderer() if settings.DEBUG else structlog.processors.JSONRenderer()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.DB_ECHO else logging.WARNING
    )


def bind_request_context(**context) -> None:
    """
    Replace the per-request log context (user id, role).
    Clears first so nothing leaks from a previous request on the same task.
    """
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**context)
