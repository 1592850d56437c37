"""
Logging
"""

# pyright: basic

import logging
import sys
from contextlib import contextmanager

from asgi_correlation_id.context import correlation_id
from loguru import logger

from hostcare.core.config import settings
from hostcare.schema.log_entry import LogEntry

__all__ = (
    "bind_correlation_id",
    "log_serializer",
    "logger",
    "sink",
    "uvicorn_log_config",
)


class InterceptHandler(logging.Handler):
    def emit(self, record):
        # Get corresponding Loguru level
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller to get correct stack depth
        frame, depth = logging.currentframe(), 2
        while frame.f_back and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


uvicorn_log_config = {
    "version": 1,
    "disable_existing_loggers": False,
    "filters": {
        "correlation_id": {
            "()": "asgi_correlation_id.CorrelationIdFilter",
            "default_value": "",
        },
    },
    "formatters": {
        "default": {
            "format": '{"asctime":"%(asctime)s","levelname":"%(levelname)s","message":"%(correlation_id)s - %(name)s - %(message)s"}',
        },
    },
    "handlers": {
        "default": {
            "class": "logging.StreamHandler",
            "formatter": "default",
            "stream": "ext://sys.stdout",
            "filters": ["correlation_id"],
        },
    },
    "loggers": {
        "uvicorn": {"handlers": ["default"], "level": "INFO", "propagate": False},
        "uvicorn.access": {"handlers": ["default"], "level": "INFO", "propagate": False},
        "uvicorn.error": {"handlers": ["default"], "level": "ERROR", "propagate": False},
    },
    "root": {"handlers": ["default"], "level": "DEBUG" if settings.DEBUG else "INFO"},
}


@contextmanager
def bind_correlation_id(value: str):
    """
    Tag every log line emitted inside the block with *value*.

    Outside of HTTP requests this is how a maintenance session stamps its
    id on the log stream.
    """
    token = correlation_id.set(value)
    try:
        yield
    finally:
        correlation_id.reset(token)


def log_serializer(record) -> str:
    """
    Custom log serializer for loguru
    """

    cid = correlation_id.get() or ""
    message = record["message"]
    if len(message) > settings.LOG_MESSAGE_MAX_LEN:
        message = message[: settings.LOG_MESSAGE_MAX_LEN - 3] + "..."

    log_entry = LogEntry(
        asctime=record["time"],
        levelname=record["level"].name,
        message=f"{cid} - {record['name']} - {message}",
    )

    return log_entry.model_dump_json()


def sink(message) -> None:
    """
    Custom sink for loguru. Writes to stderr so stdout stays free for command output.
    """
    print(log_serializer(message.record), file=sys.stderr)


logger.remove()

logger.add(
    sink,
    level="DEBUG" if settings.DEBUG else "INFO",
)


logging.basicConfig(handlers=[InterceptHandler()], level=logging.INFO)
