"""Structured logging configuration — structlog + stdlib logging."""

from __future__ import annotations

import logging
import logging.config
import os

import structlog


def setup_logging(verbose: bool = False, log_file: str | None = None) -> None:
    """Configure structlog and stdlib logging.

    Reads from environment variables:
        DEP_INSPECTOR_LOG_LEVEL  — log level (default: INFO, DEBUG with ``verbose``)
        DEP_INSPECTOR_LOG_FORMAT — console | json (default: console)
    """
    default_level = "DEBUG" if verbose else "INFO"
    log_level = os.environ.get("DEP_INSPECTOR_LOG_LEVEL", default_level).upper()
    log_format = os.environ.get("DEP_INSPECTOR_LOG_FORMAT", "console").lower()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=log_file is None)

    structlog.configure(
        processors=shared_processors
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if log_file:
        handler: dict = {
            "class": "logging.FileHandler",
            "filename": log_file,
            "formatter": "structlog",
        }
    else:
        # stdout carries the report
        handler = {
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stderr",
            "formatter": "structlog",
        }

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structlog": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": shared_processors,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        renderer,
                    ],
                },
            },
            "handlers": {"default": handler},
            "root": {
                "handlers": ["default"],
                "level": log_level,
            },
            "loggers": {
                "dep_inspector": {"level": log_level},
                "asyncio": {"level": "WARNING"},
            },
        }
    )
