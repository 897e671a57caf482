"""
Structured (JSON) logging configuration for the Goal Tracker application.

Copyright (C) 2025 Goal Tracker

Licensed under the Business Source License 1.1 (BUSL-1.1).
See LICENSE file in the repository root for details.
"""

import logging
import sys
from typing import Any

from pythonjsonlogger.json import JsonFormatter


class CustomJsonFormatter(JsonFormatter):
    """
    Custom JSON formatter for structured logging.

    Enriches log records with standardized fields for consistent
    log aggregation and analysis.
    """

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["module"] = record.module
        log_record["function"] = record.funcName
        log_record["line"] = record.lineno

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        if "message" not in log_record:
            log_record["message"] = record.getMessage()


def resolve_log_level(environment: str, log_level: str = "") -> int:
    """
    Pick the log level: an explicit LOG_LEVEL wins, otherwise DEBUG in
    development and INFO everywhere else.
    """
    level_name = log_level.upper()
    if not level_name:
        level_name = "DEBUG" if environment.lower() == "development" else "INFO"
    return getattr(logging, level_name, logging.INFO)


def configure_logging(environment: str = "development", log_level: str = "") -> None:
    """
    Configure structured JSON logging for the application.

    This function should be called once during application startup. It
    replaces any handlers on the root logger with a single stdout handler
    using the JSON formatter.
    """
    level = resolve_log_level(environment, log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicate logs
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(
        CustomJsonFormatter(
            fmt="%(timestamp)s %(level)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
            static_fields={
                "environment": environment.lower(),
                "application": "goaltracker-api",
            },
        )
    )
    root_logger.addHandler(console_handler)

    root_logger.info(
        "Structured logging configured",
        extra={"log_level": logging.getLevelName(level), "environment": environment},
    )

    # Adjust third-party library log levels to reduce noise
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
