"""Logging setup for the serverless handlers, driven by environment variables."""

import os
import logging
import sys
from typing import Optional, TextIO

from pythonjsonlogger import jsonlogger

SERVICE_NAME = "tasktrack-backend"


class ServiceJsonFormatter(jsonlogger.JsonFormatter):
    """JSON lines tagged with the service, level and logger name."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record["service"] = SERVICE_NAME
        log_record["level"] = record.levelname
        log_record["logger"] = record.name


class LoggingConfig:
    """Logging settings read once at import."""

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json").lower()
    LOG_MASK_SENSITIVE = os.environ.get("LOG_MASK_SENSITIVE", "true").lower() == "true"
    LOG_CORRELATION_ID_HEADER = os.environ.get("LOG_CORRELATION_ID_HEADER", "X-Correlation-ID")
    LOG_SLOW_OPERATION_THRESHOLD_MS = int(os.environ.get("LOG_SLOW_OPERATION_THRESHOLD_MS", "500"))

    # Client libraries that log every HTTP round trip to PostgREST
    QUIET_LOGGERS = ("httpx", "httpcore", "hpack", "supabase", "postgrest")

    @classmethod
    def level(cls) -> int:
        level = logging.getLevelName(cls.LOG_LEVEL)
        return level if isinstance(level, int) else logging.INFO

    @classmethod
    def build_formatter(cls) -> logging.Formatter:
        if cls.LOG_FORMAT == "json":
            return ServiceJsonFormatter("%(timestamp)s %(message)s", timestamp=True)
        return logging.Formatter("%(asctime)s %(levelname)-7s [%(name)s] %(message)s")

    @classmethod
    def setup_logging(cls, stream: Optional[TextIO] = None) -> None:
        """Route the root logger to stdout (or stream) with the configured format."""
        handler = logging.StreamHandler(stream or sys.stdout)
        handler.setFormatter(cls.build_formatter())

        root_logger = logging.getLogger()
        root_logger.handlers.clear()
        root_logger.addHandler(handler)
        root_logger.setLevel(cls.level())

        for name in cls.QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
