"""Structured JSON logging setup."""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

from pythonjsonlogger.json import JsonFormatter

from settings import settings


class StatementJsonFormatter(JsonFormatter):
    """JSON formatter adding timestamp, level and service fields."""

    def add_fields(self, log_record: dict[str, Any], record: logging.LogRecord, message_dict: dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str | None = None, stream: TextIO | None = None) -> None:
    """Route root logging to stdout (or the given stream) as JSON lines."""
    logger = logging.getLogger()
    logger.setLevel((level or settings.log_level).upper())
    logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(StatementJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s"))
    logger.addHandler(handler)
