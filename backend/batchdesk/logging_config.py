"""
Structured JSON logging for the batch desk backend.

One JSON object per line on stdout. Loggers are grouped in channels:
- http: request lifecycle and route-level events
- db: commits, rollbacks and schema events
- matching: meeting export name matching
- ledger: point changes, resets, restores and weekly snapshots

Every entry carries the request id of the HTTP request being served.
"""

import logging
import json
import os
import uuid
from datetime import datetime, timezone
from contextvars import ContextVar

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

LOGGER_PREFIX = "batchdesk"
CHANNELS = ("http", "db", "matching", "ledger")


def _channel_of(record: logging.LogRecord) -> str:
    channel = getattr(record, "channel", None)
    if channel:
        return channel
    prefix, _, name = record.name.partition(".")
    return name if prefix == LOGGER_PREFIX and name else "app"


class StructuredJsonFormatter(logging.Formatter):
    """Renders a record as {timestamp, level, message, channel, context, extra[, exception]}."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry = {
            "timestamp": timestamp.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "message": record.getMessage(),
            "channel": _channel_of(record),
            "context": {"request_id": request_id_var.get(""), **(getattr(record, "context", None) or {})},
            "extra": getattr(record, "extra_data", None) or {},
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging():
    """Install the JSON handler on the root logger and set channel levels."""
    level = getattr(logging, LOG_LEVEL, logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredJsonFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    for channel in CHANNELS:
        get_logger(channel).setLevel(level)
    return root_logger


def get_logger(channel: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_PREFIX}.{channel}")


def log_with_context(logger: logging.Logger, level: str, message: str,
                     context: dict = None, extra_data: dict = None):
    """
    Log `message` with business context and extra metadata attached.

    Args:
        logger: Channel logger from get_logger()
        level: Level name (DEBUG, INFO, WARNING, ERROR)
        message: Human-readable message
        context: Identifiers such as batch_id, student_id, snapshot_id
        extra_data: Measurements such as counts and duration_ms
    """
    logger.log(
        getattr(logging, level.upper(), logging.INFO),
        message,
        extra={
            "context": context or {},
            "extra_data": extra_data or {},
            "channel": logger.name.rpartition(".")[2],
        }
    )


def generate_request_id() -> str:
    return str(uuid.uuid4())
