"""Structured JSON logger for pipeline runs.

Outputs one JSON object per line with severity, timestamp, and message
fields so batch runs can be grepped or shipped to a log collector.
"""

import json
import logging
import sys
from datetime import UTC, datetime


class StructuredJsonFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    SEVERITY_MAP: dict[int, str] = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARNING",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
    }

    EXTRA_FIELDS: tuple[str, ...] = ("source", "stage", "duration_seconds", "error")

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as a JSON string.

        Args:
            record: The log record to format.

        Returns:
            JSON string with severity, timestamp, message, and extra fields.
        """
        log_entry: dict[str, object] = {
            "timestamp": datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "severity": self.SEVERITY_MAP.get(record.levelno, "DEFAULT"),
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in self.EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value

        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = str(record.exc_info[1])

        return json.dumps(log_entry)


def setup_logging(level: int = logging.INFO) -> None:
    """Install the JSON formatter on the root logger.

    Safe to call more than once; an existing JSON handler is reused.
    """
    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers:
        if isinstance(handler.formatter, StructuredJsonFormatter):
            return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredJsonFormatter())
    root.addHandler(handler)
