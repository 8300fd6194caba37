"""
Logging configuration.

Emits structured JSON log lines to stdout so the client's logs can be
collected alongside the host application's.
"""

import json
import logging
import os
from datetime import UTC, datetime

LOG_LEVEL_ENV = "AUTHFLOW_LOG_LEVEL"

_STANDARD_ATTRS = set(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """
    Custom JSON log formatter.

    Fields passed through ``extra`` are included in the JSON object.
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format the log record as a JSON string.

        Args:
            record: The log record to format.

        Returns:
            A JSON string representing the log record.
        """
        log_object = {
            "timestamp": datetime.now(UTC).isoformat(),
            "severity": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                log_object[key] = value

        if record.exc_info:
            log_object["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_object, default=str)


def setup_global_logging(level: str | None = None) -> None:
    """
    Configure root logging with the JSON formatter.

    The level defaults to AUTHFLOW_LOG_LEVEL, then INFO. Calling this more
    than once does not add duplicate handlers.
    """
    level_name = (level or os.getenv(LOG_LEVEL_ENV) or "INFO").upper()

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    for h in list(root_logger.handlers):
        root_logger.removeHandler(h)
    root_logger.addHandler(handler)
    root_logger.setLevel(level_name)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
