"""Logging for the s3sign command line.

The dispatcher attaches ``method``, ``url``, ``state`` and ``status`` to the
records it emits for each request state change. The JSON format lifts them
into top-level fields so one request can be followed through its states.
"""

import json
import logging
import sys
from datetime import datetime, timezone

REQUEST_FIELDS = ("method", "url", "state", "status")

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in REQUEST_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(level: str = "WARNING", fmt: str = "text",
                      stream=None) -> logging.Handler:
    """Send s3sign records at ``level`` and above to ``stream`` (stderr).

    Only the ``s3sign`` logger is touched; a second call replaces the
    handler installed by the first.
    """
    logger = logging.getLogger("s3sign")
    logger.setLevel(getattr(logging, level.upper(), logging.WARNING))
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JSONFormatter() if fmt == "json" else logging.Formatter(TEXT_FORMAT))
    logger.addHandler(handler)
    return handler
