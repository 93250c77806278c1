from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from app.context import get_correlation_id


# Only these ``extra`` keys reach the output; anything else is dropped.
LOGGED_FIELDS = frozenset(
    {
        "method",
        "path",
        "status_code",
        "duration_ms",
        "reason",
        "user_id",
        "role",
        "resource",
        "entity_id",
        "customer_id",
        "deleted_leads",
        "error",
    }
)
MAX_ERROR_LENGTH = 500

_default_record_factory = logging.getLogRecordFactory()


def _record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
    record = _default_record_factory(*args, **kwargs)
    if not getattr(record, "correlation_id", None):
        record.correlation_id = get_correlation_id()
    return record


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        fields = {key: value for key, value in record.__dict__.items() if key in LOGGED_FIELDS}
        if isinstance(fields.get("error"), str):
            fields["error"] = fields["error"][:MAX_ERROR_LENGTH]
        if record.exc_info:
            fields["exception"] = self.formatException(record.exc_info)

        return json.dumps(
            {
                "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
                "correlation_id": getattr(record, "correlation_id", None),
                "fields": fields,
            },
            default=str,
        )


def configure_logging(level: str = "INFO") -> None:
    root_logger = logging.getLogger()
    if getattr(root_logger, "_crm_configured", False):
        return

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonLogFormatter())

    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.addHandler(handler)
    logging.setLogRecordFactory(_record_factory)
    root_logger._crm_configured = True  # type: ignore[attr-defined]
