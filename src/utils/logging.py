"""Structured JSON logging configuration.

Values passed through ``extra`` are emitted as top-level JSON fields. Keys
that can carry credentials are redacted at any nesting depth, so a stray
``extra={"request": body}`` cannot leak a password or one-time code.
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Dict, Any

SENSITIVE_KEYS = frozenset({
    'password', 'password_hash', 'confirm_password', 'current_password', 'new_password',
    'code', 'verification_code', 'reset_token', 'token', 'id_token', 'authorization',
})
REDACTED = '[REDACTED]'


def _redact(key: str, value: Any) -> Any:
    if key.lower() in SENSITIVE_KEYS:
        return REDACTED
    if isinstance(value, dict):
        return {k: _redact(str(k), v) for k, v in value.items()}
    return value


class JSONFormatter(logging.Formatter):
    """One JSON object per log record."""

    _STANDARD_ATTRS = frozenset(vars(logging.LogRecord('', 0, '', 0, '', None, None))) | {'message', 'asctime'}

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extras = {
            key: value for key, value in vars(record).items()
            if key not in self._STANDARD_ATTRS and not callable(value)
        }
        log_data.update(_redact('', extras))

        return json.dumps(log_data, default=str)


def setup_structured_logging(level: str | None = None):
    """Route the root and uvicorn access loggers through JSONFormatter.

    ``level`` defaults to the LOG_LEVEL environment variable, then INFO.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    root_logger = logging.getLogger()
    root_logger.setLevel((level or os.getenv("LOG_LEVEL", "INFO")).upper())
    root_logger.handlers = [handler]

    uvicorn_access = logging.getLogger("uvicorn.access")
    uvicorn_access.handlers = [handler]
    uvicorn_access.setLevel(logging.WARNING)
