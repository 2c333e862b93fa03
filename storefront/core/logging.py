"""Structured JSON logging for the API, the Celery worker and the scripts."""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Any

from storefront.core.config import settings

# atributos propios de LogRecord; todo lo demás viene de extra={...}
_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}

_NOISY_LOGGERS = ("sqlalchemy.engine", "httpx", "httpcore", "celery.app.trace")


class JsonFormatter(logging.Formatter):
    """One JSON object per line; ``extra`` context is merged at the top level."""

    def __init__(self, service: str | None = None, environment: str | None = None) -> None:
        super().__init__()
        self.service = service or settings.PROJECT_NAME
        self.environment = environment or settings.ENVIRONMENT

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "service": self.service,
            "env": self.environment,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS and key not in entry:
                entry[key] = value
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level: str | None = None) -> None:
    """Route every logger through a single JSON stream handler."""
    resolved = (level or settings.LOG_LEVEL).upper()
    if resolved not in logging.getLevelNamesMapping():
        resolved = "INFO"

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"json": {"()": JsonFormatter}},
            "handlers": {
                "stdout": {"class": "logging.StreamHandler", "formatter": "json", "stream": "ext://sys.stdout"},
            },
            "root": {"handlers": ["stdout"], "level": resolved},
            "loggers": {
                "storefront": {"level": resolved},
                "uvicorn.access": {"handlers": ["stdout"], "level": resolved, "propagate": False},
                **{name: {"level": "WARNING"} for name in _NOISY_LOGGERS},
            },
        }
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def security_alert(message: str, **context: Any) -> None:
    """Warning tagged ``alert=True`` for invalid signatures, failed sign-ins and the like."""
    get_logger("storefront.security").warning(message, extra={"alert": True, **context})
