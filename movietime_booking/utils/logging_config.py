"""
Logging configuration for the API process and the Celery workers.
"""

import json
import logging
import logging.config
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

APP_LOGGER = "movietime_booking"
BUSINESS_LOGGER = "movietime_booking.business"

# Third-party loggers and the level they are kept at
LIBRARY_LEVELS = {
    "uvicorn": "INFO",
    "sqlalchemy.engine": "WARNING",
    "sqlalchemy.pool": "WARNING",
    "celery": "INFO",
    "kombu": "WARNING",
    "httpx": "WARNING",
}


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    enable_json_logging: bool = False,
) -> None:
    """
    Configure logging for the service.

    Records are tagged with a correlation id: the HTTP request id inside the
    API, the Celery task id inside a worker. With ``log_file`` set, booking
    lifecycle events additionally go to ``<log_file stem>_bookings.log``.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path
        enable_json_logging: Enable JSON formatted logs
    """
    formatter = "json" if enable_json_logging else "detailed"
    shared_filters = ["correlation_id", "sensitive_data"]

    handlers: Dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": log_level,
            "formatter": formatter,
            "stream": sys.stdout,
            "filters": shared_filters,
        }
    }
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = _rotating_file(str(path), log_level, formatter, shared_filters)
        handlers["booking_events"] = _rotating_file(
            str(path.with_name(f"{path.stem}_bookings{path.suffix}")), "INFO", "json", shared_filters
        )

    default_handlers = [name for name in ("console", "file") if name in handlers]

    loggers: Dict[str, Any] = {
        APP_LOGGER: {"level": log_level, "handlers": default_handlers, "propagate": False},
        BUSINESS_LOGGER: {
            "level": "INFO",
            "handlers": default_handlers + (["booking_events"] if log_file else []),
            "propagate": False,
        },
    }
    for name, level in LIBRARY_LEVELS.items():
        loggers[name] = {"level": level, "handlers": default_handlers, "propagate": False}

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "detailed": {
                "format": (
                    "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d "
                    "[%(correlation_id)s] %(message)s"
                ),
                "datefmt": "%Y-%m-%d %H:%M:%S"
            },
            "json": {
                "()": "movietime_booking.utils.logging_config.JSONFormatter",
            }
        },
        "filters": {
            "correlation_id": {
                "()": "movietime_booking.utils.logging_config.CorrelationIDFilter"
            },
            "sensitive_data": {
                "()": "movietime_booking.utils.logging_config.SensitiveDataFilter"
            }
        },
        "handlers": handlers,
        "loggers": loggers,
        "root": {"level": log_level, "handlers": default_handlers},
    })


def _rotating_file(filename: str, level: str, formatter: str, filters: list) -> Dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "formatter": formatter,
        "filename": filename,
        "maxBytes": 10 * 1024 * 1024,  # 10MB
        "backupCount": 5,
        "filters": filters,
    }


class CorrelationIDFilter(logging.Filter):
    """Tag records with the current request id, or the Celery task id in workers."""

    def filter(self, record):
        correlation_id = getattr(record, "correlation_id", None)

        if not correlation_id:
            from movietime_booking.middleware.logging import NO_REQUEST_ID, request_id_var

            correlation_id = request_id_var.get()
            if correlation_id == NO_REQUEST_ID:
                correlation_id = _current_task_id() or correlation_id

        record.correlation_id = correlation_id
        return True


def _current_task_id() -> Optional[str]:
    from celery import current_task

    if current_task and current_task.request.id:
        return f"task:{current_task.request.id}"
    return None


class SensitiveDataFilter(logging.Filter):
    """Mask credentials and customer email addresses in log records."""

    SENSITIVE_KEYS = {
        'password', 'token', 'secret', 'authorization',
        'cookie', 'api_key', 'smtp_password', 'card'
    }

    EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b')

    def filter(self, record):
        if isinstance(record.msg, str):
            record.msg = self.EMAIL_PATTERN.sub('***EMAIL***', record.msg)

        for key, value in list(record.__dict__.items()):
            if isinstance(value, dict):
                setattr(record, key, self._mask(value))

        return True

    def _mask(self, data):
        if isinstance(data, dict):
            return {
                key: '***MASKED***' if any(sensitive in str(key).lower() for sensitive in self.SENSITIVE_KEYS)
                else self._mask(value)
                for key, value in data.items()
            }
        if isinstance(data, str):
            return self.EMAIL_PATTERN.sub('***EMAIL***', data)
        if isinstance(data, (list, tuple)):
            return type(data)(self._mask(item) for item in data)
        return data


class JSONFormatter(logging.Formatter):
    """One JSON object per record; extras such as booking ids land under ``extra``."""

    STANDARD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
        "message", "correlation_id", "asctime",
    }

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        extra = {key: value for key, value in vars(record).items() if key not in self.STANDARD_ATTRS}
        if extra:
            log_entry["extra"] = extra

        return json.dumps(log_entry, default=str, ensure_ascii=False)


def log_business_event(event_type: str, details: Dict[str, Any], user_id: Optional[str] = None):
    """Record a booking lifecycle event (``booking.reserved``, ``booking.paid``, ``booking.expired``)."""
    logging.getLogger(BUSINESS_LOGGER).info(
        f"Business event: {event_type}",
        extra={
            "event_type": event_type,
            "user_id": user_id,
            "details": details,
        }
    )
