"""Logging setup for the service process."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from logging.config import dictConfig

from backoffice.core.config import LoggingSettings


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


def configure_logging(settings: LoggingSettings) -> None:
    formatter = "json" if settings.json_format else "plain"
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "plain": {"format": "%(asctime)s %(levelname)s [%(name)s] %(message)s"},
                "json": {"()": JSONFormatter},
            },
            "handlers": {
                "console": {"class": "logging.StreamHandler", "formatter": formatter},
            },
            "loggers": {
                "backoffice": {"handlers": ["console"], "level": settings.level.upper(), "propagate": False},
            },
        }
    )


__all__ = ["JSONFormatter", "configure_logging"]
