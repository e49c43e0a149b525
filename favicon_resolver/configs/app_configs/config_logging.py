# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.

"""Logging configuration"""

import logging
import sys
from logging.config import dictConfig

from dockerflow import logging as dockerflow_logging

from favicon_resolver.configs import settings

# Handler names by `logging.format`
LOG_HANDLERS: dict[str, str] = {
    "mozlog": "console-mozlog",
    "pretty": "console-pretty",
}

# Loggers owned by the service, all routed to the configured handler
APP_LOGGERS: tuple[str, ...] = ("favicon_resolver", "request.summary")

# Outbound HTTP client loggers, capped at WARNING
HTTP_CLIENT_LOGGERS: tuple[str, ...] = ("httpx", "httpcore")


def configure_logging() -> None:
    """Configure logging with MozLog, or with rich for local development."""
    log_format = settings.logging.format
    handler = LOG_HANDLERS.get(log_format)
    if handler is None:
        raise ValueError(
            f"Invalid log format: {log_format}. Should be one of {sorted(LOG_HANDLERS)}."
        )

    if settings.current_env.lower() == "production" and log_format != "mozlog":
        raise ValueError("Log format must be 'mozlog' in production")

    app_logger = {
        "handlers": [handler],
        "level": settings.logging.level,
        "propagate": settings.logging.can_propagate,
    }
    http_client_logger = {
        "handlers": [handler],
        "level": "WARNING",
        "propagate": False,
    }

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "text": {"format": "%(message)s"},
                "json": {
                    "()": GCPCompatibleJSONFormatter,
                    "logger_name": "favicon_resolver",
                },
            },
            "handlers": {
                "console-mozlog": {
                    "level": settings.logging.level,
                    "class": "logging.StreamHandler",
                    "formatter": "json",
                    "stream": sys.stdout,
                },
                "console-pretty": {
                    "level": settings.logging.level,
                    "class": "rich.logging.RichHandler",
                    "formatter": "text",
                },
            },
            "loggers": {
                **{name: dict(app_logger) for name in APP_LOGGERS},
                **{name: dict(http_client_logger) for name in HTTP_CLIENT_LOGGERS},
            },
        }
    )


class GCPCompatibleJSONFormatter(dockerflow_logging.JsonLogFormatter):
    """MozLog JSON formatter that also writes the numeric `severity` GCP reads."""

    SEVERITY_BY_LEVEL = {
        logging.CRITICAL: 600,
        logging.ERROR: 500,
        logging.WARNING: 400,
        logging.INFO: 200,
        logging.DEBUG: 100,
    }

    def convert_record(self, record):
        """Add `severity` to the converted MozLog record."""
        out = super().convert_record(record)
        out["severity"] = self.SEVERITY_BY_LEVEL.get(record.levelno, 0)
        return out
