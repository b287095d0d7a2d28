"""
Logging setup for the TipKesho backend.

Modules log through ``logging.getLogger(__name__)``; this only wires the
handlers once at application startup.
"""

from __future__ import annotations

import logging.config
import sys


def configure_logging(level: str = "INFO") -> None:
    """Apply a console logging configuration for the app and uvicorn."""
    level = level.upper()

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "simple": {
                    "format": "%(asctime)s | %(levelname)-8s | %(name)-32s | %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "simple",
                    "stream": sys.stdout,
                },
            },
            "loggers": {
                "": {"handlers": ["console"], "level": level},
                "tipkesho": {
                    "handlers": ["console"],
                    "level": level,
                    "propagate": False,
                },
                "uvicorn.error": {
                    "handlers": ["console"],
                    "level": level,
                    "propagate": False,
                },
                "uvicorn.access": {
                    "handlers": ["console"],
                    "level": level,
                    "propagate": False,
                },
            },
        }
    )
