"""Central logging configuration for the form engine service.

Installs one stdout handler on the root logger so module loggers emit without
per-module setup. Uvicorn loggers share the handler; repeated calls under a
reloader do not duplicate output.
"""
from __future__ import annotations
import logging
import os
from logging.config import dictConfig


def _dict_config(level: str) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s %(levelname)s:%(name)s:%(message)s",
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "default",
                "stream": "ext://sys.stdout",
            }
        },
        "root": {"level": level, "handlers": ["console"]},
        "loggers": {
            "uvicorn": {"level": "INFO", "handlers": ["console"], "propagate": False},
            "uvicorn.access": {"level": "INFO", "handlers": ["console"], "propagate": False},
            "sqlalchemy.engine": {"level": "WARNING", "propagate": True},
        },
    }


def configure_logging(level: str | None = None) -> None:
    """Configure application-wide logging once.

    LOG_LEVEL selects the root level (default INFO). If the root logger already
    has handlers this is a no-op.
    """
    root = logging.getLogger()
    if root.handlers:
        return
    dictConfig(_dict_config((level or os.getenv("LOG_LEVEL") or "INFO").upper()))
