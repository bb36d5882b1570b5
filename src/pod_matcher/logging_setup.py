# src/pod_matcher/logging_setup.py
import logging
import os
from logging.config import dictConfig

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def setup_logging(level: str | None = None):
    level = (level or LOG_LEVEL).upper()
    dictConfig({
        "version": 1,
        "disable_existing_loggers": False,

        "formatters": {
            "standard": {
                "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
            },
            "uvicorn_access": {
                "format": "%(asctime)s | %(levelname)s | %(message)s"
            },
        },

        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
            },
            "uvicorn_console": {
                "class": "logging.StreamHandler",
                "formatter": "uvicorn_access",
            },
        },

        "loggers": {
            # Children (pod_matcher.*) inherit this level and reach the root handler
            "pod_matcher": {"level": level},

            # Third-party HTTP clients log every request at INFO
            "httpx": {"level": "WARNING"},
            "anthropic": {"level": "WARNING"},

            "uvicorn.error": {"handlers": ["uvicorn_console"], "level": "INFO", "propagate": False},
            "uvicorn.access": {"handlers": ["uvicorn_console"], "level": "INFO", "propagate": False},
        },

        "root": {"handlers": ["console"], "level": "WARNING"},
    })

    logging.getLogger("pod_matcher").debug(f"Logging configured at {level}")
