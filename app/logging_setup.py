# app/logging_setup.py
import logging
import logging.config
from typing import Dict, Any

from app.config import LOG_LEVEL

# Structured JSON logging, one line per record, tagged with the request's
# correlation id.
LOGGING_CONFIG: Dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "filters": {
        "correlation_id": {
            "()": "asgi_correlation_id.CorrelationIdFilter",
            "uuid_length": 32,
            "default_value": "-",
        },
    },
    "formatters": {
        "json": {
            "()": "pythonjsonlogger.json.JsonFormatter",
            "format": "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s: %(message)s",
            "rename_fields": {"levelname": "level"},
        },
    },
    "handlers": {
        "default": {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "filters": ["correlation_id"],
            "level": LOG_LEVEL,
        },
    },
    "loggers": {
        "fastapi": {"handlers": ["default"], "level": "INFO", "propagate": False},
        "uvicorn": {"handlers": ["default"], "level": "INFO", "propagate": False},
        "pymongo": {"handlers": ["default"], "level": "WARNING", "propagate": False},
        # Engine modules log through children of this logger ("api.forms", ...).
        "api": {"handlers": ["default"], "level": LOG_LEVEL, "propagate": False},
    },
}

logger = logging.getLogger("api")


def get_logger(name: str) -> logging.Logger:
    """Returns a child of the "api" logger, e.g. get_logger("forms")."""
    return logger.getChild(name)


def setup_logging():
    """
    Applies the logging configuration from the LOGGING_CONFIG dictionary.
    """
    logging.config.dictConfig(LOGGING_CONFIG)
