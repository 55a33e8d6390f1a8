"""
Application-wide logging configuration.

Every module logs through ``logging.getLogger(__name__)``; this module wires
those loggers to a single console handler the first time the app starts.
"""
import logging
from logging.config import dictConfig
from typing import Optional


_is_configured = False


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root and application loggers if they have not been configured yet.

    Args:
        level: Optional log level override (e.g., "DEBUG", "INFO").
    """
    global _is_configured

    if _is_configured:
        return

    log_level = (level or "INFO").upper()

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "standard",
                    "level": log_level,
                }
            },
            "root": {
                "handlers": ["console"],
                "level": log_level,
            },
        }
    )

    logging.getLogger("src.crm_tool").setLevel(log_level)

    _is_configured = True
