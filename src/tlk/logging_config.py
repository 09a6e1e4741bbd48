"""Logging configuration for the tlk command line."""

import logging
import logging.config


def setup_logging(log_level: str = "WARNING") -> None:
    """
    Send log records from the ``tlk`` package to stderr.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "plain": {
                "format": "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "plain",
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {
            "tlk": {
                "level": log_level.upper(),
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }

    logging.config.dictConfig(logging_config)
