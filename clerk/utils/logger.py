"""
Logging setup for the Clerk.

One colored stream handler on the root ``clerk`` logger; modules ask for a
child logger with ``get_logger(__name__)``.
"""

import logging
import sys

import colorlog

from clerk.config import Config

_configured = False


def configure_logging(level: str = None):
    """Install the colored console handler (idempotent)."""
    global _configured
    level = (level or Config.LOG_LEVEL).upper()

    handler = colorlog.StreamHandler(sys.stdout)
    handler.setFormatter(
        colorlog.ColoredFormatter(
            "%(log_color)s%(asctime)s %(levelname)-8s [%(name)s]%(reset)s %(message)s",
            datefmt="%H:%M:%S",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "bold_red",
            },
        )
    )

    root = logging.getLogger("clerk")
    root.setLevel(level)
    root.handlers = [handler]
    root.propagate = False

    # Silence overly chatty libs
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    _configured = True


def get_logger(name: str = None) -> logging.Logger:
    if not _configured:
        configure_logging()
    if not name or name == "clerk":
        return logging.getLogger("clerk")
    if name.startswith("clerk."):
        return logging.getLogger(name)
    return logging.getLogger(f"clerk.{name}")
