"""Logging setup for the conversation service."""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

_configured = False


def setup_logging(level: str = "INFO") -> None:
    """
    Configure root logging once per process.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ...)
    """
    global _configured
    if _configured:
        logging.getLogger().setLevel(level.upper())
        return

    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    _configured = True
