"""Process-wide logging setup and logger lookup."""

import logging
import sys

from mailcascade.core.config import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Client libraries that log full request lines at INFO.
_QUIET_LOGGERS = ("httpx", "httpcore", "aiosmtplib")


def setup_logging() -> None:
    """Configure root logging to stdout; DEBUG when settings.debug, else INFO."""
    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
