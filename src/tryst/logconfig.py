import logging
import os
from typing import Optional

LOGGER_NAME = "tryst"

# Below DEBUG; used for per-alternative backtracking in the parser combinators.
TRACE = 5

logging.addLevelName(TRACE, "TRACE")

DEFAULT_LEVEL = "WARNING"
DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(name)s:%(lineno)d] - %(message)s"


def get_level() -> str:
    """Return the level named by `TRYST_LOGGING_LEVEL`, or `WARNING`."""
    return os.getenv("TRYST_LOGGING_LEVEL", DEFAULT_LEVEL)


def dev_logger_enabled() -> bool:
    return os.getenv("TRYST_USE_DEV_LOGGER", "").lower() == "true"


def get_handler(
    level: Optional[str] = None, fmt: str = DEFAULT_FORMAT
) -> logging.Handler:
    """Return the handler for reader logs.

    Records are written to stderr only when the development logger is enabled with
    `TRYST_USE_DEV_LOGGER=true`. Otherwise a `NullHandler` swallows them, so the
    reader stays quiet when embedded in another application."""
    handler: logging.Handler = (
        logging.StreamHandler() if dev_logger_enabled() else logging.NullHandler()
    )
    handler.setFormatter(logging.Formatter(fmt))
    handler.setLevel(level or get_level())
    return handler


def configure_root_logger(
    level: Optional[str] = None, fmt: str = DEFAULT_FORMAT
) -> None:
    """Set the level of the `tryst` logger and attach the handler from
    `get_handler` to it."""
    level = level or get_level()
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.addHandler(get_handler(level=level, fmt=fmt))
