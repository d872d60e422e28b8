"""
Logging setup for ClusterKit.

Every module gets its logger through ``get_logger(__name__)`` so that all
package loggers hang off the ``clusterkit`` root and can be configured in
one place.

Usage:
    from clusterkit.utils.logging_config import get_logger, setup_logging

    logger = get_logger(__name__)
    setup_logging("DEBUG")  # optional, attaches a stderr handler
"""

import logging
from typing import Optional, Union

PACKAGE_LOGGER_NAME = "clusterkit"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_handler: Optional[logging.Handler] = None

# Library default: no output unless the application configures logging
logging.getLogger(PACKAGE_LOGGER_NAME).addHandler(logging.NullHandler())


def get_logger(name: str) -> logging.Logger:
    """
    Return a logger for a module inside the package.

    Names outside the ``clusterkit`` namespace are nested under it so they
    still obey ``setup_logging``.

    Args:
        name: Usually ``__name__`` of the calling module

    Returns:
        logging.Logger instance
    """
    if name != PACKAGE_LOGGER_NAME and not name.startswith(PACKAGE_LOGGER_NAME + "."):
        name = f"{PACKAGE_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def setup_logging(
    level: Union[int, str] = logging.INFO,
    fmt: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """
    Attach a single stream handler to the package logger.

    Calling it again replaces the previous handler instead of stacking a
    second one.

    Args:
        level: Logging level name or number
        fmt: Format string for the handler

    Returns:
        The configured package logger
    """
    global _handler

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown logging level: {level}")

    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    if _handler is not None:
        package_logger.removeHandler(_handler)

    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter(fmt))
    package_logger.addHandler(_handler)
    package_logger.setLevel(level)
    return package_logger
