from __future__ import annotations

import logging
import sys
from typing import Union

LOGGER_NAME = "chronii"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(module)s.%(funcName)s:%(lineno)d] - %(message)s"


# PUBLIC_INTERFACE
def setup_logging(log_level: Union[int, str] = logging.INFO, logger_name: str = LOGGER_NAME) -> logging.Logger:
    """
    Configure and return the package logger.

    Module loggers are children of this logger (logging.getLogger(__name__)),
    so configuring it once covers the whole package.

    Args:
        log_level: Minimum level to emit, as a number or a level name.
        logger_name: Logger to configure. Defaults to the package logger.

    Returns:
        The configured logger.
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(log_level)

    # Prevent duplicate handlers when the app is created more than once (tests, reloads)
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    return logger
