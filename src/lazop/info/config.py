"""
This module initializes lazop-wide config information which may be needed by some sub-modules.
Sub-modules which need it should load this module at their top level.
"""

# Environment variables are queried through functions so that changes made after import are honored.

import logging
import os
import sys

__all__ = [
    "LOG_NAME",
    "log_level",
    "get_logger",
    "init_logger",
]

#: Root logger of the library.  Sub-modules log to children of this logger.
LOG_NAME = "lazop"


def log_level() -> str:
    # verbosity requested by the user (if any)
    return os.getenv("LAZOP_LOG_LEVEL", "WARNING").strip().upper()


def get_logger(name: str = None) -> logging.Logger:
    """
    Logger used by lazop sub-modules.

    Parameters
    ----------
    name: str
        Sub-module name.  (Default: the library's root logger.)
    """
    log_name = LOG_NAME if (name is None) else f"{LOG_NAME}.{name}"
    return logging.getLogger(log_name)


def init_logger(level: str = None, stream=None) -> logging.Logger:
    """
    Attach a console handler to the library's root logger.

    The library never installs handlers by itself: this helper is meant for interactive sessions and scripts.

    Parameters
    ----------
    level: str
        Logging level.  (Default: value of the ``LAZOP_LOG_LEVEL`` environment variable, else WARNING.)
    stream: io.TextIOBase
        Output stream.  (Default: stdout.)
    """
    if level is None:
        level = log_level()
    if stream is None:
        stream = sys.stdout

    logger = get_logger()
    logger.handlers.clear()
    logger.setLevel(level)

    fmt = logging.Formatter(fmt="{levelname} -- {message}", style="{")
    handler = logging.StreamHandler(stream)
    handler.setLevel(level)
    handler.setFormatter(fmt)
    logger.addHandler(handler)
    return logger
