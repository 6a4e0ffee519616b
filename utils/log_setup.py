"""
Logging configuration for the engine and the command line entry point.
"""

import logging

from constants import LOG_FORMAT


def configure_logging(level="WARNING", stream=None):
    """Install a stream handler on the root logger.

    Args:
        level: Level name or number, e.g. 'DEBUG' or logging.INFO
        stream: Optional stream, defaults to stderr

    Returns:
        The configured root logger
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, '_find_replace_handler', False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._find_replace_handler = True
    root.addHandler(handler)
    root.setLevel(level)
    return root
