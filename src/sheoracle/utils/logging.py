"""
sheoracle Logging Helpers
"""

import logging
from typing import Optional, Union

ROOT_LOGGER = "sheoracle"
LOG_FORMAT = "%(levelname)s:%(name)s:%(message)s"


def get_logger(name: str) -> logging.Logger:
    """Return a logger nested under the package namespace."""
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def configure_logging(level: Union[int, str] = logging.INFO, fmt: Optional[str] = None) -> logging.Logger:
    """Install a single stream handler on the package logger."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger(ROOT_LOGGER)
    for handler in list(root.handlers):
        if getattr(handler, "_sheoracle", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt or LOG_FORMAT))
    handler._sheoracle = True
    root.addHandler(handler)
    root.setLevel(level)
    return root
