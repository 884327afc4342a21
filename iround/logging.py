"""Centralized logging configuration for IterRound.

Every module logs through a child of the ``iround`` logger obtained with
``get_logger``. Levels may be given as ``logging`` constants or as names
such as ``"debug"``, which is how ``LoggingVisitor`` accepts its level.
"""

import logging
import sys
from typing import Optional, Union

# Set once the package logger has its handler
_ROOT_LOGGER_CONFIGURED = False

_ROOT_LOGGER_NAME = "iround"

_DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

LevelLike = Union[int, str]


def resolve_level(level: LevelLike) -> int:
    """Turn a level constant or a case-insensitive level name into an int.

    Args:
        level: ``logging.DEBUG``, ``20``, ``"debug"``, ``"WARNING"`` and so on.

    Returns:
        Numeric logging level.

    Raises:
        ValueError: If ``level`` is a string that names no known level.
    """
    if isinstance(level, int):
        return level
    # getLevelName maps registered names back to their numbers
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown logging level name '{level}'")
    return resolved


def setup_root_logger(
    level: LevelLike = logging.INFO,
    format_string: Optional[str] = None,
    handler: Optional[logging.Handler] = None,
) -> None:
    """Attach a single handler to the ``iround`` logger.

    Later calls are no-ops until ``reset_logging`` runs.

    Args:
        level: Logging level or level name (default: INFO).
        format_string: Custom format string (optional).
        handler: Custom handler (optional, defaults to a stdout StreamHandler).
    """
    global _ROOT_LOGGER_CONFIGURED

    if _ROOT_LOGGER_CONFIGURED:
        return

    package_logger = logging.getLogger(_ROOT_LOGGER_NAME)
    package_logger.setLevel(resolve_level(level))

    # Drop handlers left over from an earlier configuration
    package_logger.handlers.clear()

    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(format_string or _DEFAULT_FORMAT))
    package_logger.addHandler(handler)

    # Let logs propagate to root logger so pytest can capture them
    package_logger.propagate = True

    _ROOT_LOGGER_CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger below the ``iround`` package logger.

    Child loggers never get handlers of their own; they inherit level and
    output from ``iround``.

    Args:
        name: Logger name (typically __name__ from calling module).

    Returns:
        Logger instance.
    """
    setup_root_logger()

    logger = logging.getLogger(name)
    logger.setLevel(logging.NOTSET)  # Inherit from parent
    return logger


def set_global_log_level(level: LevelLike) -> None:
    """Set the log level for all IterRound loggers and their handler.

    Args:
        level: Logging level or level name (e.g. ``logging.DEBUG``, ``"info"``).

    Raises:
        ValueError: If ``level`` names no known level.
    """
    numeric = resolve_level(level)
    setup_root_logger()

    package_logger = logging.getLogger(_ROOT_LOGGER_NAME)
    package_logger.setLevel(numeric)

    # Handlers filter too, so keep them in step with the logger
    for handler in package_logger.handlers:
        handler.setLevel(numeric)


def enable_debug_logging() -> None:
    """Enable debug logging for the entire package."""
    set_global_log_level(logging.DEBUG)


def disable_debug_logging() -> None:
    """Disable debug logging, set to INFO level."""
    set_global_log_level(logging.INFO)


def reset_logging() -> None:
    """Forget the handler setup so the next ``get_logger`` call redoes it (for tests)."""
    global _ROOT_LOGGER_CONFIGURED
    _ROOT_LOGGER_CONFIGURED = False

    package_logger = logging.getLogger(_ROOT_LOGGER_NAME)
    package_logger.handlers.clear()
    package_logger.setLevel(logging.NOTSET)


# Configure the package logger on first import
setup_root_logger()
