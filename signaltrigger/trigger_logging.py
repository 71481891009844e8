"""Logging support for signaltrigger.

It is modeled on the default `logging approach that comes with Python <https://docs.python.org/library/logging.html>`_.
The library logs to a root logger named ``SIGNALTRIGGER`` which has a ``NullHandler``
attached, so nothing is printed unless the host application configures logging or calls
:func:`log_to_stderr`.

Each module gets its own child logger via :func:`create_module_logger`, and
:func:`method_logger` / :func:`function_logger` can be used to log calls at DEBUG level.
"""

from __future__ import annotations

import inspect
import logging
from functools import wraps
from logging import DEBUG, INFO

__all__ = [
    "DEBUG",
    "DEFAULT_LEVEL",
    "INFO",
    "LOGGER_NAME",
    "create_module_logger",
    "function_logger",
    "get_module_logger",
    "get_rootlogger",
    "log_to_stderr",
    "method_logger",
]

LOGGER_NAME = "SIGNALTRIGGER"
DEFAULT_LEVEL = DEBUG

_module_loggers: dict[str, logging.Logger] = {}


def create_module_logger(name: str | None = None) -> logging.Logger:
    """Helper function for creating a module logger.

    Args:
        name: The name to be given to the logger. If the name is None, the name
            defaults to the name of the calling module.

    """
    if name is None:
        frame = inspect.stack()[1]
        module = inspect.getmodule(frame[0])
        name = module.__name__ if module is not None else "__main__"
    logger = logging.getLogger(f"{LOGGER_NAME}.{name}")

    _module_loggers[name] = logger
    return logger


def get_module_logger(name: str) -> logging.Logger:
    """Helper function for getting the module logger.

    Args:
        name: The name of the module in which the method being decorated is located

    """
    try:
        logger = _module_loggers[name]
    except KeyError:
        logger = create_module_logger(name)

    return logger


_rootlogger = logging.getLogger(LOGGER_NAME)
_rootlogger.addHandler(logging.NullHandler())


class SignalTriggerFormatter(logging.Formatter):
    """Formatter used for the stderr handler."""

    format_string = "[%(name)s %(levelname)s] %(message)s"

    def __init__(self):
        super().__init__(self.format_string)


def method_logger(name: str):
    """Decorator for adding logging to a method.

    Args:
        name: The name of the module in which the method being decorated is located

    """
    logger = get_module_logger(name)
    classname = inspect.getouterframes(inspect.currentframe())[1][3]

    def real_decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            # args[0] is the instance
            logger.debug(
                f"calling {classname}.{func.__name__} with {args[1::]} and {kwargs}"
            )
            return func(*args, **kwargs)

        return wrapper

    return real_decorator


def function_logger(name: str):
    """Decorator for adding logging to a function.

    Args:
        name: The name of the module in which the function being decorated is located

    """
    logger = get_module_logger(name)

    def real_decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            logger.debug(f"calling {func.__name__} with {args} and {kwargs}")
            return func(*args, **kwargs)

        return wrapper

    return real_decorator


def get_rootlogger() -> logging.Logger:
    """Return the root logger of the library."""
    return _rootlogger


def log_to_stderr(level: int | None = None, pass_through: bool = True) -> logging.Logger:
    """Set up signaltrigger logging to print to stderr.

    Calling this more than once does not add additional handlers.

    Args:
        level: minimum level of the messages that will be logged
        pass_through: also pass the log messages to any handlers on the python root logger

    Returns:
        the root logger of the library

    """
    if not level:
        level = DEFAULT_LEVEL

    logger = get_rootlogger()
    logger.setLevel(level)

    # avoid creation of multiple stream handlers for logging to console
    for entry in logger.handlers:
        if isinstance(entry, logging.StreamHandler) and isinstance(
            entry.formatter, SignalTriggerFormatter
        ):
            entry.setLevel(level)
            return logger

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(SignalTriggerFormatter())
    logger.addHandler(handler)
    logger.propagate = pass_through

    return logger
