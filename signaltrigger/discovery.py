"""Declarative registration of conditions.

The :class:`~signaltrigger.trigger.SignalTrigger` only consumes ``(signal_name, predicate)``
pairs. This module provides a way to produce them from code that marks its conditions
with a decorator:

- condition: Mark a function as a condition of one or more signals
- discover_conditions: Collect the marked functions of modules, classes or instances

Examples:
    @condition("door_open")
    def is_unlocked() -> bool:
        return lock.state == "unlocked"

    class Door:
        @condition("door_open")
        @staticmethod
        def is_pushed() -> bool:
            return handle.pressed

    trigger = SignalTrigger(discover_conditions(sys.modules[__name__]))
"""

from __future__ import annotations

import inspect
from collections.abc import Callable
from typing import Any

from signaltrigger.trigger_logging import create_module_logger, function_logger

__all__ = ["CONDITION_ATTRIBUTE", "condition", "discover_conditions"]

CONDITION_ATTRIBUTE = "_signal_conditions"

_logger = create_module_logger()


def condition(signal_name: str):
    """Decorator to mark a function as a condition of a signal.

    The decorator can be stacked to use the same function for several signals, and can be
    applied above or below ``@staticmethod`` and ``@classmethod``. The function itself is
    returned unchanged.

    Args:
        signal_name: the name of the signal

    Examples:
        @condition("A")
        def first_toggle_on() -> bool:
            return toggles[0]

        @condition("A")
        @condition("C")
        def always() -> bool:
            return True
    """
    if not isinstance(signal_name, str):
        raise TypeError(
            f"condition() expects a signal name, got {type(signal_name).__name__}; "
            "use @condition('name') instead of @condition"
        )

    def decorator(func):
        target = func.__func__ if isinstance(func, staticmethod | classmethod) else func
        names = getattr(target, CONDITION_ATTRIBUTE, ())
        if signal_name not in names:
            # decorators apply bottom up, prepending keeps them in reading order
            setattr(target, CONDITION_ATTRIBUTE, (signal_name, *names))
        return func

    return decorator


def _members(source: Any) -> list[Any]:
    """Return the callables of source that may carry conditions, sorted by name."""
    members = []

    if inspect.ismodule(source):
        # only what is defined in the module, imported names belong to their own module
        for _name, value in sorted(vars(source).items()):
            if getattr(value, "__module__", None) != source.__name__:
                continue
            if inspect.isclass(value):
                members.extend(_members(value))
            elif inspect.isroutine(value):
                members.append(value)

    elif inspect.isclass(source):
        for name in sorted(dir(source)):
            static = inspect.getattr_static(source, name)
            if isinstance(static, staticmethod | classmethod):
                members.append(getattr(source, name))
            elif inspect.isfunction(static) and getattr(static, CONDITION_ATTRIBUTE, ()):
                # needs an instance, found when an instance is passed instead
                _logger.debug(
                    f"skipping {source.__name__}.{name}, it needs an instance"
                )

    else:
        for name in sorted(dir(source)):
            if name.startswith("__"):
                continue
            static = inspect.getattr_static(source, name)
            if isinstance(static, staticmethod | classmethod) or inspect.isfunction(
                static
            ):
                members.append(getattr(source, name))

    return members


@function_logger(__name__)
def discover_conditions(*sources: Any) -> list[tuple[str, Callable[[], bool]]]:
    """Collect the conditions marked with :func:`condition`.

    Modules are scanned for the marked functions defined in them and for static and
    class methods of the classes defined in them, names a module imports are skipped.
    Classes are scanned for marked static and class methods. Any other object is
    scanned for marked methods, which are returned bound to it.
    Conditions are never called.

    Args:
        sources: the modules, classes or instances to scan

    Returns:
        ``(signal_name, predicate)`` pairs, ordered by source, then by member name,
        then by the order of the decorators

    """
    pairs = []
    for source in sources:
        for member in _members(source):
            signal_names = getattr(member, CONDITION_ATTRIBUTE, ())
            if not isinstance(signal_names, tuple):
                continue
            for signal_name in signal_names:
                _logger.debug(f"discovered condition {member!r} for '{signal_name}'")
                pairs.append((signal_name, member))
    return pairs
