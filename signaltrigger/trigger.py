"""Signal registry and change-detection dispatch.

Core Objects: SignalTrigger

A signal is a named boolean that is the logical AND of all conditions (zero-argument
predicates) registered under that name. Watchers subscribe to signals by name and are
called with ``(signal_name, value)`` whenever a poll through
:meth:`SignalTrigger.check_signals` finds that the value of the signal has changed since
the last time it was computed. :meth:`SignalTrigger.sync_signals` and
:meth:`SignalTrigger.sync_signal` call the watchers regardless of whether anything changed.

The engine never polls by itself. The host application is expected to call
``check_signals`` on its own cadence, for example once per step of a simulation::

    trigger = SignalTrigger({"door_open": [is_unlocked, is_pushed]})
    trigger.watch("door_open", on_door_switched)

    while running:
        ...
        trigger.check_signals()

"""

# Postpone annotation evaluation to avoid NameError from forward references (PEP 563).
from __future__ import annotations

import inspect
from collections.abc import Callable, Hashable, Iterable, Mapping
from typing import Any

import numpy as np

from signaltrigger.errors import PredicateExecutionError, RegistrationContractError
from signaltrigger.trigger_logging import create_module_logger, method_logger

__all__ = ["Handler", "Predicate", "SignalTrigger", "identity_key"]

Predicate = Callable[[], bool]
Handler = Callable[[str, bool], Any]
PredicateSource = (
    Mapping[str, Predicate | Iterable[Predicate]] | Iterable[tuple[str, Predicate]]
)

# return annotations that are accepted for conditions, both evaluated and as strings
_BOOL_ANNOTATIONS = (bool, np.bool_)
_BOOL_ANNOTATION_NAMES = frozenset(
    {"bool", "builtins.bool", "np.bool_", "numpy.bool_", "np.bool", "numpy.bool"}
)

_logger = create_module_logger()


def identity_key(func: Callable) -> Hashable:
    """Return the key under which a callable is stored in a registry.

    Bound methods are created anew on every attribute access, so they are identified by
    the instance they are bound to together with the underlying function. Everything
    else is identified by object identity, so distinct closures never collapse into one
    entry even if they compare equal.

    Args:
        func: the callable

    """
    if inspect.ismethod(func):
        return id(func.__self__), func.__func__
    owner = getattr(func, "__self__", None)
    if inspect.isbuiltin(func) and owner is not None and not inspect.ismodule(owner):
        return id(owner), func.__name__
    return id(func)


def _check_condition(signal_name: str, predicate: Any) -> None:
    """Raise RegistrationContractError if predicate can't serve as a condition."""
    if not callable(predicate):
        raise RegistrationContractError(signal_name, predicate, "it is not callable")
    if inspect.isclass(predicate):
        raise RegistrationContractError(
            signal_name, predicate, "calling a class does not return a bool"
        )
    if inspect.iscoroutinefunction(predicate) or inspect.isasyncgenfunction(predicate):
        raise RegistrationContractError(
            signal_name, predicate, "conditions must be synchronous"
        )
    if inspect.isgeneratorfunction(predicate):
        raise RegistrationContractError(
            signal_name, predicate, "generator functions do not return a bool"
        )

    try:
        signature = inspect.signature(predicate)
    except (TypeError, ValueError):
        # some builtins can't be introspected
        return

    required = [
        parameter.name
        for parameter in signature.parameters.values()
        if parameter.default is inspect.Parameter.empty
        and parameter.kind
        not in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
    ]
    if required:
        raise RegistrationContractError(
            signal_name,
            predicate,
            f"conditions take no arguments, but it requires {', '.join(required)}",
        )

    annotation = signature.return_annotation
    if annotation is inspect.Signature.empty:
        return
    if isinstance(annotation, str):
        if annotation.strip() in _BOOL_ANNOTATION_NAMES:
            return
    elif annotation in _BOOL_ANNOTATIONS:
        return
    raise RegistrationContractError(
        signal_name,
        predicate,
        f"conditions must return bool, but it is annotated to return {annotation!r}",
    )


def _iter_predicate_pairs(
    predicates: PredicateSource,
) -> Iterable[tuple[str, Any]]:
    if isinstance(predicates, Mapping):
        for signal_name, entry in predicates.items():
            if callable(entry):
                yield signal_name, entry
            elif isinstance(entry, Iterable) and not isinstance(entry, str | bytes):
                for predicate in entry:
                    yield signal_name, predicate
            else:
                # let add_predicate report the problem
                yield signal_name, entry
    else:
        yield from predicates


class SignalTrigger:
    """Computes named boolean signals and notifies watchers when they switch.

    Attributes:
        isolate_handler_errors: if False (the default), an exception raised by a watcher
            propagates to the caller of ``check_signals`` / ``sync_signals`` /
            ``sync_signal`` and the remaining watchers of that dispatch are not called.
            If True, the exception is logged together with its traceback and dispatch
            continues with the next watcher.

    Notes:
        Exceptions raised by conditions are never isolated. They surface as
        :class:`~signaltrigger.errors.PredicateExecutionError` from whichever call
        evaluated the signal.

        The engine holds no locks. If it is shared between threads, callers have to
        serialize access themselves.

    """

    @method_logger(__name__)
    def __init__(
        self,
        predicates: PredicateSource | None = None,
        *,
        isolate_handler_errors: bool = False,
    ) -> None:
        """Create a new signal trigger.

        Args:
            predicates: the conditions to register. Either an iterable of
                ``(signal_name, predicate)`` pairs, such as the output of
                :func:`~signaltrigger.discovery.discover_conditions`, or a mapping from
                signal name to a predicate or to an iterable of predicates.
            isolate_handler_errors: log and continue instead of propagating exceptions
                raised by watchers

        Raises:
            RegistrationContractError: if any of the predicates is not a valid condition

        """
        self.isolate_handler_errors: bool = isolate_handler_errors

        # dicts keyed by identity_key keep set semantics and insertion order
        self._conditions: dict[str, dict[Hashable, Predicate]] = {}
        self._watchers: dict[str, dict[Hashable, Handler]] = {}
        self._cached_values: dict[str, bool] = {}

        if predicates is not None:
            for signal_name, predicate in _iter_predicate_pairs(predicates):
                self.add_predicate(signal_name, predicate)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(signals={len(self._conditions)}, "
            f"watched={len(self._watchers)})"
        )

    # -- conditions ---------------------------------------------------------

    @property
    def signal_names(self) -> tuple[str, ...]:
        """Names of all signals that have at least one condition."""
        return tuple(self._conditions)

    def add_predicate(self, signal_name: str, predicate: Predicate) -> None:
        """Register a condition for a signal.

        Registering the same condition twice for the same signal has no effect.

        Args:
            signal_name: the name of the signal
            predicate: a callable taking no arguments and returning a bool

        Raises:
            RegistrationContractError: if predicate is not callable without arguments,
                is a class, is asynchronous or a generator, or is annotated to return
                something other than a bool

        """
        _check_condition(signal_name, predicate)

        conditions = self._conditions.setdefault(signal_name, {})
        key = identity_key(predicate)
        if key not in conditions:
            conditions[key] = predicate
            _logger.debug(f"added condition {predicate!r} to signal '{signal_name}'")

    def get_predicates(self, signal_name: str) -> tuple[Predicate, ...]:
        """Return the conditions registered for a signal, in evaluation order."""
        return tuple(self._conditions.get(signal_name, {}).values())

    # -- watchers -----------------------------------------------------------

    @property
    def watched_signals(self) -> tuple[str, ...]:
        """Names of all signals that currently have watchers."""
        return tuple(self._watchers)

    def watch(
        self, signal_name: str, handler: Handler, sync_immediately: bool = False
    ) -> None:
        """Call handler whenever the value of a signal switches.

        Watching a signal with a handler that is already watching it has no effect.

        Args:
            signal_name: the name of the signal
            handler: a callable taking the signal name and the new value
            sync_immediately: if True, call this handler once right away with the
                current value of the signal. Other watchers are not called and the
                cached value of the signal is left as is.

        Raises:
            TypeError: if handler is not callable

        """
        if not callable(handler):
            raise TypeError(f"handler {handler!r} is not callable")

        watchers = self._watchers.setdefault(signal_name, {})
        key = identity_key(handler)
        if key not in watchers:
            watchers[key] = handler
            _logger.debug(f"{handler!r} is watching signal '{signal_name}'")

        if sync_immediately:
            self._notify(signal_name, self.get_signal_value(signal_name), (handler,))

    def unwatch(self, signal_name: str, handler: Handler) -> None:
        """Stop calling handler for a signal.

        Does nothing if handler is not watching the signal.

        Args:
            signal_name: the name of the signal
            handler: the handler passed to :meth:`watch`

        """
        watchers = self._watchers.get(signal_name)
        if watchers is None:
            return

        if watchers.pop(identity_key(handler), None) is not None:
            _logger.debug(f"{handler!r} stopped watching signal '{signal_name}'")
        if not watchers:
            del self._watchers[signal_name]

    def is_watching(self, signal_name: str, handler: Handler) -> bool:
        """Return whether handler is watching a signal."""
        return identity_key(handler) in self._watchers.get(signal_name, {})

    def get_watchers(self, signal_name: str) -> tuple[Handler, ...]:
        """Return the watchers of a signal, in notification order."""
        return tuple(self._watchers.get(signal_name, {}).values())

    def clear_watchers(self, signal_name: str | None = None) -> None:
        """Remove all watchers of a signal, or of all signals if signal_name is None."""
        if signal_name is None:
            self._watchers.clear()
        else:
            self._watchers.pop(signal_name, None)

    # -- values -------------------------------------------------------------

    def get_signal_value(self, signal_name: str) -> bool:
        """Compute the current value of a signal.

        A signal without conditions is False. Otherwise the conditions are called in
        registration order and the first one returning False ends the evaluation.
        The cached value of the signal is not touched.

        Args:
            signal_name: the name of the signal

        Raises:
            PredicateExecutionError: if a condition raises an exception or does not
                return a bool

        """
        conditions = self._conditions.get(signal_name)
        if conditions is None:
            return False

        for predicate in conditions.values():
            try:
                value = predicate()
            except Exception as e:
                raise PredicateExecutionError(signal_name, predicate) from e
            if not isinstance(value, bool | np.bool_):
                raise PredicateExecutionError(
                    signal_name,
                    predicate,
                    f"returned {type(value).__name__} instead of bool",
                )
            if not value:
                return False
        return True

    evaluate = get_signal_value

    def get_cached_value(self, signal_name: str) -> bool | None:
        """Return the value seen by the last poll or sync, None if there was none."""
        return self._cached_values.get(signal_name)

    # -- dispatch -----------------------------------------------------------

    def check_signals(self) -> list[str]:
        """Recompute all watched signals and notify the watchers of those that switched.

        A signal that has not been computed before always counts as switched. Watchers
        that are added or removed by a handler during the pass don't affect the
        notifications of the signal currently being dispatched. Signals that get their
        first watcher during the pass are checked on the next pass.

        Returns:
            the names of the signals whose watchers were notified

        """
        switched = []
        for signal_name in tuple(self._watchers):
            watchers = self._watchers.get(signal_name)
            if not watchers:
                continue

            value = self.get_signal_value(signal_name)
            cached = self._cached_values.get(signal_name)
            if cached is not None and cached == value:
                continue

            self._cached_values[signal_name] = value
            switched.append(signal_name)
            _logger.debug(f"signal '{signal_name}' switched to {value}")
            self._notify(signal_name, value, tuple(watchers.values()))

        return switched

    def sync_signals(self) -> list[str]:
        """Notify the watchers of every watched signal of its current value.

        Returns:
            the names of the signals whose watchers were notified

        """
        return [
            signal_name
            for signal_name in tuple(self._watchers)
            if self.sync_signal(signal_name)
        ]

    def sync_signal(self, signal_name: str) -> bool:
        """Notify the watchers of a signal of its current value, changed or not.

        Does nothing if the signal has no watchers.

        Args:
            signal_name: the name of the signal

        Returns:
            True if the watchers were notified

        """
        watchers = self._watchers.get(signal_name)
        if watchers is None:
            return False

        value = self.get_signal_value(signal_name)
        self._cached_values[signal_name] = value
        _logger.debug(f"syncing signal '{signal_name}' with value {value}")
        self._notify(signal_name, value, tuple(watchers.values()))
        return True

    def _notify(
        self, signal_name: str, value: bool, handlers: tuple[Handler, ...]
    ) -> None:
        for handler in handlers:
            if not self.isolate_handler_errors:
                handler(signal_name, value)
                continue

            try:
                handler(signal_name, value)
            except Exception:
                _logger.exception(
                    f"handler {handler!r} failed for signal '{signal_name}' ({value})"
                )
