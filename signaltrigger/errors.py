"""Exception hierarchy for signaltrigger."""

import signaltrigger


class SignalTriggerError(Exception):
    """Base class for all signaltrigger exceptions.

    It automatically prepends the library version to help with debugging reports.
    """

    def __init__(self, message: str):
        self.version = getattr(signaltrigger, "__version__", "unknown")
        # Store the original message cleanly for programmatic access
        self.original_message = message
        full_message = f"[signaltrigger {self.version}] {message}"
        super().__init__(full_message)


# Registration Errors
class RegistrationError(SignalTriggerError):
    """Generic errors related to registering predicates or watchers."""


class RegistrationContractError(RegistrationError, TypeError):
    """Raised when a predicate cannot be registered for a signal.

    Examples: a callable that requires arguments, a class, a coroutine function,
    or a function annotated to return something other than a bool.
    """

    def __init__(self, signal_name: str, predicate, reason: str):
        self.signal_name = signal_name
        self.predicate = predicate
        self.reason = reason
        message = (
            f"Cannot register {predicate!r} as a condition for signal "
            f"'{signal_name}': {reason}"
        )
        super().__init__(message)


# Evaluation Errors
class EvaluationError(SignalTriggerError):
    """Generic errors related to computing signal values."""


class PredicateExecutionError(EvaluationError):
    """Raised when a predicate fails while a signal is evaluated.

    The exception raised by the predicate, if any, is available as ``__cause__``.
    """

    def __init__(self, signal_name: str, predicate, reason: str | None = None):
        self.signal_name = signal_name
        self.predicate = predicate
        if reason:
            message = f"Condition {predicate!r} of signal '{signal_name}' {reason}"
        else:
            message = f"Condition {predicate!r} of signal '{signal_name}' failed"
        super().__init__(message)
