"""signaltrigger: named boolean signals with change notification.

Core Objects: SignalTrigger, condition, discover_conditions.
"""

import datetime

from signaltrigger.discovery import condition, discover_conditions
from signaltrigger.errors import (
    PredicateExecutionError,
    RegistrationContractError,
    SignalTriggerError,
)
from signaltrigger.trigger import SignalTrigger

__all__ = [
    "PredicateExecutionError",
    "RegistrationContractError",
    "SignalTrigger",
    "SignalTriggerError",
    "condition",
    "discover_conditions",
]

__title__ = "signaltrigger"
__version__ = "0.1.0"
__license__ = "Apache 2.0"
_this_year = datetime.datetime.now(tz=datetime.UTC).date().year
__copyright__ = f"Copyright {_this_year} signaltrigger developers"
