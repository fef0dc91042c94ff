"""
Host collaborator contracts.

WHAT: Ledger, weather and notification interfaces consumed by the engine
WHY: Money, weather and message delivery belong to the surrounding game
HOW: typing.Protocol classes; any object with these methods plugs in
"""

from enum import Enum
from typing import Protocol, runtime_checkable

from ..services.tiers import WeatherCondition


class Severity(str, Enum):
    """Notification severity."""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@runtime_checkable
class Ledger(Protocol):
    """Host money ledger. A failed debit returns False and moves no money."""

    def debit(self, owner_id: str, amount: float) -> bool:
        ...

    def credit(self, owner_id: str, amount: float) -> bool:
        ...


@runtime_checkable
class WeatherService(Protocol):
    """Current discrete weather of the simulation."""

    def current_weather(self) -> WeatherCondition:
        ...


@runtime_checkable
class NotificationSink(Protocol):
    """Delivers player-facing messages."""

    def notify(self, owner_id: str, message: str, severity: Severity = Severity.INFO) -> None:
        ...
