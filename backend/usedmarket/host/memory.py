"""
In-memory host collaborators.

WHAT: Ledger, weather source and notification log kept in process memory
WHY: The standalone HTTP host and the tests need working collaborators
HOW: Dicts and lists guarded by threading locks
"""

import threading
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional

from .interfaces import Severity
from ..core.config import settings
from ..services.tiers import WeatherCondition
from ..utils.logger import get_logger

logger = get_logger(__name__)


class InMemoryLedger:
    """
    Balance per owner. Unknown owners start with the configured balance.

    Debits that would take a balance below zero are refused.
    """

    def __init__(self, starting_balance: Optional[float] = None):
        self.starting_balance = (
            settings.DEFAULT_STARTING_BALANCE if starting_balance is None else starting_balance
        )
        self._balances: Dict[str, float] = {}
        self._lock = threading.Lock()
        self.transactions: List[dict] = []

    def balance(self, owner_id: str) -> float:
        with self._lock:
            return self._balances.get(owner_id, self.starting_balance)

    def set_balance(self, owner_id: str, amount: float) -> None:
        with self._lock:
            self._balances[owner_id] = float(amount)

    def debit(self, owner_id: str, amount: float) -> bool:
        if amount < 0:
            return False
        with self._lock:
            current = self._balances.get(owner_id, self.starting_balance)
            if current < amount:
                logger.info(f"Ledger refused debit of {amount:.2f} from {owner_id} (balance {current:.2f})")
                return False
            self._balances[owner_id] = current - amount
            self.transactions.append({"owner_id": owner_id, "amount": -amount})
        return True

    def credit(self, owner_id: str, amount: float) -> bool:
        if amount < 0:
            return False
        with self._lock:
            current = self._balances.get(owner_id, self.starting_balance)
            self._balances[owner_id] = current + amount
            self.transactions.append({"owner_id": owner_id, "amount": amount})
        return True


class FixedWeather:
    """Weather source the host (or a test) sets explicitly."""

    def __init__(self, condition: WeatherCondition = WeatherCondition.SUN):
        self.condition = condition

    def current_weather(self) -> WeatherCondition:
        return self.condition


@dataclass
class Notification:
    """One delivered message."""
    seq: int
    owner_id: str
    message: str
    severity: str

    def to_dict(self) -> dict:
        return asdict(self)


class NotificationLog:
    """
    Append-only notification sink.

    The SSE stream reads new entries with ``since(seq)``; ``limit`` bounds
    memory by dropping the oldest entries.
    """

    def __init__(self, limit: int = 1000):
        self.limit = limit
        self._entries: List[Notification] = []
        self._next_seq = 1
        self._lock = threading.Lock()

    def notify(self, owner_id: str, message: str, severity: Severity = Severity.INFO) -> None:
        level = severity.value if isinstance(severity, Severity) else str(severity)
        with self._lock:
            self._entries.append(Notification(self._next_seq, owner_id, message, level))
            self._next_seq += 1
            if len(self._entries) > self.limit:
                del self._entries[: len(self._entries) - self.limit]
        logger.debug(f"Notify {owner_id} [{level}]: {message}")

    def since(self, seq: int = 0, owner_id: Optional[str] = None) -> List[Notification]:
        """Entries with a sequence number greater than ``seq``."""
        with self._lock:
            return [
                n for n in self._entries
                if n.seq > seq and (owner_id is None or n.owner_id == owner_id)
            ]

    @property
    def entries(self) -> List[Notification]:
        with self._lock:
            return list(self._entries)
