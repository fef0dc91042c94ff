"""
Unit tests for the in-memory host collaborators.

WHAT: Test ledger debits, weather source and the notification log
WHY: Engine tests and the HTTP host rely on these behaving like a real host
HOW: Direct calls, no engine involved
"""

import pytest

from usedmarket.host.interfaces import Ledger, NotificationSink, Severity, WeatherService
from usedmarket.host.memory import FixedWeather, InMemoryLedger, NotificationLog
from usedmarket.services.tiers import WeatherCondition


@pytest.mark.unit
class TestInMemoryLedger:

    def test_unknown_owner_gets_starting_balance(self):
        ledger = InMemoryLedger(starting_balance=1000.0)
        assert ledger.balance("farm_1") == 1000.0

    def test_debit_and_credit(self):
        ledger = InMemoryLedger(starting_balance=1000.0)
        assert ledger.debit("farm_1", 400.0) is True
        assert ledger.credit("farm_1", 50.0) is True
        assert ledger.balance("farm_1") == 650.0
        assert [t["amount"] for t in ledger.transactions] == [-400.0, 50.0]

    def test_overdraft_refused(self):
        ledger = InMemoryLedger(starting_balance=100.0)
        assert ledger.debit("farm_1", 100.01) is False
        assert ledger.balance("farm_1") == 100.0
        assert ledger.transactions == []

    def test_negative_amounts_refused(self):
        ledger = InMemoryLedger(starting_balance=100.0)
        assert ledger.debit("farm_1", -5.0) is False
        assert ledger.credit("farm_1", -5.0) is False

    def test_satisfies_protocol(self):
        assert isinstance(InMemoryLedger(), Ledger)


@pytest.mark.unit
def test_fixed_weather_is_settable():
    weather = FixedWeather()
    assert weather.current_weather() == WeatherCondition.SUN
    weather.condition = WeatherCondition.HAIL
    assert weather.current_weather() == WeatherCondition.HAIL
    assert isinstance(weather, WeatherService)


@pytest.mark.unit
class TestNotificationLog:

    def test_sequence_and_filters(self):
        log = NotificationLog()
        log.notify("farm_1", "one")
        log.notify("farm_2", "two", Severity.WARNING)
        log.notify("farm_1", "three", Severity.SUCCESS)

        assert [n.seq for n in log.entries] == [1, 2, 3]
        assert [n.message for n in log.since(0, "farm_1")] == ["one", "three"]
        assert [n.message for n in log.since(1)] == ["two", "three"]
        assert log.since(2, "farm_2") == []
        assert log.entries[1].to_dict() == {
            "seq": 2, "owner_id": "farm_2", "message": "two", "severity": "warning",
        }

    def test_limit_drops_oldest(self):
        log = NotificationLog(limit=2)
        for i in range(5):
            log.notify("farm_1", f"n{i}")
        assert [n.message for n in log.entries] == ["n3", "n4"]
        assert log.entries[-1].seq == 5

    def test_satisfies_protocol(self):
        assert isinstance(NotificationLog(), NotificationSink)
