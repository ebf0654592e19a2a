"""Tests for keye.host.alarms module."""

import json
from unittest.mock import Mock

import pytest
import pytest_asyncio

from keye.host.alarms import Alarm, InMemoryAlarmService, PersistentAlarmService
from keye.host.timers import ManualTimerService


@pytest.fixture
def timers():
    return ManualTimerService(start=1000.0)


@pytest.fixture
def listener():
    return Mock()


@pytest.fixture
def alarms(timers, listener):
    service = InMemoryAlarmService(timers)
    service.add_listener(listener)
    return service


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / 'state' / 'alarms.json'


@pytest_asyncio.fixture
async def persistent(store_path, timers, listener):
    service = PersistentAlarmService(store_path, timers)
    service.add_listener(listener)
    yield service
    await service.flush()


class TestInMemoryAlarmService:
    """Test InMemoryAlarmService."""

    def test_create_schedules_in_minutes(self, alarms):
        alarm = alarms.create('clear:example.com', 5)

        assert alarm == Alarm('clear:example.com', 1300.0)
        assert alarms.get('clear:example.com') == alarm

    def test_fires_once_when_due(self, alarms, timers, listener):
        alarm = alarms.create('clipboard-clear', 0.5)

        timers.advance(29)
        listener.assert_not_called()

        timers.advance(1)
        listener.assert_called_once_with(alarm)
        assert alarms.get('clipboard-clear') is None

        timers.advance(600)
        listener.assert_called_once()

    def test_create_replaces_pending_alarm(self, alarms, timers, listener):
        alarms.create('clear:example.com', 1)
        replacement = alarms.create('clear:example.com', 2)

        timers.advance(600)

        listener.assert_called_once_with(replacement)

    def test_clear(self, alarms, timers, listener):
        alarms.create('clear:example.com', 1)

        assert alarms.clear('clear:example.com') is True
        assert alarms.clear('clear:example.com') is False

        timers.advance(600)
        listener.assert_not_called()
        assert alarms.alarms == []

    def test_fire_delivers_to_every_listener(self, alarms, listener):
        second = Mock()
        alarms.add_listener(second)
        alarm = Alarm('clear:example.com', 42.0)

        alarms.fire(alarm)

        listener.assert_called_once_with(alarm)
        second.assert_called_once_with(alarm)


class TestPersistentAlarmService:
    """Test PersistentAlarmService."""

    @pytest.mark.asyncio
    async def test_create_and_clear_are_written(self, persistent, store_path):
        persistent.create('clear:a.com', 5)
        persistent.create('clear:b.com', 1)
        await persistent.flush()

        assert json.loads(store_path.read_text()) == {
            'clear:a.com': 1300.0,
            'clear:b.com': 1060.0,
        }

        persistent.clear('clear:a.com')
        await persistent.flush()

        assert json.loads(store_path.read_text()) == {'clear:b.com': 1060.0}

    @pytest.mark.asyncio
    async def test_fired_alarm_removed_from_store(self, persistent, store_path, timers):
        persistent.create('clipboard-clear', 0.5)
        timers.advance(30)
        await persistent.flush()

        assert json.loads(store_path.read_text()) == {}

    @pytest.mark.asyncio
    async def test_restore_rearms_with_recorded_deadline(self, store_path, listener):
        store_path.parent.mkdir(parents=True)
        store_path.write_text(json.dumps({'clear:example.com': 1300.0, 'junk': 'x'}))
        timers = ManualTimerService(start=1200.0)
        service = PersistentAlarmService(store_path, timers)
        service.add_listener(listener)

        assert await service.restore() == 1
        assert service.get('clear:example.com') == Alarm('clear:example.com', 1300.0)

        timers.advance(100)
        listener.assert_called_once_with(Alarm('clear:example.com', 1300.0))
        await service.flush()

    @pytest.mark.asyncio
    async def test_overdue_alarm_fires_right_after_restore(self, store_path, listener):
        store_path.parent.mkdir(parents=True)
        store_path.write_text(json.dumps({'clipboard-clear': 500.0}))
        timers = ManualTimerService(start=2000.0)
        service = PersistentAlarmService(store_path, timers)
        service.add_listener(listener)

        await service.restore()
        timers.advance(0)

        listener.assert_called_once_with(Alarm('clipboard-clear', 500.0))
        await service.flush()

    @pytest.mark.asyncio
    async def test_restore_without_store(self, persistent):
        assert await persistent.restore() == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize('content', ['{broken', '[1, 2]'])
    async def test_restore_ignores_unreadable_store(self, persistent, store_path, content):
        store_path.parent.mkdir(parents=True)
        store_path.write_text(content)

        assert await persistent.restore() == 0
        assert persistent.alarms == []
