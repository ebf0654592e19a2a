"""Tests for keye.capture.schedulers module."""

from unittest.mock import Mock

import pytest

from keye.capture.schedulers import AutoStopScheduler, ExpiryScheduler
from keye.capture.session_store import CaptureSession
from keye.host.alarms import Alarm, InMemoryAlarmService
from keye.host.timers import ManualTimerService


def _session(headers_by_origin, site_id='example.com'):
    session = CaptureSession(site_id=site_id, tab_id=1, captured_at='t')
    session.headers_by_origin = headers_by_origin
    return session


@pytest.fixture
def timers():
    return ManualTimerService()


@pytest.fixture
def on_fire():
    return Mock()


@pytest.fixture
def auto_stop(timers, on_fire):
    return AutoStopScheduler(timers, 10.0, on_fire)


@pytest.fixture
def alarms(timers):
    return InMemoryAlarmService(timers)


@pytest.fixture
def on_expire():
    return Mock()


@pytest.fixture
def expiry(alarms, on_expire):
    scheduler = ExpiryScheduler(alarms, on_expire)
    alarms.add_listener(scheduler.handle_alarm)
    return scheduler


class TestAutoStopScheduler:
    """Test AutoStopScheduler."""

    def test_weak_credentials_do_not_arm(self, auto_stop, timers):
        session = _session({'example.com': {'Cookie': 'sid=1'}})

        assert auto_stop.evaluate(session) is False
        assert auto_stop.is_armed('example.com') is False
        assert timers.pending == 0

    def test_strong_credentials_arm_and_fire_after_delay(self, auto_stop, timers, on_fire):
        session = _session({'api.example.com': {'Authorization': 'Bearer x'}})

        assert auto_stop.evaluate(session) is True
        assert auto_stop.is_armed('example.com') is True

        timers.advance(9.9)
        on_fire.assert_not_called()

        timers.advance(0.2)
        on_fire.assert_called_once_with('example.com')
        assert auto_stop.is_armed('example.com') is False

    def test_rearm_restarts_quiet_period(self, auto_stop, timers, on_fire):
        auto_stop.arm('example.com')
        timers.advance(5)
        auto_stop.arm('example.com')

        timers.advance(9)
        on_fire.assert_not_called()

        timers.advance(1)
        on_fire.assert_called_once_with('example.com')

        timers.advance(60)
        assert on_fire.call_count == 1

    def test_cancel(self, auto_stop, timers, on_fire):
        auto_stop.arm('example.com')

        assert auto_stop.cancel('example.com') is True
        assert auto_stop.cancel('example.com') is False

        timers.advance(60)
        on_fire.assert_not_called()

    def test_cancel_all(self, auto_stop, timers, on_fire):
        auto_stop.arm('a.com')
        auto_stop.arm('b.com')

        auto_stop.cancel_all()

        assert timers.pending == 0
        timers.advance(60)
        on_fire.assert_not_called()

    def test_sites_are_independent(self, auto_stop, timers, on_fire):
        auto_stop.arm('a.com')
        timers.advance(5)
        auto_stop.arm('b.com')

        timers.advance(5)
        on_fire.assert_called_once_with('a.com')

        timers.advance(5)
        assert on_fire.call_count == 2
        on_fire.assert_called_with('b.com')


class TestExpiryScheduler:
    """Test ExpiryScheduler."""

    def test_arm_creates_named_alarm(self, expiry, alarms):
        alarm = expiry.arm('example.com', 5)

        assert alarm.name == 'clear:example.com'
        assert alarm.scheduled_time == 300
        assert alarms.get('clear:example.com') == alarm
        assert expiry.deadline('example.com') == 300

    def test_alarm_fires_after_interval(self, expiry, timers, on_expire):
        expiry.arm('example.com', 5)

        timers.advance(299)
        on_expire.assert_not_called()

        timers.advance(1)
        on_expire.assert_called_once_with('example.com')
        assert expiry.deadline('example.com') is None

    def test_non_positive_interval_only_cancels(self, expiry, alarms):
        expiry.arm('example.com', 5)

        assert expiry.arm('example.com', 0) is None

        assert alarms.get('clear:example.com') is None
        assert expiry.deadline('example.com') is None

    def test_cancel(self, expiry, timers, on_expire):
        expiry.arm('example.com', 5)

        assert expiry.cancel('example.com') is True
        assert expiry.cancel('example.com') is False

        timers.advance(600)
        on_expire.assert_not_called()

    def test_stale_alarm_ignored(self, expiry, alarms, timers, on_expire):
        first = expiry.arm('example.com', 5)
        timers.advance(100)
        expiry.arm('example.com', 5)

        alarms.fire(first)

        on_expire.assert_not_called()
        assert expiry.deadline('example.com') == 400

    def test_alarm_for_unarmed_site_ignored(self, expiry, on_expire):
        assert expiry.handle_alarm(Alarm('clear:example.com', 300)) is True
        on_expire.assert_not_called()

    def test_foreign_alarm_not_handled(self, expiry, on_expire):
        assert expiry.handle_alarm(Alarm('clipboard-clear', 30)) is False
        on_expire.assert_not_called()
