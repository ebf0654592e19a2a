"""Auto-stop and expiry scheduling for capture sessions."""

from __future__ import annotations

import logging
from functools import partial
from typing import Callable

from keye.capture.session_store import CaptureSession
from keye.constants import EXPIRY_ALARM_PREFIX
from keye.host.alarms import Alarm, AlarmService
from keye.host.timers import TimerHandle, TimerService

logger = logging.getLogger(__name__)


class AutoStopScheduler:
    """Deactivates a session once strong credentials stop changing.

    Each session has at most one pending timer; arming again replaces it, so
    the quiet period always counts from the most recent change.
    """

    def __init__(self, timers: TimerService, delay: float, on_fire: Callable[[str], None]):
        self._timers = timers
        self._delay = delay
        self._on_fire = on_fire
        self._handles: dict[str, TimerHandle] = {}

    def is_armed(self, site_id: str) -> bool:
        return site_id in self._handles

    def evaluate(self, session: CaptureSession) -> bool:
        """Arm the timer when the session holds strong credentials.

        Returns:
            Whether the timer was (re)armed.
        """
        if not session.has_strong_credentials():
            return False
        self.arm(session.site_id)
        return True

    def arm(self, site_id: str) -> None:
        self.cancel(site_id)
        self._handles[site_id] = self._timers.call_later(self._delay, partial(self._fire, site_id))
        logger.debug('Auto-stop armed: site=%s in %.1fs', site_id, self._delay)

    def cancel(self, site_id: str) -> bool:
        handle = self._handles.pop(site_id, None)
        if handle is None:
            return False
        handle.cancel()
        logger.debug('Auto-stop cancelled: site=%s', site_id)
        return True

    def cancel_all(self) -> None:
        for site_id in list(self._handles):
            self.cancel(site_id)

    def _fire(self, site_id: str) -> None:
        self._handles.pop(site_id, None)
        logger.debug('Auto-stop fired: site=%s', site_id)
        self._on_fire(site_id)


class ExpiryScheduler:
    """Clears sessions after the configured interval using durable alarms.

    The deadline of the alarm armed for each site is remembered, and a fire
    is honoured only when it matches. A late alarm left over from an earlier
    session on the same site identity therefore never clears its successor.
    """

    def __init__(self, alarms: AlarmService, on_expire: Callable[[str], None]):
        self._alarms = alarms
        self._on_expire = on_expire
        self._deadlines: dict[str, float] = {}

    @staticmethod
    def alarm_name(site_id: str) -> str:
        return EXPIRY_ALARM_PREFIX + site_id

    def deadline(self, site_id: str) -> float | None:
        return self._deadlines.get(site_id)

    def arm(self, site_id: str, minutes: float) -> Alarm | None:
        """Arm expiry for a site; a non-positive interval only cancels."""
        if minutes <= 0:
            self.cancel(site_id)
            return None
        alarm = self._alarms.create(self.alarm_name(site_id), minutes)
        self._deadlines[site_id] = alarm.scheduled_time
        return alarm

    def cancel(self, site_id: str) -> bool:
        self._deadlines.pop(site_id, None)
        return self._alarms.clear(self.alarm_name(site_id))

    def handle_alarm(self, alarm: Alarm) -> bool:
        """Process an alarm fire.

        Returns:
            True when the alarm is an expiry alarm (honoured or ignored as
            stale), False when it belongs to someone else.
        """
        if not alarm.name.startswith(EXPIRY_ALARM_PREFIX):
            return False

        site_id = alarm.name[len(EXPIRY_ALARM_PREFIX):]
        expected = self._deadlines.get(site_id)
        if expected is None or expected != alarm.scheduled_time:
            logger.debug('Ignoring stale expiry alarm: site=%s', site_id)
            return True

        del self._deadlines[site_id]
        logger.info('Capture expired: site=%s', site_id)
        self._on_expire(site_id)
        return True
