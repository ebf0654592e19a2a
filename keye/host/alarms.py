"""Durable named alarms for long-horizon scheduling.

An alarm is a named single-shot timer that carries the time it was
scheduled for. ``InMemoryAlarmService`` lives as long as the process;
``PersistentAlarmService`` mirrors every armed alarm into a JSON file so a
restarted process can ``restore()`` them and fire the ones that fell due
while it was down.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Callable, Protocol

import aiofiles

from keye.host.timers import TimerHandle, TimerService

logger = logging.getLogger(__name__)

_SECONDS_PER_MINUTE = 60


@dataclass(frozen=True)
class Alarm:
    """A fired or pending alarm."""

    name: str
    scheduled_time: float


AlarmListener = Callable[[Alarm], None]


class AlarmService(Protocol):
    def create(self, name: str, delay_minutes: float) -> Alarm: ...

    def clear(self, name: str) -> bool: ...

    def get(self, name: str) -> Alarm | None: ...

    def add_listener(self, listener: AlarmListener) -> None: ...


class InMemoryAlarmService:
    """Alarm service scheduling on a ``TimerService``.

    ``fire()`` delivers an alarm to the listeners directly, which is how
    tests simulate a host delivering a late or stale alarm.
    """

    def __init__(self, timers: TimerService):
        self._timers = timers
        self._alarms: dict[str, Alarm] = {}
        self._handles: dict[str, TimerHandle] = {}
        self._listeners: list[AlarmListener] = []

    def add_listener(self, listener: AlarmListener) -> None:
        self._listeners.append(listener)

    def create(self, name: str, delay_minutes: float) -> Alarm:
        """Arm an alarm, replacing any pending alarm with the same name."""
        scheduled_time = self._timers.now() + delay_minutes * _SECONDS_PER_MINUTE
        alarm = self._arm(name, scheduled_time)
        logger.debug('Alarm armed: %s in %.2f min', name, delay_minutes)
        return alarm

    def clear(self, name: str) -> bool:
        """Cancel a pending alarm. Returns whether one was pending."""
        handle = self._handles.pop(name, None)
        if handle is not None:
            handle.cancel()
        cleared = self._alarms.pop(name, None) is not None
        if cleared:
            logger.debug('Alarm cleared: %s', name)
        return cleared

    def get(self, name: str) -> Alarm | None:
        return self._alarms.get(name)

    @property
    def alarms(self) -> list[Alarm]:
        return list(self._alarms.values())

    def fire(self, alarm: Alarm) -> None:
        """Deliver an alarm to every listener."""
        for listener in list(self._listeners):
            listener(alarm)

    def _arm(self, name: str, scheduled_time: float) -> Alarm:
        handle = self._handles.pop(name, None)
        if handle is not None:
            handle.cancel()
        alarm = Alarm(name=name, scheduled_time=scheduled_time)
        delay = max(scheduled_time - self._timers.now(), 0)
        self._alarms[name] = alarm
        self._handles[name] = self._timers.call_later(delay, partial(self._on_due, name))
        return alarm

    def _on_due(self, name: str) -> None:
        self._handles.pop(name, None)
        alarm = self._alarms.pop(name, None)
        if alarm is None:
            return
        logger.debug('Alarm fired: %s', name)
        self.fire(alarm)


class PersistentAlarmService(InMemoryAlarmService):
    """Alarm service whose pending alarms survive a process restart."""

    def __init__(self, path: str | Path, timers: TimerService):
        super().__init__(timers)
        self._path = Path(path)
        self._persist_lock = asyncio.Lock()
        self._persist_tasks: list[asyncio.Task] = []

    async def restore(self) -> int:
        """Re-arm alarms recorded by a previous process.

        Alarms whose time has passed fire on the next loop iteration.

        Returns:
            Number of alarms restored.
        """
        try:
            async with aiofiles.open(self._path, encoding='utf-8') as f:
                stored = json.loads(await f.read())
        except FileNotFoundError:
            return 0
        except (OSError, ValueError) as exc:
            logger.warning('Could not read alarm store %s: %s', self._path, exc)
            return 0
        if not isinstance(stored, dict):
            logger.warning('Ignoring alarm store %s: expected a JSON object', self._path)
            return 0

        restored = 0
        for name, scheduled_time in stored.items():
            if not isinstance(scheduled_time, (int, float)):
                continue
            self._arm(name, float(scheduled_time))
            restored += 1
        logger.info('Restored %d alarms from %s', restored, self._path)
        return restored

    def create(self, name: str, delay_minutes: float) -> Alarm:
        alarm = super().create(name, delay_minutes)
        self._schedule_persist()
        return alarm

    def clear(self, name: str) -> bool:
        cleared = super().clear(name)
        if cleared:
            self._schedule_persist()
        return cleared

    async def flush(self) -> None:
        """Wait until every scheduled write has reached the file."""
        if self._persist_tasks:
            await asyncio.gather(*self._persist_tasks, return_exceptions=True)

    def _on_due(self, name: str) -> None:
        super()._on_due(name)
        self._schedule_persist()

    def _schedule_persist(self) -> None:
        try:
            task = asyncio.get_running_loop().create_task(self._persist())
        except RuntimeError:
            logger.warning('No running event loop; alarm store %s not updated', self._path)
            return
        self._persist_tasks.append(task)
        task.add_done_callback(
            lambda t: self._persist_tasks.remove(t) if t in self._persist_tasks else None
        )

    async def _persist(self) -> None:
        async with self._persist_lock:
            data = {alarm.name: alarm.scheduled_time for alarm in self._alarms.values()}
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                async with aiofiles.open(self._path, 'w', encoding='utf-8') as f:
                    await f.write(json.dumps(data, indent=2))
            except OSError as exc:
                logger.warning('Could not write alarm store %s: %s', self._path, exc)
