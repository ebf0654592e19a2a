"""Capture coordinator: the single owner of capture state for a process.

The coordinator wires the session store, event intake, schedulers,
broadcaster and listener manager together and is the only entry point for
control-channel messages and alarm fires. Everything runs on one event
loop; each message, host event or timer callback runs to completion before
the next one, so no locking is involved.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from keye.capture.broadcast import BroadcastCoordinator
from keye.capture.intake import EventIntake
from keye.capture.listeners import ListenerLifecycleManager
from keye.capture.managers import CaptureSettings, SettingsManager
from keye.capture.schedulers import AutoStopScheduler, ExpiryScheduler
from keye.capture.session_store import CaptureSession, CaptureSessionStore
from keye.constants import CLIPBOARD_ALARM, DEFAULT_AUTO_STOP_DELAY, DEFAULT_BROADCAST_DEBOUNCE
from keye.host.alarms import Alarm, AlarmService
from keye.host.channels import ObserverChannel
from keye.host.events import HostEventStream
from keye.host.timers import TimerService
from keye.protocol.capture_types import CaptureSnapshot, ExportPayload, TabId
from keye.protocol.messages import (
    DomainMessage,
    ExportMessage,
    ExportResultMessage,
    MessageType,
    SettingsUpdateMessage,
    StartCaptureMessage,
)
from keye.utils.domains import normalize_site_id
from keye.utils.export import build_export

logger = logging.getLogger(__name__)

_MessageHandler = Callable[[ObserverChannel, Any], None]


@dataclass(frozen=True)
class CoordinatorTimingConfig:
    """Short-horizon timing of the coordinator, in seconds."""

    # outlasts the async request burst of a full page load
    auto_stop_delay: float = DEFAULT_AUTO_STOP_DELAY
    broadcast_debounce: float = DEFAULT_BROADCAST_DEBOUNCE


class CaptureCoordinator:
    """
    Maintains one capture session per site and publishes their state.

    Args:
        event_stream: Host stream of request/response header events.
        timers: Process-local timer service for debounce and auto-stop.
        alarms: Durable alarm service for expiry and clipboard hygiene.
        settings: Initial live configuration.
        timing: Debounce and auto-stop delays.
        settings_manager: When given, settings updates are persisted through it.
        clock: Source of session creation timestamps.
    """

    def __init__(
        self,
        event_stream: HostEventStream,
        timers: TimerService,
        alarms: AlarmService,
        settings: Optional[CaptureSettings] = None,
        timing: CoordinatorTimingConfig = CoordinatorTimingConfig(),
        settings_manager: Optional[SettingsManager] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._settings = settings or CaptureSettings()
        self._settings_manager = settings_manager
        self._alarms = alarms

        self.store = CaptureSessionStore(clock) if clock else CaptureSessionStore()
        self.broadcaster = BroadcastCoordinator(
            self.store.snapshot, timers, timing.broadcast_debounce
        )
        self.auto_stop = AutoStopScheduler(timers, timing.auto_stop_delay, self._on_auto_stop)
        self.expiry = ExpiryScheduler(alarms, self._on_expire)
        self.intake = EventIntake(
            self.store,
            on_session_changed=self.auto_stop.evaluate,
            on_changed=self.broadcaster.request_debounced,
        )
        self.listeners = ListenerLifecycleManager(event_stream, self.intake)

        alarms.add_listener(self._on_alarm)

        self._handlers: dict[MessageType, _MessageHandler] = {
            MessageType.START_CAPTURE: self._handle_start,
            MessageType.STOP_CAPTURE: self._handle_stop,
            MessageType.GET_STATE: self._handle_get_state,
            MessageType.CLEAR_DOMAIN: self._handle_clear_domain,
            MessageType.CLEAR_ALL: self._handle_clear_all,
            MessageType.SETTINGS_UPDATE: self._handle_settings_update,
            MessageType.SCHEDULE_CLIPBOARD_CLEAR: self._handle_schedule_clipboard_clear,
            MessageType.EXPORT: self._handle_export,
        }

    @property
    def settings(self) -> CaptureSettings:
        return self._settings

    # -- observers ---------------------------------------------------------

    def connect(self, channel: ObserverChannel) -> None:
        self.broadcaster.connect(channel)

    def disconnect(self, channel: ObserverChannel) -> None:
        self.broadcaster.disconnect(channel)

    def handle_message(self, channel: ObserverChannel, message: Mapping[str, Any]) -> None:
        """Dispatch one control-channel message from ``channel``.

        Unknown message types and messages missing required fields are
        logged and dropped.
        """
        raw_type = message.get('type')
        try:
            message_type = MessageType(raw_type)
        except ValueError:
            logger.debug('Ignoring unknown message type: %r', raw_type)
            return

        handler = self._handlers.get(message_type)
        if handler is None:
            logger.debug('Ignoring outbound-only message type: %s', message_type.value)
            return
        handler(channel, message)

    # -- operations --------------------------------------------------------

    def start_capture(self, domain: str, tab_id: TabId) -> CaptureSession:
        """Create (or replace) an active session for ``domain`` scoped to ``tab_id``."""
        site_id = normalize_site_id(domain)
        self.auto_stop.cancel(site_id)
        session = self.store.start(site_id, tab_id)
        self.listeners.update(self.store.has_active())
        self.expiry.arm(site_id, self._settings.auto_clear_minutes)
        self.broadcaster.publish_now()
        return session

    def stop_capture(self, domain: str) -> None:
        site_id = normalize_site_id(domain)
        self.store.stop(site_id)
        self.auto_stop.cancel(site_id)
        self.listeners.update(self.store.has_active())
        self.broadcaster.publish_now()

    def clear_domain(self, domain: str) -> None:
        site_id = normalize_site_id(domain)
        self._discard(site_id)
        self.listeners.update(self.store.has_active())
        self.broadcaster.publish_now()

    def clear_all(self) -> None:
        for site_id in self.store.clear_all():
            self.auto_stop.cancel(site_id)
            self.expiry.cancel(site_id)
        self.auto_stop.cancel_all()
        self.listeners.update(False)
        self.broadcaster.publish_now()

    def get_state(self) -> CaptureSnapshot:
        return self.store.snapshot()

    def update_settings(self, payload: Optional[Mapping[str, Any]]) -> CaptureSettings:
        """Apply a settings payload to the live configuration.

        New intervals apply to sessions started afterwards; alarms already
        armed keep their deadlines.
        """
        self._settings = self._settings.merged(payload)
        logger.info('Settings updated: %s', self._settings.to_dict())
        if self._settings_manager is not None:
            self._settings_manager.schedule_save(self._settings)
        return self._settings

    def schedule_clipboard_clear(self) -> Optional[Alarm]:
        minutes = self._settings.clipboard_clear_minutes
        if minutes <= 0:
            return None
        return self._alarms.create(CLIPBOARD_ALARM, minutes)

    def export(
        self, domain: Optional[str] = None
    ) -> ExportPayload | list[ExportPayload] | None:
        site_id = normalize_site_id(domain) if domain else None
        return build_export(self.store.snapshot(), site_id)

    # -- message handlers --------------------------------------------------

    def _handle_start(self, channel: ObserverChannel, message: StartCaptureMessage) -> None:
        domain = message.get('domain')
        tab_id = message.get('tabId')
        if not isinstance(domain, str) or not domain or tab_id is None:
            logger.warning('START_CAPTURE requires domain and tabId')
            return
        self.start_capture(domain, tab_id)

    def _handle_stop(self, channel: ObserverChannel, message: DomainMessage) -> None:
        domain = message.get('domain')
        if not isinstance(domain, str) or not domain:
            logger.warning('STOP_CAPTURE requires domain')
            return
        self.stop_capture(domain)

    def _handle_get_state(self, channel: ObserverChannel, message: Mapping[str, Any]) -> None:
        self.broadcaster.send_to(channel, self.broadcaster.state_message())

    def _handle_clear_domain(self, channel: ObserverChannel, message: DomainMessage) -> None:
        domain = message.get('domain')
        if not isinstance(domain, str) or not domain:
            logger.warning('CLEAR_DOMAIN requires domain')
            return
        self.clear_domain(domain)

    def _handle_clear_all(self, channel: ObserverChannel, message: Mapping[str, Any]) -> None:
        self.clear_all()

    def _handle_settings_update(
        self, channel: ObserverChannel, message: SettingsUpdateMessage
    ) -> None:
        payload = message.get('settings')
        if not isinstance(payload, Mapping):
            logger.warning('SETTINGS_UPDATE requires a settings object')
            return
        self.update_settings(payload)

    def _handle_schedule_clipboard_clear(
        self, channel: ObserverChannel, message: Mapping[str, Any]
    ) -> None:
        self.schedule_clipboard_clear()

    def _handle_export(self, channel: ObserverChannel, message: ExportMessage) -> None:
        domain = message.get('domain')
        reply = ExportResultMessage(
            type=MessageType.EXPORT_RESULT.value,
            payload=self.export(domain if isinstance(domain, str) else None),
        )
        self.broadcaster.send_to(channel, reply)

    # -- timer and alarm callbacks -----------------------------------------

    def _discard(self, site_id: str) -> bool:
        removed = self.store.clear(site_id)
        self.auto_stop.cancel(site_id)
        self.expiry.cancel(site_id)
        return removed

    def _on_auto_stop(self, site_id: str) -> None:
        session = self.store.get(site_id)
        if session is None or not session.active:
            return
        self.store.stop(site_id)
        logger.info('Capture auto-stopped after strong credentials: site=%s', site_id)
        self.listeners.update(self.store.has_active())
        self.broadcaster.publish_now()

    def _on_expire(self, site_id: str) -> None:
        removed = self.store.clear(site_id)
        self.auto_stop.cancel(site_id)
        if not removed:
            logger.debug('Expiry for already cleared site: %s', site_id)
            return
        self.listeners.update(self.store.has_active())
        self.broadcaster.publish_now()

    def _on_alarm(self, alarm: Alarm) -> None:
        if self.expiry.handle_alarm(alarm):
            return
        if alarm.name == CLIPBOARD_ALARM:
            logger.debug('Clipboard clear due')
            self.broadcaster.broadcast({'type': MessageType.CLEAR_CLIPBOARD.value})
            return
        logger.debug('Ignoring unknown alarm: %s', alarm.name)
