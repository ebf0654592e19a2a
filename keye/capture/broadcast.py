"""Snapshot publication to connected observers.

Publication runs as a two-state machine. Intake bursts request a debounced
publication, which opens a window; further requests inside the window are
absorbed and one snapshot goes out when it elapses. User actions publish
immediately and close any open window, so a stale debounced snapshot can
never follow a fresh immediate one.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from keye.host.channels import ObserverChannel
from keye.host.timers import TimerHandle, TimerService
from keye.protocol.capture_types import CaptureSnapshot
from keye.protocol.messages import MessageType, StateUpdateMessage

logger = logging.getLogger(__name__)


class BroadcastState(str, Enum):
    IDLE = 'idle'
    PENDING_PUBLISH = 'pending-publish'


class BroadcastEvent(str, Enum):
    REQUEST_DEBOUNCED = 'request-debounced'
    REQUEST_IMMEDIATE = 'request-immediate'
    WINDOW_ELAPSED = 'window-elapsed'


class _Action(Enum):
    NONE = 'none'
    OPEN_WINDOW = 'open-window'
    PUBLISH = 'publish'
    CANCEL_AND_PUBLISH = 'cancel-and-publish'


_TRANSITIONS: dict[tuple[BroadcastState, BroadcastEvent], tuple[BroadcastState, _Action]] = {
    (BroadcastState.IDLE, BroadcastEvent.REQUEST_DEBOUNCED): (
        BroadcastState.PENDING_PUBLISH,
        _Action.OPEN_WINDOW,
    ),
    (BroadcastState.IDLE, BroadcastEvent.REQUEST_IMMEDIATE): (
        BroadcastState.IDLE,
        _Action.PUBLISH,
    ),
    # a cancelled window firing late
    (BroadcastState.IDLE, BroadcastEvent.WINDOW_ELAPSED): (
        BroadcastState.IDLE,
        _Action.NONE,
    ),
    (BroadcastState.PENDING_PUBLISH, BroadcastEvent.REQUEST_DEBOUNCED): (
        BroadcastState.PENDING_PUBLISH,
        _Action.NONE,
    ),
    (BroadcastState.PENDING_PUBLISH, BroadcastEvent.REQUEST_IMMEDIATE): (
        BroadcastState.IDLE,
        _Action.CANCEL_AND_PUBLISH,
    ),
    (BroadcastState.PENDING_PUBLISH, BroadcastEvent.WINDOW_ELAPSED): (
        BroadcastState.IDLE,
        _Action.PUBLISH,
    ),
}


class BroadcastCoordinator:
    """Publishes capture snapshots to every connected observer channel."""

    def __init__(
        self,
        snapshot: Callable[[], CaptureSnapshot],
        timers: TimerService,
        debounce: float,
    ):
        self._snapshot = snapshot
        self._timers = timers
        self._debounce = debounce
        self._state = BroadcastState.IDLE
        self._window: Optional[TimerHandle] = None
        self._channels: list[ObserverChannel] = []

    @property
    def state(self) -> BroadcastState:
        return self._state

    @property
    def channels(self) -> list[ObserverChannel]:
        return list(self._channels)

    def connect(self, channel: ObserverChannel) -> None:
        if channel not in self._channels:
            self._channels.append(channel)
            logger.debug('Observer connected (%d total)', len(self._channels))

    def disconnect(self, channel: ObserverChannel) -> None:
        if channel in self._channels:
            self._channels.remove(channel)
            logger.debug('Observer disconnected (%d total)', len(self._channels))

    def request_debounced(self) -> None:
        self._dispatch(BroadcastEvent.REQUEST_DEBOUNCED)

    def publish_now(self) -> None:
        self._dispatch(BroadcastEvent.REQUEST_IMMEDIATE)

    def state_message(self) -> StateUpdateMessage:
        return StateUpdateMessage(type=MessageType.STATE_UPDATE.value, captures=self._snapshot())

    def broadcast(self, message: Mapping[str, Any]) -> int:
        """Send a message to every channel. Returns the number of successful deliveries."""
        delivered = 0
        for channel in list(self._channels):
            if self.send_to(channel, message):
                delivered += 1
        return delivered

    @staticmethod
    def send_to(channel: ObserverChannel, message: Mapping[str, Any]) -> bool:
        """Deliver to one channel; a failure is logged and otherwise ignored."""
        try:
            channel.post_message(message)
        except Exception as exc:  # noqa: BLE001 - one observer must not break the rest
            logger.debug('Delivery to observer failed: %s', exc)
            return False
        return True

    def _dispatch(self, event: BroadcastEvent) -> None:
        next_state, action = _TRANSITIONS[(self._state, event)]
        self._state = next_state

        if action is _Action.OPEN_WINDOW:
            self._window = self._timers.call_later(self._debounce, self._on_window_elapsed)
        elif action is _Action.CANCEL_AND_PUBLISH:
            self._close_window()
            self._publish()
        elif action is _Action.PUBLISH:
            self._window = None
            self._publish()

    def _close_window(self) -> None:
        if self._window is not None:
            self._window.cancel()
            self._window = None

    def _on_window_elapsed(self) -> None:
        self._dispatch(BroadcastEvent.WINDOW_ELAPSED)

    def _publish(self) -> None:
        delivered = self.broadcast(self.state_message())
        logger.debug('State published to %d/%d observers', delivered, len(self._channels))
