"""Subscription management for the host event stream."""

from __future__ import annotations

import logging

from keye.capture.intake import EventIntake
from keye.host.events import HostEventStream

logger = logging.getLogger(__name__)


class ListenerLifecycleManager:
    """Keeps the intake subscribed only while some session is active."""

    def __init__(self, stream: HostEventStream, intake: EventIntake):
        self._stream = stream
        self._intake = intake
        self._subscribed = False

    @property
    def subscribed(self) -> bool:
        return self._subscribed

    def update(self, has_active: bool) -> bool:
        """Bring the subscription in line with ``has_active``.

        Returns:
            Whether the subscription state changed.
        """
        if has_active and not self._subscribed:
            self._stream.subscribe(self._intake.on_send_headers, self._intake.on_headers_received)
            self._subscribed = True
            logger.info('Listening for network events')
            return True
        if not has_active and self._subscribed:
            self._stream.unsubscribe()
            self._subscribed = False
            logger.info('Stopped listening for network events')
            return True
        return False
