"""Host network-event stream port."""

from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol

from keye.protocol.messages import RequestHeadersEvent, ResponseHeadersEvent

logger = logging.getLogger(__name__)

RequestHandler = Callable[[RequestHeadersEvent], None]
ResponseHandler = Callable[[ResponseHeadersEvent], None]


class HostEventStream(Protocol):
    """Subscribable stream of per-request header events.

    Both event kinds are subscribed and unsubscribed together.
    """

    def subscribe(
        self, on_send_headers: RequestHandler, on_headers_received: ResponseHandler
    ) -> None: ...

    def unsubscribe(self) -> None: ...


class InMemoryEventStream:
    """Event stream fed by ``emit_*`` calls.

    Events emitted while nobody is subscribed are dropped, the way a browser
    never reports traffic to a listener that was removed.
    """

    def __init__(self):
        self._on_send_headers: Optional[RequestHandler] = None
        self._on_headers_received: Optional[ResponseHandler] = None

    @property
    def subscribed(self) -> bool:
        return self._on_send_headers is not None

    def subscribe(
        self, on_send_headers: RequestHandler, on_headers_received: ResponseHandler
    ) -> None:
        self._on_send_headers = on_send_headers
        self._on_headers_received = on_headers_received
        logger.debug('Host event stream subscribed')

    def unsubscribe(self) -> None:
        self._on_send_headers = None
        self._on_headers_received = None
        logger.debug('Host event stream unsubscribed')

    def emit_request(self, event: RequestHeadersEvent) -> bool:
        """Deliver a request event. Returns whether a subscriber received it."""
        if self._on_send_headers is None:
            return False
        self._on_send_headers(event)
        return True

    def emit_response(self, event: ResponseHeadersEvent) -> bool:
        """Deliver a response event. Returns whether a subscriber received it."""
        if self._on_headers_received is None:
            return False
        self._on_headers_received(event)
        return True
