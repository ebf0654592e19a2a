"""Event intake: turns host header events into capture session writes.

Every request/response event is classified once (origin, tracking verdict,
credential headers, cookie filtering) and the surviving headers are then
applied to each active session owned by the event's tab.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from keye.capture.session_store import CaptureSession, CaptureSessionStore
from keye.constants import RESPONSE_HEADER_PREFIX
from keye.protocol.capture_types import TabId
from keye.protocol.messages import HeaderEntry, RequestHeadersEvent, ResponseHeadersEvent
from keye.utils.domains import is_tracking, normalize
from keye.utils.headers import filter_cookie_header, filter_set_cookie, is_credential_header

logger = logging.getLogger(__name__)

SessionChangedCallback = Callable[[CaptureSession], None]


class EventIntake:
    """Applies credential headers from host events to the session store.

    Args:
        store: Session store receiving the writes.
        on_session_changed: Called once per session whose headers changed
            while processing an event.
        on_changed: Called once per event that changed any session.
    """

    def __init__(
        self,
        store: CaptureSessionStore,
        on_session_changed: Optional[SessionChangedCallback] = None,
        on_changed: Optional[Callable[[], None]] = None,
    ):
        self._store = store
        self._on_session_changed = on_session_changed
        self._on_changed = on_changed

    def on_send_headers(self, event: RequestHeadersEvent) -> bool:
        """Handle a request-headers-sent event. Returns whether state changed."""
        return self._ingest(
            event.get('tabId'), event.get('url', ''), event.get('requestHeaders') or [], False
        )

    def on_headers_received(self, event: ResponseHeadersEvent) -> bool:
        """Handle a response-headers-received event. Returns whether state changed."""
        return self._ingest(
            event.get('tabId'), event.get('url', ''), event.get('responseHeaders') or [], True
        )

    def _ingest(
        self, tab_id: TabId, url: str, headers: list[HeaderEntry], is_response: bool
    ) -> bool:
        origin = normalize(url)
        if origin is None or is_tracking(origin):
            return False

        sessions = self._store.active_sessions_for_tab(tab_id)
        if not sessions:
            return False

        entries = self._credential_entries(headers, is_response)
        if not entries:
            return False

        any_changed = False
        for session in sessions:
            session_changed = False
            for key, value in entries:
                if self._store.record_header(session.site_id, origin, key, value):
                    session_changed = True
            if session_changed:
                any_changed = True
                if self._on_session_changed is not None:
                    self._on_session_changed(session)

        if any_changed:
            logger.debug(
                'Intake updated captures from %s (%s)', origin, 'response' if is_response else 'request'
            )
            if self._on_changed is not None:
                self._on_changed()
        return any_changed

    @staticmethod
    def _credential_entries(
        headers: list[HeaderEntry], is_response: bool
    ) -> list[tuple[str, str]]:
        """Select credential headers and compute the key and value to store for each."""
        entries: list[tuple[str, str]] = []
        for header in headers:
            name = header.get('name')
            value = header.get('value')
            if not name or value is None or not is_credential_header(name):
                continue

            lower = name.lower()
            if is_response:
                if lower == 'set-cookie' and not filter_set_cookie(value):
                    continue
                entries.append((RESPONSE_HEADER_PREFIX + name, value))
                continue

            if lower == 'cookie':
                filtered = filter_cookie_header(value)
                if filtered is None:
                    continue
                value = filtered
            entries.append((name, value))
        return entries
