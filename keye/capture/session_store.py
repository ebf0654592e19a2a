"""Authoritative in-memory store of capture sessions keyed by site identity."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterator

from keye.protocol.capture_types import CaptureRecord, CaptureSnapshot, HeadersByOrigin, TabId
from keye.utils.headers import is_strong_credential_header

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass
class CaptureSession:
    """Credential headers captured for one site, grouped by serving origin."""

    site_id: str
    tab_id: TabId
    captured_at: str
    active: bool = True
    headers_by_origin: HeadersByOrigin = field(default_factory=dict)

    def has_strong_credentials(self) -> bool:
        """Check every origin for a header that proves authentication completed."""
        return any(
            is_strong_credential_header(key)
            for headers in self.headers_by_origin.values()
            for key in headers
        )

    def to_record(self) -> CaptureRecord:
        return CaptureRecord(
            headersByOrigin={
                origin: dict(headers) for origin, headers in self.headers_by_origin.items()
            },
            tabId=self.tab_id,
            capturedAt=self.captured_at,
            active=self.active,
        )


class CaptureSessionStore:
    """Owns every capture session and all mutation of their contents."""

    def __init__(self, clock: Callable[[], datetime] = _utc_now):
        self._clock = clock
        self._sessions: dict[str, CaptureSession] = {}

    def __contains__(self, site_id: object) -> bool:
        return site_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[CaptureSession]:
        return iter(list(self._sessions.values()))

    def get(self, site_id: str) -> CaptureSession | None:
        return self._sessions.get(site_id)

    def site_ids(self) -> list[str]:
        return list(self._sessions)

    def has_active(self) -> bool:
        return any(session.active for session in self._sessions.values())

    def active_sessions_for_tab(self, tab_id: TabId) -> list[CaptureSession]:
        return [
            session
            for session in self._sessions.values()
            if session.active and session.tab_id == tab_id
        ]

    def start(self, site_id: str, tab_id: TabId) -> CaptureSession:
        """Create a fresh active session, replacing any existing one for the site."""
        replaced = site_id in self._sessions
        session = CaptureSession(
            site_id=site_id,
            tab_id=tab_id,
            captured_at=self._clock().isoformat(),
        )
        self._sessions[site_id] = session
        logger.info(
            'Capture started: site=%s tab=%s%s', site_id, tab_id, ' (replaced)' if replaced else ''
        )
        return session

    def stop(self, site_id: str) -> bool:
        """Deactivate a session. Returns False when there was nothing to stop."""
        session = self._sessions.get(site_id)
        if session is None or not session.active:
            return False
        session.active = False
        logger.info('Capture stopped: site=%s', site_id)
        return True

    def record_header(self, site_id: str, origin: str, key: str, value: str) -> bool:
        """Store a header value with last-write-wins semantics.

        Returns:
            True only when the stored value actually changed. Writes to
            missing or inactive sessions are refused and return False.
        """
        session = self._sessions.get(site_id)
        if session is None or not session.active:
            return False

        headers = session.headers_by_origin.setdefault(origin, {})
        if headers.get(key) == value:
            return False
        headers[key] = value
        logger.debug('Header recorded: site=%s origin=%s key=%s', site_id, origin, key)
        return True

    def clear(self, site_id: str) -> bool:
        """Remove a session. Returns False when the site had no session."""
        if self._sessions.pop(site_id, None) is None:
            return False
        logger.info('Capture cleared: site=%s', site_id)
        return True

    def clear_all(self) -> list[str]:
        """Remove every session and return the site identities that were removed."""
        removed = list(self._sessions)
        self._sessions.clear()
        logger.info('All captures cleared (%d sessions)', len(removed))
        return removed

    def snapshot(self) -> CaptureSnapshot:
        """Deep copy of the whole store; mutating it never touches live state."""
        return {site_id: session.to_record() for site_id, session in self._sessions.items()}
