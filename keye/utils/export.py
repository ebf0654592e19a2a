"""Clipboard-ready export of captured sessions."""

from __future__ import annotations

from keye.constants import RESPONSE_HEADER_PREFIX
from keye.protocol.capture_types import CaptureRecord, CaptureSnapshot, ExportPayload
from keye.utils.domains import protection_reason

_MASK_CHAR = '•'
_MASK_MIN_LENGTH = 12


def clean_origin_headers(headers: dict[str, str]) -> dict[str, str]:
    """Strip the response prefix from header keys.

    When a request and a response header share a name, the request value is
    kept regardless of which was stored first.
    """
    clean: dict[str, str] = {}
    for key, value in headers.items():
        if key.startswith(RESPONSE_HEADER_PREFIX):
            clean.setdefault(key[len(RESPONSE_HEADER_PREFIX):], value)
    for key, value in headers.items():
        if not key.startswith(RESPONSE_HEADER_PREFIX):
            clean[key] = value
    return clean


def build_payload(site_id: str, capture: CaptureRecord) -> ExportPayload:
    """Build the export payload for one captured site."""
    origins: dict[str, dict[str, str]] = {}
    for origin, headers in capture['headersByOrigin'].items():
        cleaned = clean_origin_headers(headers)
        if cleaned:
            origins[origin] = cleaned

    payload = ExportPayload(tab=site_id, capturedAt=capture['capturedAt'], origins=origins)
    reason = protection_reason(site_id)
    if reason:
        payload['warning'] = reason
    return payload


def build_export(
    snapshot: CaptureSnapshot, site_id: str | None = None
) -> ExportPayload | list[ExportPayload] | None:
    """Build the export for one site or for every site with captured headers.

    Returns:
        A single payload when exactly one site qualifies (or ``site_id`` was
        given), a list when several do, and None when nothing was captured.
    """
    if site_id is not None:
        capture = snapshot.get(site_id)
        if capture is None or count_headers(capture) == 0:
            return None
        return build_payload(site_id, capture)

    payloads = [
        build_payload(domain, capture)
        for domain, capture in snapshot.items()
        if count_headers(capture) > 0
    ]
    if not payloads:
        return None
    return payloads[0] if len(payloads) == 1 else payloads


def count_headers(capture: CaptureRecord) -> int:
    return sum(len(headers) for headers in capture['headersByOrigin'].values())


def count_origins(capture: CaptureRecord) -> int:
    return len(capture['headersByOrigin'])


def mask_value(value: str | None) -> str:
    """Mask a secret for display, keeping four characters at each end."""
    if not value or len(value) <= _MASK_MIN_LENGTH:
        return _MASK_CHAR * 8
    return value[:4] + _MASK_CHAR * 4 + value[-4:]
