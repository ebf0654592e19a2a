"""Credential header detection and tracking-cookie filtering."""

from __future__ import annotations

from keye.constants import (
    CREDENTIAL_HEADER_FUZZY,
    CREDENTIAL_HEADERS,
    STRONG_CREDENTIAL_HEADERS,
    TRACKING_COOKIE_PREFIXES,
)

_TRACKING_COOKIE_PREFIXES_LOWER = tuple(prefix.lower() for prefix in TRACKING_COOKIE_PREFIXES)


def is_credential_header(name: str) -> bool:
    """Check whether a header may carry credentials worth capturing."""
    lower = name.lower()
    if lower in CREDENTIAL_HEADERS:
        return True
    return any(fragment in lower for fragment in CREDENTIAL_HEADER_FUZZY)


def is_strong_credential_header(key: str) -> bool:
    """Check whether a stored header key proves an authentication flow completed."""
    return key.lower() in STRONG_CREDENTIAL_HEADERS


def is_tracking_cookie(name: str) -> bool:
    """Check a cookie name against the analytics cookie prefixes."""
    return name.lower().startswith(_TRACKING_COOKIE_PREFIXES_LOWER)


def _cookie_name(pair: str) -> str:
    return pair.split('=', 1)[0].strip()


def filter_cookie_header(raw_value: str | None) -> str | None:
    """Drop tracking cookies from a request Cookie header.

    Returns:
        The surviving ``name=value`` pairs joined with ``'; '``, or None when
        no pair survives and the header must not be stored.
    """
    if not raw_value:
        return None

    kept: list[str] = []
    for raw_pair in raw_value.split(';'):
        pair = raw_pair.strip()
        if not pair or is_tracking_cookie(_cookie_name(pair)):
            continue
        kept.append(pair)
    return '; '.join(kept) if kept else None


def filter_set_cookie(raw_value: str | None) -> bool:
    """Decide whether a Set-Cookie header should be kept.

    A Set-Cookie header carries one cookie; its attributes follow the first
    ``;`` and play no part in the decision.
    """
    name = _cookie_name((raw_value or '').split(';', 1)[0])
    return not is_tracking_cookie(name)
