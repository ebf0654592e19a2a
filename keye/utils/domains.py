"""Site identity and tracking classification for observed URLs."""

from __future__ import annotations

import logging
from urllib.parse import urlsplit

from keye.constants import MULTI_PART_TLDS, PROTECTED_SITES, TRACKING_DOMAINS

logger = logging.getLogger(__name__)

_WWW_PREFIX = 'www.'


def _strip_www(host: str) -> str:
    return host[len(_WWW_PREFIX):] if host.startswith(_WWW_PREFIX) else host


def _matches_domain(host: str, domain: str) -> bool:
    """Exact match or proper subdomain; never a bare substring match."""
    return host == domain or host.endswith('.' + domain)


def normalize(url: str) -> str | None:
    """Map a URL to the normalized host used as origin or site identity.

    Returns None for anything that does not parse or carries no host
    (``about:blank``, ``data:`` URLs and the like).
    """
    if not url:
        return None
    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        logger.debug('Unparsable URL dropped')
        return None
    if not hostname:
        return None
    return _strip_www(hostname)


def normalize_site_id(domain: str) -> str:
    """Normalize a bare domain sent by an observer into a site identity."""
    return _strip_www(domain.strip().lower())


def root_domain(site_id: str) -> str:
    """Collapse a host to its registrable root domain.

    ``api.shop.example.co.uk`` becomes ``example.co.uk`` while
    ``api.example.com`` becomes ``example.com``.
    """
    parts = site_id.split('.')
    if len(parts) <= 2:
        return site_id
    if '.'.join(parts[-2:]) in MULTI_PART_TLDS:
        return '.'.join(parts[-3:])
    return '.'.join(parts[-2:])


def is_tracking(site_id: str) -> bool:
    """Check whether a host belongs to a known tracking or analytics service."""
    return any(_matches_domain(site_id, domain) for domain in TRACKING_DOMAINS)


def protection_reason(site_id: str | None) -> str | None:
    """Return why captured headers from this site will not replay, if known."""
    if not site_id:
        return None
    for domains, reason in PROTECTED_SITES:
        if any(_matches_domain(site_id, domain) for domain in domains):
            return reason
    return None
