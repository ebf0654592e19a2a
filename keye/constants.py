"""Static classification data shared by the capture pipeline."""

from __future__ import annotations

# Header names that always carry credentials (compared lower-cased)
CREDENTIAL_HEADERS: frozenset[str] = frozenset({
    'authorization',
    'cookie',
    'set-cookie',
    'x-auth-token',
    'x-csrf-token',
    'x-api-key',
})

CREDENTIAL_HEADER_FUZZY: tuple[str, ...] = ('token', 'auth', 'session')

# Evidence that a login flow finished; the plain Cookie header arrives too early to count
STRONG_CREDENTIAL_HEADERS: frozenset[str] = frozenset({
    'authorization',
    'x-auth-token',
    'x-csrf-token',
    'x-api-key',
})

RESPONSE_HEADER_PREFIX = 'response:'

# Whole origins whose traffic is never captured
TRACKING_DOMAINS: tuple[str, ...] = (
    # Google
    'google-analytics.com',
    'googletagmanager.com',
    'googleadservices.com',
    'googlesyndication.com',
    'doubleclick.net',
    'googletagservices.com',
    'analytics.google.com',
    # Meta
    'facebook.net',
    'connect.facebook.net',
    'graph.facebook.com',
    # Microsoft
    'clarity.ms',
    'bat.bing.com',
    'c.bing.com',
    # Hotjar
    'hotjar.com',
    'hotjar.io',
    # Product analytics
    'segment.io',
    'segment.com',
    'cdn.segment.com',
    'mixpanel.com',
    'amplitude.com',
    'heapanalytics.com',
    'fullstory.com',
    'logrocket.com',
    'smartlook.com',
    # Ads
    'criteo.com',
    'criteo.net',
    'adroll.com',
    'outbrain.com',
    'taboola.com',
    'adsrvr.org',
    # Social
    'snap.licdn.com',
    'ads.linkedin.com',
    'analytics.tiktok.com',
    't.co',
    # Support, monitoring and consent banners
    'hubspot.com',
    'hs-analytics.net',
    'hsforms.com',
    'intercom.io',
    'intercomcdn.com',
    'sentry.io',
    'browser-intake-datadoghq.com',
    'newrelic.com',
    'nr-data.net',
    'cookiebot.com',
    'onetrust.com',
    'cookielaw.org',
)

# Cookie name prefixes that only feed analytics (compared case-insensitively)
TRACKING_COOKIE_PREFIXES: tuple[str, ...] = (
    '_ga', '_gid', '_gat', '_gcl', '__utm', '_dc_gtm',
    '_fbp', '_fbc',
    '_hjSession', '_hjSessionUser', '_hj', '_hjAbsolute',
    '_clck', '_clsk',
    '_uetsid', '_uetvid',
    'hubspot', '__hs', '__hstc', '__hssc', '__hssrc',
    '_pin_unauth',
    'mp_', 'mixpanel',
    '_tt_', 'ttclid',
    'ajs_', 'amplitude',
    '__stripe_mid', '__stripe_sid',
    'AMCV_', 'AMCVS_', 's_',
    '_scid', 'sc_',
    '_rdt_uuid',
    'intercom-',
)

# Public suffixes with two labels; the registrable root keeps a third label
MULTI_PART_TLDS: frozenset[str] = frozenset({
    'co.uk', 'org.uk', 'co.jp', 'co.kr', 'co.nz', 'co.in', 'co.il', 'co.za',
    'com.au', 'com.br', 'com.mx', 'com.ar', 'com.tr', 'com.cn', 'com.tw', 'com.hk',
    'net.au', 'org.au', 'ac.uk', 'gov.uk',
})

# Sites whose sessions cannot be replayed outside the browser that created them
PROTECTED_SITES: tuple[tuple[tuple[str, ...], str], ...] = (
    (
        ('facebook.com', 'fb.com', 'messenger.com', 'instagram.com'),
        'Sessions are bound to device fingerprint and IP address',
    ),
    (
        ('google.com', 'youtube.com', 'gmail.com', 'googleapis.com'),
        'Sessions are bound to IP and browser fingerprint',
    ),
    (
        ('live.com', 'outlook.com', 'microsoft.com', 'bing.com'),
        'Sessions are bound to device and IP address',
    ),
    (
        ('apple.com', 'icloud.com'),
        'Sessions require device trust and 2FA verification',
    ),
)

EXPIRY_ALARM_PREFIX = 'clear:'
CLIPBOARD_ALARM = 'clipboard-clear'

DEFAULT_AUTO_CLEAR_MINUTES = 5
DEFAULT_CLIPBOARD_CLEAR_MINUTES = 0.5

DEFAULT_AUTO_STOP_DELAY = 10.0
DEFAULT_BROADCAST_DEBOUNCE = 0.3
