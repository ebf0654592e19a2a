from keye.utils.domains import (
    is_tracking,
    normalize,
    normalize_site_id,
    protection_reason,
    root_domain,
)
from keye.utils.headers import (
    filter_cookie_header,
    filter_set_cookie,
    is_credential_header,
    is_strong_credential_header,
    is_tracking_cookie,
)

__all__ = [
    'filter_cookie_header',
    'filter_set_cookie',
    'is_credential_header',
    'is_strong_credential_header',
    'is_tracking',
    'is_tracking_cookie',
    'normalize',
    'normalize_site_id',
    'protection_reason',
    'root_domain',
]
