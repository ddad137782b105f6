# Resolution outcome statuses (read path)
RESOLVE_STATUS_INVALID = "invalid"
RESOLVE_STATUS_REDIRECT = "redirect"
RESOLVE_STATUS_OWNED = "owned"
RESOLVE_STATUS_UNCLAIMED_BY_CALLER = "unclaimed_by_caller"

RESOLVE_STATUSES = frozenset({
    RESOLVE_STATUS_INVALID,
    RESOLVE_STATUS_REDIRECT,
    RESOLVE_STATUS_OWNED,
    RESOLVE_STATUS_UNCLAIMED_BY_CALLER,
})

# Claim outcome statuses (write path)
CLAIM_STATUS_CREATED = "created"
CLAIM_STATUS_RETARGETED = "retargeted"

# Scan audit dimensions. Unknown values are stored as-is; these are the
# ones the clients send today.
SCAN_PLATFORM_WEB = "web"
SCAN_PLATFORM_IOS = "ios"
SCAN_PLATFORM_ANDROID = "android"

SCAN_SOURCE_CAMERA = "camera"
SCAN_SOURCE_MANUAL = "manual"
SCAN_SOURCE_LINK = "link"

DEFAULT_SCAN_PLATFORM = SCAN_PLATFORM_WEB
DEFAULT_SCAN_SOURCE = SCAN_SOURCE_CAMERA

# Column width of qr_scan_events.platform / .source
SCAN_DIMENSION_MAX_LEN = 32
