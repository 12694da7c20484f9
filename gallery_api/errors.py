"""Error taxonomy for the listing service.

Every error carries the HTTP status and the machine-readable code used in the
``{"error": {"code", "message"}}`` envelope.
"""


class ListingError(Exception):
    status_code = 500
    code = "internal_error"
    default_message = "request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ConfigError(ListingError):
    """Required settings are absent. Never cached, never retried."""

    code = "config_error"
    default_message = "service is not configured"


class ValidationError(ListingError):
    status_code = 400
    code = "bad_request"
    default_message = "invalid request parameters"


class UpstreamError(ListingError):
    """Base for failures of the object-store listing call."""


class UpstreamNotFound(UpstreamError):
    status_code = 404
    code = "not_found"
    default_message = "prefix not found"


class UpstreamAccessDenied(UpstreamError):
    # Reported as 404 so callers cannot probe for protected prefixes.
    status_code = 404
    code = "not_found"
    default_message = "prefix not found"


class UpstreamTransient(UpstreamError):
    code = "upstream_unavailable"
    default_message = "image store is temporarily unavailable"


class UnknownError(UpstreamError):
    default_message = "failed to fetch images"
