"""
Error taxonomy for registry lookups

Every failure a caller can see maps to one of these types. Each carries a
stable ``error_type`` tag and the HTTP status used when it is rendered by
the API layer. "Nothing found" is never an error.
"""

from typing import Optional


class RegistryServiceError(Exception):
    """Base class for all structured lookup failures"""
    error_type = "error"
    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {
            "success": False,
            "error": self.message,
            "errorType": self.error_type,
        }


class InvalidRequestError(RegistryServiceError):
    """Malformed request: unknown action, bad country, missing identifier"""
    error_type = "invalid_request"
    http_status = 400


class UnauthorizedError(RegistryServiceError):
    """No verified caller identity"""
    error_type = "unauthorized"
    http_status = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class RateLimitedError(RegistryServiceError):
    """Upstream registry answered HTTP 429"""
    error_type = "rate_limited"
    http_status = 429

    def __init__(self, message: str = "Rate limit exceeded. Please try again later."):
        super().__init__(message)


class UpstreamError(RegistryServiceError):
    """Any other upstream failure: non-2xx, transport error, timeout, bad JSON"""
    error_type = "upstream_error"
    http_status = 502

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    def to_dict(self):
        payload = super().to_dict()
        if self.status_code is not None:
            payload["upstreamStatus"] = self.status_code
        return payload


class PersistenceError(RegistryServiceError):
    """Write to (or read from) the provider store failed"""
    error_type = "persistence_error"
    http_status = 500


class RecordParseError(ValueError):
    """An upstream entry could not be turned into a canonical record"""
