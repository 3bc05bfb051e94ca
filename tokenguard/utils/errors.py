"""API error hierarchy rendered by the application exception handlers"""


class ApiError(Exception):
    """Base class for errors that map to a JSON error response.

    ``error_code`` is the stable machine-readable code clients branch on
    (``TOKEN_EXPIRED``, ``TOKEN_BLACKLISTED``, ...); ``message`` is for humans.
    """

    status_code = 500
    default_code = "SERVER_ERROR"

    def __init__(self, message: str, error_code: str = None):
        self.message = message
        self.error_code = error_code or self.default_code
        super().__init__(message)


class BadRequestError(ApiError):
    """400 Bad Request"""
    status_code = 400
    default_code = "VALIDATION_ERROR"


class UnauthorizedError(ApiError):
    """401 Unauthorized"""
    status_code = 401
    default_code = "AUTH_FAILED"


class ForbiddenError(ApiError):
    """403 Forbidden"""
    status_code = 403
    default_code = "FORBIDDEN"


class ConflictError(ApiError):
    """409 Conflict"""
    status_code = 409
    default_code = "CONFLICT"


class ServiceUnavailableError(ApiError):
    """503 Service Unavailable"""
    status_code = 503
    default_code = "SERVICE_UNAVAILABLE"


class RevocationStoreError(Exception):
    """The revocation ledger could not be read or written.

    Raised by store implementations in place of driver exceptions so that
    storage details never reach the wire.
    """
