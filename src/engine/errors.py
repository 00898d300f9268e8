# src/engine/errors.py
"""
Error taxonomy shared by the engine and the API layer.

Every error carries the HTTP status it maps to and a stable ``code`` so
callers branch on type, not on message text.
"""
from typing import Optional


class ServiceError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str = "Internal server error", status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class Unauthorized(ServiceError):
    status_code = 401
    code = "unauthorized"


class AuthenticationRequired(Unauthorized):
    code = "authentication_required"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class Forbidden(ServiceError):
    status_code = 403
    code = "forbidden"


class PermissionDenied(Forbidden):
    code = "permission_denied"


class LimitExceeded(Forbidden):
    code = "limit_exceeded"


class NotFound(ServiceError):
    status_code = 404
    code = "not_found"


class ForeignKeyViolation(NotFound):
    code = "foreign_key_violation"


class ValidationError(ServiceError):
    status_code = 400
    code = "validation_error"


class InvalidTransition(ServiceError):
    status_code = 409
    code = "invalid_transition"


class UpstreamError(ServiceError):
    status_code = 502
    code = "upstream_error"

    def __init__(self, message: str, upstream_status: Optional[int] = None, body=None):
        # client errors from the upstream are passed through, everything else is a bad gateway
        status = upstream_status if upstream_status and 400 <= upstream_status < 500 else None
        super().__init__(message, status_code=status)
        self.upstream_status = upstream_status
        self.body = body


class PersistenceError(ServiceError):
    status_code = 500
    code = "persistence_error"
