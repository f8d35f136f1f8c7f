"""
core/errors.py -- Error taxonomy shared by every GeoConnect layer.

Each error carries the HTTP status and machine-readable code it maps to, so
auth/ and posts/ can raise domain errors without importing FastAPI. api/main.py
registers one exception handler for GeoConnectError that renders the standard
{"error": {"code", "message"}} envelope.

Messages on 4xx errors are shown to the caller verbatim and must stay minimal.
DependencyError messages are never shown: the handler logs the detail and
returns a generic message.
"""


class GeoConnectError(Exception):
    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(GeoConnectError):
    """Malformed or out-of-range input."""

    status_code = 400
    code = "validation_error"


class PasswordTooLongError(ValidationError):
    code = "password_too_long"


class PayloadTooLargeError(ValidationError):
    status_code = 413
    code = "payload_too_large"


class AuthenticationError(GeoConnectError):
    """Missing, invalid or expired credentials/token."""

    status_code = 401
    code = "unauthorized"


class AuthorizationError(GeoConnectError):
    """Authenticated, but not permitted."""

    status_code = 403
    code = "forbidden"


class NotFoundError(GeoConnectError):
    status_code = 404
    code = "not_found"


class ConflictError(GeoConnectError):
    status_code = 409
    code = "conflict"


class DependencyError(GeoConnectError):
    """A collaborator (database, Elasticsearch, media volume) failed."""

    status_code = 503
    code = "dependency_unavailable"


class HashingError(GeoConnectError):
    code = "hashing_failed"
