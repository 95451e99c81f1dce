"""Error taxonomy shared by the routers and services.

Every error renders as ``{"error": message}`` with its status code; see the
handlers registered in ``main``.
"""

class ApiError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

class ValidationError(ApiError):
    status_code = 400
    default_message = "Invalid request"

_AUTH_FAILURES = {
    "missing": (401, "No token provided"),
    "invalid": (403, "Invalid or expired token"),
    "credentials": (401, "Invalid credentials"),
}

class AuthError(ApiError):
    """`reason` is ``missing`` (401), ``invalid`` (403) or ``credentials`` (401, failed login)."""

    def __init__(self, reason: str, message: str | None = None):
        if reason not in _AUTH_FAILURES:
            raise ValueError(f"unknown auth failure reason: {reason}")
        self.reason = reason
        self.status_code, default = _AUTH_FAILURES[reason]
        super().__init__(message or default)

class NotFoundError(ApiError):
    status_code = 404
    default_message = "Not found"

class ConflictError(ApiError):
    status_code = 409
    default_message = "Conflict"

class InternalError(ApiError):
    pass
