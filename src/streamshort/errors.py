"""Error taxonomy shared by services and the HTTP layer.

Learn: Services raise these instead of HTTPException so they stay
usable outside a request (CLI, tests). main.py registers one handler
that turns any StreamShortError into {"detail": ..., "code": ...}
with the class's status code.

Ownership failures are the subtle case: NotFoundOrDenied is a
Forbidden, but it is rendered as a 404 with the same body whether
the resource is missing or belongs to someone else. Callers can't
probe for other users' series or episodes.
"""

from typing import Optional


class StreamShortError(Exception):
    """Base class for every error the API knows how to render."""

    status_code = 500
    code = "internal_error"
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(StreamShortError):
    """Malformed or missing input."""

    status_code = 400
    code = "validation_error"
    default_message = "Invalid request"


# ─── Authentication (401) ────────────────────────────────


class AuthError(StreamShortError):
    """Credential problem. Always rendered with WWW-Authenticate."""

    status_code = 401
    code = "unauthorized"
    default_message = "Authentication required"


class Unauthorized(AuthError):
    pass


class InvalidOTP(AuthError):
    code = "invalid_otp"
    default_message = "Invalid OTP"


class InvalidRefreshToken(AuthError):
    code = "invalid_refresh_token"
    default_message = "Invalid refresh token"


class InvalidToken(AuthError):
    code = "invalid_token"
    default_message = "Invalid token"


class InvalidCredentials(AuthError):
    code = "invalid_credentials"
    default_message = "Invalid credentials"


class UserNotFound(AuthError):
    code = "user_not_found"
    default_message = "User not found"


# ─── Authorization ───────────────────────────────────────


class Forbidden(StreamShortError):
    status_code = 403
    code = "forbidden"
    default_message = "Access denied"


class NotFoundOrDenied(Forbidden):
    """Ownership check failed — shaped exactly like a missing resource."""

    status_code = 404
    code = "not_found"
    default_message = "Not found or access denied"


class NotFoundError(StreamShortError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class ConflictError(StreamShortError):
    status_code = 409
    code = "conflict"
    default_message = "Conflict"


class InternalError(StreamShortError):
    pass
