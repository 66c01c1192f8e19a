from __future__ import annotations

from typing import Optional


class AuthError(Exception):
    """Base class for auth-layer failures mapped to HTTP responses.

    Each subclass carries the HTTP ``status_code`` and a stable machine-readable
    ``error_code``; api.errors turns them into the JSON error envelope.
    """

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class AlreadyExists(AuthError):
    """Registration conflict on a unique field (409)."""

    status_code = 409
    error_code = "USER_ALREADY_EXISTS"

    def __init__(self, field: str, value: str) -> None:
        self.field = field
        self.value = value
        if field == "email":
            message = f"Email '{value}' is already registered"
        else:
            message = f"Username '{value}' is already taken"
        super().__init__(message)


class InvalidCredentials(AuthError):
    """Unknown user, inactive user or wrong password. Always the same message."""

    status_code = 401
    error_code = "INVALID_CREDENTIALS"
    default_message = "Invalid username or password"

    def __init__(self) -> None:
        super().__init__(self.default_message)


class TokenError(AuthError):
    status_code = 401
    error_code = "INVALID_TOKEN"
    default_message = "Invalid or expired token"


class InvalidToken(TokenError):
    """Bad signature, malformed token, wrong type or revoked."""

    default_message = "Invalid token"


class TokenExpired(TokenError):
    error_code = "TOKEN_EXPIRED"
    default_message = "Token has expired"


class NotFound(AuthError):
    status_code = 404
    error_code = "USER_NOT_FOUND"

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(f"User not found: {identifier}")


class AuthenticationRequired(AuthError):
    status_code = 401
    error_code = "AUTHENTICATION_REQUIRED"
    default_message = "Authentication required"
