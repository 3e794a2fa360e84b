"""Application errors. Each carries the HTTP status and the stable message shown to clients."""

from __future__ import annotations


class AppError(Exception):
    """Base error.

    ``commit`` marks a rejection whose cleanup writes must persist: the
    session scope commits them before the error propagates instead of
    rolling back.
    """

    status_code: int = 500
    default_message: str = "Server error"

    def __init__(self, message: str | None = None, *, commit: bool = False) -> None:
        self.message = message or self.default_message
        self.commit = commit
        super().__init__(self.message)


class BadRequestError(AppError):
    status_code = 400
    default_message = "Bad request"


class ConflictError(BadRequestError):
    """Duplicate resource; rendered as 400."""

    default_message = "User already exists"


class UnauthorizedError(AppError):
    """Credential rejected.

    ``reason`` separates the failure kinds callers care about:
    ``missing``, ``invalid`` (bad signature or claims), ``expired``,
    ``unknown`` (no live stored row) and ``revoked`` (token version bumped).
    """

    status_code = 401
    default_message = "Invalid or expired token"

    def __init__(self, message: str | None = None, reason: str = "invalid", *, commit: bool = False) -> None:
        super().__init__(message, commit=commit)
        self.reason = reason


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class InternalServerError(AppError):
    status_code = 500
    default_message = "Server error"


class EmailDeliveryError(InternalServerError):
    default_message = "Error sending email"


class ConfigurationError(RuntimeError):
    """Raised at construction time when required configuration is absent."""
