"""
Error taxonomy for the marketplace engine.

Each error is an ``HTTPException`` so services can raise them directly, the
same way route handlers raise ``HTTPException``. The status code is fixed by
the class; the detail is the stable, client-facing message.
"""

from fastapi import HTTPException


class AppError(HTTPException):
    status_code = 500
    default_message = "Server error"

    def __init__(self, message: str | None = None, headers: dict | None = None):
        super().__init__(
            status_code=self.status_code,
            detail=message or self.default_message,
            headers=headers,
        )

    @property
    def message(self) -> str:
        return self.detail


class UnauthenticatedError(AppError):
    status_code = 401
    default_message = "Not authenticated"


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class BadRequestError(AppError):
    status_code = 400
    default_message = "Bad request"


class ConflictError(BadRequestError):
    """Invariant violation caused by existing state (duplicate, lost race, wrong prior state)."""

    default_message = "Conflict"


class UnprocessableEntityError(AppError):
    """An upstream collaborator (storage, payments, calendar) failed."""

    status_code = 422
    default_message = "Upstream service failed"
