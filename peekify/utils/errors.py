"""
Application error types.

Services raise these; the web app renders them as
{"success": false, "message": ...} with the matching status code.
"""
from typing import Optional


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class BadRequestError(AppError):
    status_code = 400


class UnauthorizedError(AppError):
    status_code = 401


class ForbiddenError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class ProviderError(AppError):
    """Error returned by the music provider's Web API."""
    status_code = 502
