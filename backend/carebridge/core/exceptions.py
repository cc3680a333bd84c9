"""
Domain exceptions raised by the service layer.

Routers never translate these by hand: ``main.py`` registers one handler
that maps each subclass onto its HTTP status and the standard error envelope
``{"success": false, "error": <code>, "message": <text>}``.
"""

from fastapi import status


class ServiceError(Exception):
    """Base class for business-rule violations."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "bad_request"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BadRequestError(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "bad_request"


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "not_found"


class ForbiddenError(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "forbidden"


class ConflictError(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "conflict"
