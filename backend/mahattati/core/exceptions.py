"""
Error taxonomy shared by routes and services.

Every error is an HTTPException so services can raise them directly and the
handlers in mahattati.api.error_handlers only shape the response body.
"""
from typing import Optional
from fastapi import HTTPException, status


class AppError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Server error"

    def __init__(self, message: Optional[str] = None, headers: Optional[dict] = None):
        super().__init__(
            status_code=type(self).status_code,
            detail=message or self.default_message,
            headers=headers,
        )

    @property
    def message(self) -> str:
        return self.detail


class ValidationError(AppError):
    """Malformed or missing input; carries field-level messages"""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation failed"

    def __init__(self, errors: Optional[list[dict]] = None, message: Optional[str] = None):
        super().__init__(message)
        self.errors = errors or []

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(errors=[{"field": field, "message": message}], message=message)


class Unauthenticated(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Could not validate credentials"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(AppError):
    """Role or ownership mismatch"""
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


class NotFound(AppError):
    # Also used when a record exists but is hidden from the caller
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class Conflict(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Resource already exists"


class UpstreamError(AppError):
    """Payment gateway or other external service failure"""
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Upstream service error"


class InvalidToken(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid or expired token"


class TokenAlreadyUsedOrRevoked(InvalidToken):
    """Token verifies cryptographically but no longer matches the stored value"""
    default_message = "Token has already been used or revoked"
