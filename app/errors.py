"""
Service error taxonomy.

Core services raise these instead of HTTPException so they stay usable
outside a request; main.py renders them with the same
{"detail": {"error_code", "message"}} envelope the routers use.
"""
from fastapi import status


class ServiceError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "INTERNAL_ERROR"

    def __init__(self, message: str, error_code: str = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code

    def to_detail(self) -> dict:
        return {"error_code": self.error_code, "message": self.message}


class Unauthenticated(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "AUTH_REQUIRED"


class Forbidden(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "PERMISSION_DENIED"


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "NOT_FOUND"


class ValidationFailed(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "VALIDATION_ERROR"


class InternalError(ServiceError):
    pass


class NoProfile(NotFound):
    default_code = "NO_PROFILE"
