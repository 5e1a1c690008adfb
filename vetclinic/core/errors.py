"""Error kinds raised by the scheduling engine.

Each kind is an ``HTTPException`` so routes can let them propagate and FastAPI
renders the status code and message as-is.
"""

from fastapi import HTTPException, status


class ClinicError(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Request could not be completed.'

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)

    @property
    def message(self) -> str:
        return str(self.detail)


class ValidationError(ClinicError):
    """Malformed input, illegal transition or a violated business rule."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Validation failed.'


class ForbiddenError(ClinicError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'Insufficient permissions.'


class NotFoundError(ClinicError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Resource not found.'


class ConflictError(ClinicError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Resource conflict.'


class DatabaseUnavailableError(ClinicError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'Database unavailable. Verify DATABASE_URL and database credentials.'
