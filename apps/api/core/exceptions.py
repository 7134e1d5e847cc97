"""
API error types.

Every error the club API reports on purpose is an APIException: an
HTTPException carrying a stable `error_code` next to the human readable
detail. main.py renders them as {"detail": ..., "error_code": ...}.
"""
from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class APIException(HTTPException):
    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code


class NotFoundError(APIException):
    """A user, competition, challenge or participant that does not exist."""

    def __init__(self, resource: str, identifier: Any):
        super().__init__(status.HTTP_404_NOT_FOUND, f"{resource} not found: {identifier}", "NOT_FOUND")


class ValidationError(APIException):
    """
    Input rejected before anything was written.

    The code defaults to VALIDATION_ERROR, or VALIDATION_ERROR_<FIELD> when
    the offending field is named.
    """

    def __init__(self, detail: str, field: Optional[str] = None, error_code: Optional[str] = None):
        if error_code is None:
            error_code = "VALIDATION_ERROR" if not field else f"VALIDATION_ERROR_{field.upper()}"
        super().__init__(status.HTTP_422_UNPROCESSABLE_ENTITY, detail, error_code)


class QuotaExhaustedError(ValidationError):
    def __init__(self, detail: str = "Daily gift quota exhausted"):
        super().__init__(detail, error_code="QUOTA_EXHAUSTED")


class ForbiddenError(APIException):
    def __init__(self, detail: str = "Access denied"):
        super().__init__(status.HTTP_403_FORBIDDEN, detail, "FORBIDDEN")


class ConflictError(APIException):
    def __init__(self, detail: str):
        super().__init__(status.HTTP_409_CONFLICT, detail, "CONFLICT")


class TransientStorageError(APIException):
    """The database failed mid-operation. Nothing was applied; the call can be repeated."""

    def __init__(self, detail: str = "Storage temporarily unavailable, no changes were applied"):
        super().__init__(status.HTTP_503_SERVICE_UNAVAILABLE, detail, "TRANSIENT_STORAGE_ERROR")


class UpstreamUnavailableError(APIException):
    """Strava could not be reached or kept rate limiting."""

    def __init__(self, detail: str = "Activity source unavailable"):
        super().__init__(status.HTTP_502_BAD_GATEWAY, detail, "UPSTREAM_UNAVAILABLE")
