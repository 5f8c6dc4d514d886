"""Error taxonomy shared by the lifecycle and referral engines.

Engines raise these; ``main`` renders them as the ``{code, message, details?}``
envelope. Nothing here knows about HTTP beyond the status code it maps to.
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel


class ErrorDetail(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    code: str
    message: str
    details: Optional[list[ErrorDetail]] = None


class AppError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[list[dict[str, Any]]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_response(self) -> ErrorResponse:
        details = [ErrorDetail(**d) for d in self.details] if self.details else None
        return ErrorResponse(code=self.code, message=self.message, details=details)


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class ForbiddenError(AppError):
    status_code = 403
    code = "FORBIDDEN"


class InvalidStatusError(AppError):
    status_code = 400
    code = "INVALID_STATUS"


class InternalError(AppError):
    status_code = 500
    code = "INTERNAL_ERROR"


# Codes for failures raised by the web layer itself rather than the engines.
# UNAUTHORIZED and METHOD_NOT_ALLOWED are transport-only additions to the
# taxonomy above; any status not listed renders as INTERNAL_ERROR.
HTTP_STATUS_CODES = {
    400: ValidationError.code,
    401: "UNAUTHORIZED",
    403: ForbiddenError.code,
    404: NotFoundError.code,
    405: "METHOD_NOT_ALLOWED",
}
