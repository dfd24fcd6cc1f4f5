"""
Application errors

Every error raised by repositories and services carries a stable string code
so clients can react without parsing messages. The exception handler
registered in main.py renders them as:

    {"status": "error", "error": {"code": ..., "message": ..., "details": ...}}
"""
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse


class AppError(Exception):
    """Base application error with an error code and HTTP status"""

    status_code = 400

    def __init__(
        self,
        message: str,
        code: str = "BAD_REQUEST",
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_dict(self) -> dict:
        error = {"code": self.code, "message": self.message}
        if self.details:
            error["details"] = self.details
        return {"status": "error", "error": error}


class NotFoundError(AppError):
    status_code = 404

    def __init__(self, message: str, code: str = "NOT_FOUND", details=None):
        super().__init__(message, code, details=details)


class ValidationError(AppError):
    status_code = 422

    def __init__(self, message: str, code: str = "VALIDATION_ERROR", details=None):
        super().__init__(message, code, details=details)


class ConflictError(AppError):
    status_code = 409

    def __init__(self, message: str, code: str = "CONFLICT", details=None):
        super().__init__(message, code, details=details)


class PaymentError(AppError):
    """Payment provider rejected or failed the request"""

    status_code = 502

    def __init__(self, message: str, code: str = "PAYMENT_FAILED", details=None):
        super().__init__(message, code, details=details)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
