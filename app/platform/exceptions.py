from typing import Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.platform.logger import get_logger
from app.platform.response import error_response

logger = get_logger("exceptions")


class AuditError(Exception):
    """Base for every failure the audit endpoints report as a JSON error body."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "audit_error"
    default_message: str = "Audit failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AuditError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"
    default_message = "Invalid request"


class MethodError(AuditError):
    status_code = status.HTTP_405_METHOD_NOT_ALLOWED
    code = "method_not_allowed"
    default_message = "Method Not Allowed"


class AuditTaskError(AuditError):
    """A strategy settled with a failure before the deadline."""

    code = "audit_failed"


class FetchError(AuditTaskError):
    code = "fetch_error"
    default_message = "Failed to fetch page"


class BrowserUnavailable(AuditTaskError):
    code = "browser_unavailable"
    default_message = "Browser could not be launched"


class EngineError(AuditTaskError):
    code = "engine_error"
    default_message = "Accessibility engine failed"


class AuditTimeout(AuditError):
    code = "audit_timeout"

    def __init__(self, deadline_ms: int):
        self.deadline_ms = deadline_ms
        super().__init__(f"Audit timeout ({deadline_ms}ms limit)")


def add_exception_handlers(app):
    @app.exception_handler(AuditError)
    async def audit_exception_handler(request: Request, exc: AuditError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
        return error_response(exc.message, status_code=exc.status_code, code=exc.code)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
            method_error = MethodError()
            return error_response(
                method_error.message,
                status_code=method_error.status_code,
                code=method_error.code,
                headers=exc.headers,
            )
        return error_response(str(exc.detail) or "Error", status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return error_response(
            "Validation failed",
            status_code=ValidationError.status_code,
            code=ValidationError.code,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception: {exc}")
        return error_response(
            "Internal server error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
