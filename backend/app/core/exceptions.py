"""
Custom exceptions and global exception handlers for the application.
"""
import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


# ============================================================================
# Error Response Models
# ============================================================================


class ErrorDetail(BaseModel):
    """Detailed error information."""
    code: str
    message: str
    field: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    """Standardized error response model."""
    success: bool = False
    error: ErrorDetail
    request_id: Optional[str] = None


# ============================================================================
# Error Codes
# ============================================================================


class ErrorCode:
    """Application error codes."""
    # Authentication errors (AUTH_xxx)
    AUTH_UNAUTHORIZED = "AUTH_001"
    AUTH_FORBIDDEN = "AUTH_002"

    # Validation errors (VAL_xxx)
    VAL_INVALID_INPUT = "VAL_001"
    VAL_INVALID_FORMAT = "VAL_002"

    # Resource errors (RES_xxx)
    RES_NOT_FOUND = "RES_001"
    TASK_NOT_FOUND = "RES_002"
    PROJECT_NOT_FOUND = "RES_003"
    CONTEXT_NOT_FOUND = "RES_004"

    # AI errors (AI_xxx)
    AI_UPSTREAM_FAILED = "AI_001"
    AI_EMPTY_RESPONSE = "AI_002"
    AI_PARSE_FAILED = "AI_003"

    # Server errors (SRV_xxx)
    SRV_INTERNAL_ERROR = "SRV_001"


# ============================================================================
# Custom Exceptions
# ============================================================================


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        code: str = ErrorCode.SRV_INTERNAL_ERROR,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        field: Optional[str] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        self.field = field
        super().__init__(message)


class UnauthorizedError(AppException):
    """Missing or invalid caller identity. Never leaks the reason."""

    def __init__(self, reason: Optional[str] = None):
        # Reason is kept for server-side logs only
        self.reason = reason
        super().__init__(
            message="Unauthorized",
            code=ErrorCode.AUTH_UNAUTHORIZED,
            status_code=status.HTTP_401_UNAUTHORIZED,
        )


class NotFoundError(AppException):
    """Resource not found, or not owned by the caller."""

    def __init__(
        self,
        message: str = "Resource not found",
        code: str = ErrorCode.RES_NOT_FOUND,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
    ):
        details = {}
        if resource_type:
            details["resource_type"] = resource_type
        if resource_id:
            details["resource_id"] = resource_id

        super().__init__(
            message=message,
            code=code,
            status_code=status.HTTP_404_NOT_FOUND,
            details=details if details else None,
        )


class ValidationError(AppException):
    """Input validation errors."""

    def __init__(
        self,
        message: str = "Validation failed",
        code: str = ErrorCode.VAL_INVALID_INPUT,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
            field=field,
        )


class UpstreamError(AppException):
    """The completion service failed (transport error or non-success status)."""

    def __init__(
        self,
        message: str,
        provider: str,
        status_code: Optional[int] = None,
        code: str = ErrorCode.AI_UPSTREAM_FAILED,
    ):
        self.provider = provider
        self.upstream_status = status_code
        super().__init__(
            message=message,
            code=code,
            status_code=status.HTTP_502_BAD_GATEWAY,
            details={"provider": provider, "upstream_status": status_code},
        )


class EmptyResponseError(UpstreamError):
    """The completion service answered with zero choices."""

    def __init__(self, provider: str):
        super().__init__(
            message=f"No completion choices returned by {provider}",
            provider=provider,
            code=ErrorCode.AI_EMPTY_RESPONSE,
        )


class ClassificationParseError(AppException):
    """Completion text was not valid JSON for the expected envelope."""

    def __init__(self, message: str, raw_text: str = "", schema: Optional[str] = None):
        self.raw_text = raw_text
        self.schema = schema
        super().__init__(
            message=message,
            code=ErrorCode.AI_PARSE_FAILED,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"schema": schema, "raw_text": raw_text[:2000]},
        )


# ============================================================================
# Exception Handlers
# ============================================================================


def create_error_response(
    code: str,
    message: str,
    status_code: int,
    field: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None,
) -> JSONResponse:
    """Create a standardized error response."""
    error_response = ErrorResponse(
        error=ErrorDetail(
            code=code,
            message=message,
            field=field,
            details=details,
        ),
        request_id=request_id,
    )

    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(exclude_none=True),
    )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle custom application exceptions."""
    request_id = getattr(request.state, "request_id", None)

    logger.error(
        f"[{exc.code}] {exc.message}",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
            "code": exc.code,
            "details": exc.details,
        },
    )

    message = exc.message
    details = exc.details

    # Upstream failures are surfaced as a generic failure
    if isinstance(exc, UpstreamError):
        message = "AI service unavailable"
        details = None
    elif isinstance(exc, UnauthorizedError):
        details = None

    return create_error_response(
        code=exc.code,
        message=message,
        status_code=exc.status_code,
        field=exc.field,
        details=details,
        request_id=request_id,
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Handle standard HTTP exceptions."""
    request_id = getattr(request.state, "request_id", None)

    status_to_code = {
        400: ErrorCode.VAL_INVALID_INPUT,
        401: ErrorCode.AUTH_UNAUTHORIZED,
        403: ErrorCode.AUTH_FORBIDDEN,
        404: ErrorCode.RES_NOT_FOUND,
        422: ErrorCode.VAL_INVALID_INPUT,
        500: ErrorCode.SRV_INTERNAL_ERROR,
    }

    code = status_to_code.get(exc.status_code, ErrorCode.SRV_INTERNAL_ERROR)
    message = str(exc.detail) if exc.detail else "An error occurred"

    logger.warning(
        f"HTTP {exc.status_code}: {message}",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
        },
    )

    return create_error_response(
        code=code,
        message=message,
        status_code=exc.status_code,
        request_id=request_id,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request body validation errors."""
    request_id = getattr(request.state, "request_id", None)

    errors = exc.errors()
    first_error = errors[0] if errors else {}

    field = ".".join(str(loc) for loc in first_error.get("loc", [])[1:])  # Skip 'body'
    message = first_error.get("msg", "Validation failed")

    details = {
        "errors": [
            {
                "field": ".".join(str(loc) for loc in err.get("loc", [])[1:]),
                "message": err.get("msg"),
                "type": err.get("type"),
            }
            for err in errors
        ]
    }

    logger.warning(
        f"Validation error: {message}",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
        },
    )

    return create_error_response(
        code=ErrorCode.VAL_INVALID_INPUT,
        message=f"Validation error: {message}",
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        field=field if field else None,
        details=details,
        request_id=request_id,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions."""
    request_id = getattr(request.state, "request_id", None)

    logger.exception(
        f"Unhandled exception: {str(exc)}",
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
        },
    )

    from app.core.config import settings

    if settings.is_production:
        message = "An internal error occurred"
        details = None
    else:
        message = str(exc)
        details = {"traceback": traceback.format_exc().split("\n")}

    return create_error_response(
        code=ErrorCode.SRV_INTERNAL_ERROR,
        message=message,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        details=details,
        request_id=request_id,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
