"""
Application errors and the JSON error envelope

Every failure leaves the API as:
    {"status": "error", "error": "<message>", "code": "<CODE>", "errors": [{"field", "message"}]}
"""
import logging
from typing import List, Dict, Optional

import psycopg2
from fastapi import FastAPI, Request, HTTPException, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AppError(HTTPException):
    """
    Base class for domain failures.

    Subclasses HTTPException so endpoints that re-raise HTTPException
    also let these through untouched.
    """
    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        errors: Optional[List[Dict[str, str]]] = None,
        status_code: Optional[int] = None,
        code: Optional[str] = None
    ):
        super().__init__(status_code=status_code or self.status_code_default, detail=message)
        self.message = message
        self.errors = errors or []
        if code:
            self.code = code


class ValidationFailed(AppError):
    status_code_default = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"


class BusinessRuleError(AppError):
    status_code_default = status.HTTP_400_BAD_REQUEST
    code = "BUSINESS_RULE_VIOLATION"


class AuthenticationError(AppError):
    status_code_default = status.HTTP_401_UNAUTHORIZED
    code = "AUTHENTICATION_ERROR"

    def __init__(self, message: str = "Authentication required", **kwargs):
        super().__init__(message, **kwargs)
        self.headers = {"WWW-Authenticate": "Bearer"}


class PermissionDenied(AppError):
    status_code_default = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"


class NotFound(AppError):
    status_code_default = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource", **kwargs):
        super().__init__(f"{resource} not found", **kwargs)


class Conflict(AppError):
    status_code_default = status.HTTP_409_CONFLICT
    code = "CONFLICT"


class InsufficientStock(BusinessRuleError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_name: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {product_name}. Available: {available}, Requested: {requested}",
            errors=[{"field": "items", "message": f"Insufficient stock for {product_name}"}]
        )
        self.available = available
        self.requested = requested


# ============================================================================
# Response helpers
# ============================================================================

HTTP_CODES = {
    400: "BAD_REQUEST",
    401: "AUTHENTICATION_ERROR",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    429: "RATE_LIMITED",
}


def error_body(message: str, code: str, errors: Optional[List[Dict[str, str]]] = None) -> dict:
    return {
        "status": "error",
        "error": message,
        "code": code,
        "errors": errors or [],
    }


def format_validation_errors(exc: RequestValidationError) -> List[Dict[str, str]]:
    """Flatten pydantic errors into [{field, message}] entries"""
    formatted = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ())]
        # Drop the request section ("body", "query", ...) from the field path
        field = ".".join(loc[1:]) if len(loc) > 1 else (loc[0] if loc else "")
        message = err.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        formatted.append({"field": field, "message": message})
    return formatted


# ============================================================================
# Exception handlers
# ============================================================================

async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    elif exc.status_code in (403, 404):
        logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.code, exc.errors),
        headers=getattr(exc, "headers", None),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    errors = exc.detail if isinstance(exc.detail, list) else []
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(message, HTTP_CODES.get(exc.status_code, "INTERNAL_ERROR"), errors),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body("Validation failed", "VALIDATION_ERROR", format_validation_errors(exc)),
    )


async def integrity_error_handler(request: Request, exc: psycopg2.IntegrityError):
    # 23505 unique_violation, 23503 foreign_key_violation, 23514 check_violation
    pgcode = getattr(exc, "pgcode", None)
    if pgcode == "23505":
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=error_body("Duplicate entry", "DUPLICATE_ENTRY"),
        )
    if pgcode == "23503":
        message = "Referenced record does not exist"
    else:
        message = "Constraint violation"
    logger.warning(f"Integrity error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body(message, "CONSTRAINT_VIOLATION"),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal server error", "INTERNAL_ERROR"),
    )


def register_exception_handlers(app: FastAPI):
    """Attach every handler to the FastAPI app"""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(psycopg2.IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
