"""Global error handling middleware for the statistics portal."""

import time
import traceback
import uuid
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from structlog import get_logger

from statportal.exceptions import StatPortalError, handle_database_error

logger = get_logger()

# Walked along the exception's MRO, so subclasses inherit their parent's code
STATUS_BY_ERROR = {
    "ValidationError": 400,
    "StatusTransitionError": 400,
    "AuthorizationError": 403,
    "NotFoundError": 404,
    "ConflictError": 409,
    "ConfigurationError": 500,
    "InternalError": 500,
}


def get_status_code_for_error(error: StatPortalError) -> int:
    """Map custom exceptions to appropriate HTTP status codes."""
    for klass in type(error).__mro__:
        status_code = STATUS_BY_ERROR.get(klass.__name__)
        if status_code is not None:
            return status_code
    return 500


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def error_response(status_code: int, body: dict, request_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {**body, "request_id": request_id}},
        headers={"X-Request-ID": request_id},
    )


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Log every request and render domain errors as JSON."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Generate request ID for tracing
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.time()

        try:
            response = await call_next(request)

            process_time = time.time() - start_time
            logger.info(
                "request_completed",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                process_time=round(process_time, 3)
            )

            response.headers["X-Request-ID"] = request_id
            return response

        except StatPortalError as e:
            process_time = time.time() - start_time
            status_code = get_status_code_for_error(e)

            log = logger.error if status_code >= 500 else logger.warning
            log(
                "statportal_error",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                status_code=status_code,
                error_type=e.__class__.__name__,
                error_code=e.error_code,
                message=e.message,
                details=e.details,
                process_time=round(process_time, 3)
            )

            return error_response(status_code, e.to_dict(), request_id)

        except SQLAlchemyError as e:
            process_time = time.time() - start_time
            error = handle_database_error(e, f"{request.method} {request.url.path}", {})
            status_code = get_status_code_for_error(error)
            logger.error(
                "database_error",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                error=str(e),
                process_time=round(process_time, 3)
            )

            body = error.to_dict()
            if status_code >= 500:
                # don't expose driver messages
                body["message"] = "Database error"
            return error_response(status_code, body, request_id)

        except Exception as e:
            process_time = time.time() - start_time

            logger.error(
                "unexpected_error",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                error=str(e),
                error_type=type(e).__name__,
                traceback=traceback.format_exc(),
                process_time=round(process_time, 3)
            )

            return error_response(
                500,
                {
                    "error_type": "InternalError",
                    "message": "An unexpected error occurred",
                    "error_code": "INTERNAL_ERROR",
                    "details": {},
                },
                request_id,
            )


class RequestValidationMiddleware(BaseHTTPMiddleware):
    """Reject oversized or non-JSON bodies and add security headers."""

    max_body_bytes = 20 * 1024 * 1024

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        content_length = request.headers.get("content-length")
        body_size = 0
        if content_length:
            try:
                body_size = int(content_length)
            except ValueError:
                body_size = 0

        if body_size > self.max_body_bytes:
            return JSONResponse(
                status_code=413,
                content={
                    "error": {
                        "error_type": "ValidationError",
                        "message": "Request entity too large (max 20MB)",
                        "error_code": "PAYLOAD_TOO_LARGE",
                        "details": {},
                    }
                }
            )

        if request.method in ["POST", "PUT", "PATCH"] and body_size > 0:
            content_type = request.headers.get("content-type", "")
            if "application/json" not in content_type:
                return JSONResponse(
                    status_code=415,
                    content={
                        "error": {
                            "error_type": "ValidationError",
                            "message": "Unsupported media type. Use application/json",
                            "error_code": "UNSUPPORTED_MEDIA_TYPE",
                            "details": {},
                        }
                    }
                )

        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        return response


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render body and query validation failures as 400."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field_name = ".".join(str(p) for p in first.get("loc", ()) if p != "body") or "request"
    logger.warning(
        "request_validation_error",
        request_id=_request_id(request),
        path=request.url.path,
        errors=[{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors],
    )
    return error_response(
        400,
        {
            "error_type": "ValidationError",
            "message": f"Validation failed for field '{field_name}': {first.get('msg', 'invalid')}",
            "error_code": "VALIDATION_FAILED",
            "details": {
                "field_name": field_name,
                "errors": [{"loc": [str(p) for p in e.get("loc", ())], "msg": e.get("msg")} for e in errors],
            },
        },
        _request_id(request),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTP exceptions (401 from auth, 404 routes) in the common error shape."""
    codes = {401: "UNAUTHENTICATED", 403: "ACCESS_DENIED", 404: "NOT_FOUND", 405: "METHOD_NOT_ALLOWED"}
    response = error_response(
        exc.status_code,
        {
            "error_type": "HTTPException",
            "message": exc.detail,
            "error_code": codes.get(exc.status_code, "HTTP_ERROR"),
            "details": {},
        },
        _request_id(request),
    )
    for name, value in (getattr(exc, "headers", None) or {}).items():
        response.headers[name] = value
    return response


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
