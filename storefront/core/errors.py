"""
Application error taxonomy and the exception handlers that render it.

Every error leaves the API as JSON ``{"error": <code>, "message": <text>}``.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal_server_error"
    message = "An unexpected error occurred."

    def __init__(self, message: str | None = None, code: str | None = None):
        self.message = message or self.message
        self.code = code or self.code
        super().__init__(self.message)


class Unauthenticated(AppError):
    """Missing, invalid, expired or revoked credential."""
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthenticated"
    message = "Not authenticated"


class InvalidCredentials(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_credentials"
    message = "Invalid email or password"


class Conflict(AppError):
    # The storefront reports duplicate signups as 400, not 409
    status_code = status.HTTP_400_BAD_REQUEST
    code = "conflict"
    message = "Resource already exists"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    message = "Access denied"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    message = "Resource not found"


def error_response(code: str, message: str, status_code: int, details=None, headers=None) -> JSONResponse:
    payload = {"error": code, "message": message}
    if details is not None:
        payload["details"] = details
    return JSONResponse(status_code=status_code, content=payload, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return error_response(exc.code, exc.message, exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return error_response(
            "validation_error",
            "Invalid request",
            422,
            details=jsonable_errors(exc),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return error_response("http_error", str(exc.detail), exc.status_code, headers=exc.headers)

    # Global exception handler for unhandled errors
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle unexpected server errors with structured response."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": request.headers.get("X-Request-ID"),
            }
        )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    # ctx may hold exception instances that JSON can't encode
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
