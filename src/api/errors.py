import logging
import os

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError, TimeoutError as SQLAlchemyTimeoutError
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.domain.exceptions import CinemaBookingError

logger = logging.getLogger(__name__)


def _is_production() -> bool:
    return os.getenv("APP_ENV", "development").lower() == "production"


def error_envelope(status_code: int, message: str, detail=None) -> JSONResponse:
    content = {"success": False, "message": message}
    if detail is not None and not _is_production():
        content["error"] = detail
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(CinemaBookingError)
    async def domain_error_handler(request: Request, exc: CinemaBookingError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return error_envelope(exc.status_code, str(exc), type(exc).__name__)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return error_envelope(
            status.HTTP_400_BAD_REQUEST,
            "Missing or malformed request data",
            jsonable_errors(exc),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return error_envelope(exc.status_code, str(exc.detail))

    @app.exception_handler(OperationalError)
    @app.exception_handler(SQLAlchemyTimeoutError)
    async def store_unavailable_handler(request: Request, exc: Exception):
        logger.exception("Backing store unavailable during %s %s", request.method, request.url.path)
        return error_envelope(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "Service temporarily unavailable",
            str(exc),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error during %s %s", request.method, request.url.path)
        return error_envelope(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
            str(exc),
        )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg", "")}
        for error in exc.errors()
    ]
