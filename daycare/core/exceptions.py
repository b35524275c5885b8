"""Domain errors raised by services and their HTTP mapping."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class DaycareError(Exception):
    """Base error for business rule violations."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DaycareError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(DaycareError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(DaycareError):
    status_code = status.HTTP_409_CONFLICT


class PermissionDeniedError(DaycareError):
    status_code = status.HTTP_403_FORBIDDEN


async def daycare_error_handler(request: Request, exc: DaycareError) -> JSONResponse:
    logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the JSON error handlers to the application."""
    app.add_exception_handler(DaycareError, daycare_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
