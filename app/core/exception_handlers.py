"""
Global exception handlers.

Every failure leaves the API inside the ``ApiResponse`` envelope: request
validation errors become 400 with one error per field, ``HTTPException``
keeps its status, and anything else is logged and returned as a generic 500.
"""

from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.errors import HTTP_STATUS_BY_ERROR_TYPE, Error, ErrorType
from app.core.logging import get_logger
from app.schemas.response import ApiResponse

logger = get_logger(__name__)

_ERROR_TYPE_BY_STATUS = {code: error_type for error_type, code in HTTP_STATUS_BY_ERROR_TYPE.items()}


def _envelope(
    status_code: int,
    errors: list[Error],
    message: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = ApiResponse[Any].error(errors, message)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json"),
        headers=headers,
    )


def _field_name(loc: tuple[Any, ...] | list[Any]) -> str:
    # Drop the "body"/"query"/"path" prefix
    parts = [str(part) for part in loc[1:]] if len(loc) > 1 else [str(p) for p in loc]
    return ".".join(parts)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        Error.validation(_field_name(err.get("loc", ())), err.get("msg", "Invalid value"))
        for err in exc.errors()
    ]
    return _envelope(status.HTTP_400_BAD_REQUEST, errors, "Validation failed")


async def model_validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    # Query parameter models declared with Depends() validate on construction
    errors = [
        Error.validation(
            ".".join(str(part) for part in err.get("loc", ())), err.get("msg", "Invalid value")
        )
        for err in exc.errors()
    ]
    return _envelope(status.HTTP_400_BAD_REQUEST, errors, "Validation failed")


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    try:
        phrase = HTTPStatus(exc.status_code).phrase
    except ValueError:
        phrase = "Error"
    error = Error(
        code=f"Http.{phrase.replace(' ', '')}",
        description=str(exc.detail),
        type=_ERROR_TYPE_BY_STATUS.get(exc.status_code, ErrorType.FAILURE),
    )
    return _envelope(
        exc.status_code,
        [error],
        str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    error = Error.failure("Server.InternalError", "An unexpected error occurred.")
    return _envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, [error], "Internal Server Error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ValidationError, model_validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)
