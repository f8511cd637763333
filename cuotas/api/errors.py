"""API error handling and response envelope helpers."""

import logging
from typing import Any, Dict

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from cuotas.errors import AppError

logger = logging.getLogger(__name__)


def success(data: Any = None, message: str = "") -> Dict[str, Any]:
    """Create a standardized success envelope."""
    return {"success": True, "data": data, "message": message}


def error_response(code: str, message: str) -> Dict[str, Any]:
    """Create a standardized error envelope."""
    return {"success": False, "error": {"code": code, "message": message}}


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error(
            "%s %s failed: %s (%s) %s",
            request.method,
            request.url.path,
            exc.message,
            exc.code,
            exc.context,
            exc_info=exc,
        )
    else:
        logger.info(
            "%s %s -> %d %s: %s",
            request.method,
            request.url.path,
            exc.http_status,
            exc.code,
            exc.message,
        )
    return JSONResponse(status_code=exc.http_status, content=error_response(exc.code, exc.message))


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report request-shape errors as 400 with the first problem in the message."""
    errors = jsonable_encoder(exc.errors())
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "Invalid request"
    content = error_response("validation_error", message)
    content["error"]["details"] = errors
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=content)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=exc
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response("internal_error", "Internal server error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)


__all__ = ["error_response", "register_exception_handlers", "success"]
