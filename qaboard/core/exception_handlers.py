import logging
import traceback
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .exceptions import BaseAPIException, InternalServerError

logger = logging.getLogger("qaboard.errors")


def _request_context(request: Request) -> Dict[str, Any]:
    client = request.client.host if request.client else "-"
    return {
        "method": request.method,
        "path": request.url.path,
        "client": client,
    }


async def handle_base_api_exception(request: Request, exc: BaseAPIException):
    ctx = _request_context(request)
    message = (
        f"[{exc.error_code}] {ctx['method']} {ctx['path']} from {ctx['client']} "
        f"-> {exc.status_code}: {exc.message} {exc.details}"
    )
    if exc.status_code >= 500:
        logger.error(message)
    else:
        logger.warning(message)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.detail))


async def handle_http_exception(request: Request, exc: StarletteHTTPException):
    ctx = _request_context(request)
    error_msg = f"[HTTPException] {ctx['method']} {ctx['path']} from {ctx['client']} -> {exc.status_code}: {exc.detail}"

    if exc.status_code >= 500:
        tb_str = "".join(traceback.format_tb(exc.__traceback__))
        logger.error(f"{error_msg}\n\nStack Trace:\n{tb_str}")
    else:
        logger.warning(error_msg)

    content = {
        "success": False,
        "error": {
            "code": "HTTP_ERROR",
            "message": str(exc.detail),
            "details": {},
        },
    }
    return JSONResponse(status_code=exc.status_code, content=content)


async def handle_validation_error(request: Request, exc: RequestValidationError):
    ctx = _request_context(request)
    logger.warning(
        f"[ValidationError] {ctx['method']} {ctx['path']} from {ctx['client']} -> 422: {exc.errors()}"
    )
    content = {
        "success": False,
        "error": {
            "code": "VALIDATION_001",
            "message": "Validation failed",
            "details": {"errors": exc.errors()},
        },
    }
    return JSONResponse(status_code=422, content=jsonable_encoder(content))


async def handle_unexpected_error(request: Request, exc: Exception):
    ctx = _request_context(request)

    tb_str = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error(
        f"[Unhandled Error] {ctx['method']} {ctx['path']} from {ctx['client']}\n"
        f"Exception Type: {type(exc).__name__}\n"
        f"Exception Message: {str(exc)}\n\n"
        f"Full Stack Trace:\n{tb_str}"
    )

    internal = InternalServerError()
    return JSONResponse(status_code=internal.status_code, content=internal.detail)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BaseAPIException, handle_base_api_exception)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
