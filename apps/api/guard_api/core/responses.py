import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from guard_api.core.errors import GuardError, InternalError, ValidationFailed
from guard_api.services import validators

logger = logging.getLogger(__name__)

_BODY_FIELDS = {**validators.GUARD_FIELDS, **validators.SITE_FIELDS}


def _envelope(request: Request, success: bool, status_code: int, message: str, data: Any) -> JSONResponse:
    body = {
        "success": success,
        "statusCode": status_code,
        "request": {
            "ip": request.client.host if request.client else None,
            "method": request.method,
            "url": str(request.url.path) + (f"?{request.url.query}" if request.url.query else ""),
        },
        "message": message,
        "data": data,
    }

    settings = getattr(request.app.state, "settings", None)
    if settings is not None and settings.is_production:
        del body["request"]["ip"]

    logger.info("%s %s -> %s", request.method, body["request"]["url"], status_code)
    return JSONResponse(status_code=status_code, content=body)


def http_response(request: Request, status_code: int, message: str, data: Any = None) -> JSONResponse:
    return _envelope(request, True, status_code, message, data)


def http_error(request: Request, error: GuardError) -> JSONResponse:
    return _envelope(request, False, error.status_code, error.message, None)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(GuardError)
    async def handle_guard_error(request: Request, exc: GuardError):
        return http_error(request, exc)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        messages = []
        for err in exc.errors():
            loc = tuple(err.get("loc", ()))
            if loc[:1] == ("body",):
                loc = loc[1:]
            message = validators.error_message({**err, "loc": loc}, _BODY_FIELDS)
            if message not in messages:
                messages.append(message)
        return http_error(request, ValidationFailed(messages))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        return _envelope(request, False, exc.status_code, str(exc.detail), None)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return http_error(request, InternalError())
