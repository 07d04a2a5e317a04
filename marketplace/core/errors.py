"""
Application errors and the FastAPI exception handlers that shape them.

Services raise AppError subclasses; the handlers installed by
install_error_handlers() turn them into the JSON envelope
``{"status": "fail" | "error", "message": ...}``. Unexpected exceptions never
leak a stack trace to the client; the traceback is logged server-side.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import get_settings

log = logging.getLogger("marketplace.errors")


class AppError(Exception):
    """Operational error with an HTTP status code."""

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    @property
    def status(self) -> str:
        return "fail" if 400 <= self.status_code < 500 else "error"


class ValidationFailed(AppError):
    status_code = 400

    def __init__(self, errors: list[str]):
        super().__init__("Invalid input data. " + ". ".join(errors))
        self.errors = errors


class UnknownFieldError(AppError):
    status_code = 400

    def __init__(self, field: str):
        super().__init__(f"Invalid field: {field}")
        self.field = field


class CastError(AppError):
    status_code = 400

    def __init__(self, field: str, value: object):
        super().__init__(f"Invalid {field}: {value}")
        self.field = field
        self.value = value


class UnauthorizedError(AppError):
    status_code = 401


class ForbiddenError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409


def _payload(status: str, message: str) -> dict:
    return {"status": status, "message": message}


async def _app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("Operational error path=%s: %s", request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=_payload(exc.status, exc.message))


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404 and exc.detail == "Not Found":
        message = f"Can't find {request.url.path} on this server!"
    else:
        message = str(exc.detail)
    status = "fail" if 400 <= exc.status_code < 500 else "error"
    return JSONResponse(
        status_code=exc.status_code,
        content=_payload(status, message),
        headers=getattr(exc, "headers", None),
    )


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return JSONResponse(status_code=400, content=_payload("fail", "Invalid input data. " + ". ".join(messages)))


async def _integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    log.warning("Integrity error path=%s: %s", request.url.path, exc.orig)
    return JSONResponse(status_code=409, content=_payload("fail", "Duplicate field value. Please use another value!"))


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("Unhandled error path=%s", request.url.path)
    message = "Something went very wrong!"
    if get_settings().app_env == "dev":
        message = f"{message} {exc}"
    return JSONResponse(status_code=500, content=_payload("error", message))


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, _app_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(IntegrityError, _integrity_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
