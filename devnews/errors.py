"""
Error taxonomy and the handlers that render it.

Every failure leaves the API in the same envelope::

    {"status": "error", "message": "...", "errors": [...]}   # errors only on 400

Service and router code raises the ``AppError`` subclasses below.  Anything
else that escapes a route handler (database, storage, mail) is logged by
``EnvelopeRoute`` and converted to ``Unexpected`` so no raw failure reaches
the transport layer.
"""
import logging
from typing import Any, Callable, Coroutine

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    message = "Validation failed"

    def __init__(self, message: str | None = None, errors: list[dict] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class Unauthenticated(AppError):
    status_code = 401
    message = "Not logged in or session has expired"


class Forbidden(AppError):
    status_code = 403
    message = "You do not have permission to perform this action"


class NotFound(AppError):
    status_code = 404
    message = "Resource not found"


class Unexpected(AppError):
    status_code = 500
    message = "Internal server error"


# ---------------------------------------------------------------------------
# Envelope helpers
# ---------------------------------------------------------------------------

def success(data: Any = None, message: str | None = None, **extra: Any) -> dict:
    body: dict[str, Any] = {"status": "success"}
    if data is not None:
        body["data"] = data
    if message is not None:
        body["message"] = message
    body.update(extra)
    return body


def _error_response(status_code: int, message: str, errors: list[dict] | None = None) -> JSONResponse:
    body: dict[str, Any] = {"status": "error", "message": message}
    if errors:
        body["errors"] = errors
    return JSONResponse(status_code=status_code, content=body)


# ---------------------------------------------------------------------------
# Route class: maps stray failures to Unexpected at the handler boundary
# ---------------------------------------------------------------------------

class EnvelopeRoute(APIRoute):
    def get_route_handler(self) -> Callable[[Request], Coroutine[Any, Any, Response]]:
        original_handler = super().get_route_handler()

        async def envelope_handler(request: Request) -> Response:
            try:
                return await original_handler(request)
            except (AppError, HTTPException, RequestValidationError):
                raise
            except Exception as exc:
                logger.exception("%s %s failed: %s", request.method, request.url.path, exc)
                raise Unexpected() from exc

        return envelope_handler


# ---------------------------------------------------------------------------
# Application-level handlers
# ---------------------------------------------------------------------------

async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    errors = exc.errors if isinstance(exc, ValidationError) else None
    return _error_response(exc.status_code, exc.message, errors)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    return _error_response(400, ValidationError.message, errors)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error_response(exc.status_code, str(exc.detail))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(500, Unexpected.message)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
