import logging
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from floneo.core.responses import error_response

logger = logging.getLogger("floneo.requests")

APP_NOT_FOUND = "App not found or access denied"
ELEMENT_NOT_FOUND = "Element not found"


class APIError(Exception):
    """Error that maps directly onto an HTTP status and envelope message."""

    def __init__(
        self,
        status_code: int,
        message: str,
        error: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.error = error
        self.headers = headers


class NotFoundError(APIError):
    """Missing or not owned by the caller. Both cases share one message."""

    def __init__(self, message: str = APP_NOT_FOUND):
        super().__init__(404, message)


class AuthenticationError(APIError):
    def __init__(self, message: str = "Authentication required"):
        super().__init__(401, message, headers={"WWW-Authenticate": "Bearer"})


@contextmanager
def handler_errors(message: str, expose_error: bool = False) -> Iterator[None]:
    """
    Handler boundary: known API errors pass through untouched, anything else is
    logged and reported as a 500 with the operation's generic message.
    """
    try:
        yield
    except (APIError, HTTPException):
        raise
    except Exception as exc:
        logger.exception(message)
        raise APIError(500, message, error=str(exc) if expose_error else None) from exc


class RequestTimingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "Unhandled exception",
                extra={"path": request.url.path, "method": request.method},
            )
            response = JSONResponse(status_code=500, content=error_response("Internal server error"))

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-Duration-ms"] = f"{duration_ms:.2f}"
        logger.info(
            "%s %s -> %s",
            request.method,
            request.url.path,
            response.status_code,
            extra={
                "path": request.url.path,
                "method": request.method,
                "duration_ms": duration_ms,
                "status_code": response.status_code,
            },
        )
        return response


def register_error_handlers(app: FastAPI) -> None:
    app.add_middleware(RequestTimingMiddleware)

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(exc.message, exc.error),
            headers=exc.headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(
            "Request validation failed",
            extra={"path": request.url.path, "method": request.method},
        )
        return JSONResponse(
            status_code=422,
            content=error_response("Validation error", jsonable_encoder(exc.errors())),
        )
