import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from erp_files.schemas.envelope import envelope


class ApiError(Exception):
    """An error that maps to a status code and a caller-safe message."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationFailed(ApiError):
    status_code = 400


class Conflict(ApiError):
    # Delete blocked by referential policy; the API reports it as a bad request
    status_code = 400


class NotAuthenticated(ApiError):
    status_code = 401


class Forbidden(ApiError):
    status_code = 403


class NotFound(ApiError):
    status_code = 404


class PayloadTooLarge(ApiError):
    status_code = 413


@contextmanager
def backend_failure(message: str, db: Optional[Session] = None, logger_name: str = "erp.http") -> Iterator[None]:
    """
    Turn unclassified database/filesystem exceptions into a generic 500.

    ApiErrors raised inside the block pass through unchanged. Anything else is
    logged with its traceback, the session (if given) is rolled back and the
    caller only sees `message`.
    """
    try:
        yield
    except ApiError:
        raise
    except Exception as exc:
        logging.getLogger(logger_name).exception("%s: %s", message, type(exc).__name__)
        if db is not None:
            try:
                db.rollback()
            except Exception:
                logging.getLogger(logger_name).warning("rollback failed after: %s", message)
        raise ApiError(message) from exc


def install_exception_handlers(app: FastAPI) -> None:
    """Render every error as the {success: false, message} envelope."""

    @app.exception_handler(ApiError)
    async def _api_error(request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=envelope(message=exc.message, success=False))

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return JSONResponse(
            status_code=exc.status_code,
            content=envelope(message=message, success=False),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        logging.getLogger("erp.http").info(
            "request_validation_failed path=%s errors=%d", request.url.path, len(exc.errors())
        )
        return JSONResponse(status_code=400, content=envelope(message="Invalid request", success=False))

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        # Already logged by the request logging middleware
        return JSONResponse(status_code=500, content=envelope(message="Internal server error", success=False))
