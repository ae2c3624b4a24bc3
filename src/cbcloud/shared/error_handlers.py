"""Global exception handlers producing the API error envelope.

- ``AppError`` and other ``HTTPException``s render ``{"error": ..., "code": ...}``
- request validation failures render ``{"errors": [{"field", "message"}]}`` (400)
- anything else is logged and rendered as a generic 500
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from cbcloud.core.settings import settings
from cbcloud.shared.exceptions import AppError, InternalError

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    _register_http_error_handler(app)
    _register_validation_error_handler(app)
    _register_generic_error_handler(app)


def _register_http_error_handler(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        code = exc.code if isinstance(exc, AppError) else "HTTP_ERROR"
        if exc.status_code >= 500:
            logger.error(
                f"{code}: {exc.detail}",
                extra={"error_code": code, "path": request.url.path},
            )
        else:
            logger.info(
                f"{code}: {exc.detail}",
                extra={"error_code": code, "path": request.url.path},
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail, "code": code},
            headers=getattr(exc, "headers", None),
        )


def _register_validation_error_handler(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ):
        logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=build_validation_error_response(exc),
        )


def _register_generic_error_handler(app: FastAPI) -> None:
    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled exception on {request.url.path}: {exc}",
            exc_info=True,
            extra={"error_code": InternalError.code, "path": request.url.path},
        )
        error = InternalError()
        content = {"error": error.detail, "code": error.code}
        if settings.is_development:
            content["message"] = str(exc)
        return JSONResponse(status_code=error.status_code, content=content)


def build_validation_error_response(exc: RequestValidationError) -> dict:
    """Flatten pydantic errors into ``{"errors": [{"field", "message"}]}``."""
    errors = []
    for error in exc.errors():
        # Drop the leading "body"/"query"/"path" location marker.
        loc = [str(part) for part in error.get("loc", ())]
        if len(loc) > 1 and loc[0] in ("body", "query", "path", "header"):
            loc = loc[1:]
        errors.append({"field": ".".join(loc), "message": error.get("msg", "")})
    return {"errors": errors}
