"""Custom exception handlers for FastAPI application.

This module registers global exception handlers that convert domain exceptions
and validation errors into proper HTTP responses with appropriate status codes.

Hey future me - the mapping lives HERE and nowhere else. Services raise domain
exceptions (EntityNotFoundException, NotReadyError, ...) and never know about HTTP.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from soundkeep.domain.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    DomainException,
    EntityNotFoundException,
    InvalidPathError,
    NotReadyError,
    StorageUnavailableError,
)

logger = logging.getLogger(__name__)


# Hey future me - this helper converts bytes to strings in validation error dicts!
# Pydantic's exc.errors() can include raw request body as bytes in the 'input' field,
# which causes "TypeError: Object of type bytes is not JSON serializable" when we
# try to return it in a JSONResponse.
def _sanitize_validation_errors(
    errors: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Sanitize validation errors by converting bytes to strings."""

    def _sanitize_value(value: Any) -> Any:
        if isinstance(value, bytes):
            try:
                return value.decode("utf-8")
            except UnicodeDecodeError:
                return value.decode("latin-1")
        elif isinstance(value, dict):
            return {k: _sanitize_value(v) for k, v in value.items()}
        elif isinstance(value, list | tuple):
            return [_sanitize_value(item) for item in value]
        return value

    return [_sanitize_value(error) for error in errors]


def _domain_response(
    request: Request,
    exc: DomainException,
    status_code: int,
    level: int = logging.WARNING,
    **content: Any,
) -> JSONResponse:
    logger.log(
        level,
        "%s at %s: %s",
        type(exc).__name__,
        request.url.path,
        exc.message,
        extra={"path": request.url.path, "error": exc.message},
    )
    return JSONResponse(status_code=status_code, content={"detail": exc.message, **content})


# Hey future me, this registers GLOBAL exception handlers for the entire app! Must be called
# during app setup (create_app) BEFORE any requests arrive.
def register_exception_handlers(app: FastAPI) -> None:
    """Register handlers that translate domain exceptions into HTTP responses.

    - EntityNotFoundException → 404
    - NotReadyError → 404 with ``"error": "not_ready"``
    - InvalidPathError → 400
    - AuthenticationError → 401, AuthorizationError → 403
    - StorageUnavailableError, ConfigurationError → 503
    """

    @app.exception_handler(EntityNotFoundException)
    async def entity_not_found_exception_handler(
        request: Request, exc: EntityNotFoundException
    ) -> JSONResponse:
        return _domain_response(request, exc, status.HTTP_404_NOT_FOUND, logging.INFO)

    # Separate from plain 404 so a player can tell "keep polling" from "gone"
    @app.exception_handler(NotReadyError)
    async def not_ready_exception_handler(
        request: Request, exc: NotReadyError
    ) -> JSONResponse:
        return _domain_response(
            request, exc, status.HTTP_404_NOT_FOUND, logging.INFO, error="not_ready"
        )

    @app.exception_handler(InvalidPathError)
    async def invalid_path_exception_handler(
        request: Request, exc: InvalidPathError
    ) -> JSONResponse:
        return _domain_response(request, exc, status.HTTP_400_BAD_REQUEST)

    @app.exception_handler(AuthenticationError)
    async def authentication_error_handler(
        request: Request, exc: AuthenticationError
    ) -> JSONResponse:
        return _domain_response(request, exc, status.HTTP_401_UNAUTHORIZED)

    @app.exception_handler(AuthorizationError)
    async def authorization_error_handler(
        request: Request, exc: AuthorizationError
    ) -> JSONResponse:
        return _domain_response(request, exc, status.HTTP_403_FORBIDDEN)

    @app.exception_handler(StorageUnavailableError)
    async def storage_unavailable_handler(
        request: Request, exc: StorageUnavailableError
    ) -> JSONResponse:
        return _domain_response(
            request, exc, status.HTTP_503_SERVICE_UNAVAILABLE, logging.ERROR
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        request: Request, exc: ConfigurationError
    ) -> JSONResponse:
        return _domain_response(
            request, exc, status.HTTP_503_SERVICE_UNAVAILABLE, logging.ERROR
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle Pydantic request validation errors with 422."""
        sanitized_errors = _sanitize_validation_errors(list(exc.errors()))
        logger.warning(
            "Request validation error at %s: %s",
            request.url.path,
            sanitized_errors,
            extra={"path": request.url.path},
        )
        return JSONResponse(status_code=422, content={"detail": sanitized_errors})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Handle HTTP exceptions with proper logging."""
        level = logging.ERROR if exc.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "HTTP error %d at %s: %s",
            exc.status_code,
            request.url.path,
            exc.detail,
            extra={"path": request.url.path, "status_code": exc.status_code},
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )
